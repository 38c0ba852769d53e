"""Debug port management for a worker cluster.

Every fork goes through the port allocator: the worker is started with the
lowest free debug port above the primary's own debugger, and the port goes
back to the pool as soon as the worker exits.

Example, primary started with ``--inspect`` (primary debugger on 9229)::

    cluster_debug = create_cluster_debug(WorkerCluster())
    worker = await cluster_debug.fork()   # debug port 9230
    worker = await cluster_debug.fork()   # debug port 9231

``CLUSTER_WORKER_DEBUG_PORT`` sets the minimal worker port directly.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from .cluster import WorkerCluster
from .config import Settings, get_settings
from .errors import setup_logger
from .port_allocator import DebugPortAllocator

logger = logging.getLogger("cluster_debug.cluster_debug")


class ClusterDebug:
    """Wraps a cluster's fork so each worker gets its own debug port.

    The cluster must provide ``fork(env)`` returning a worker with an
    ``id``, ``setup_primary(inspect_port=...)`` (or the legacy
    ``setup_master``) and ``add_exit_listener``/``remove_exit_listener``.
    """

    def __init__(self, cluster: Any, allocator: DebugPortAllocator):
        self.cluster = cluster
        self.allocator = allocator
        self._fork_lock = asyncio.Lock()
        self._attached = False

    @property
    def min_worker_debug_port(self) -> int:
        """Lowest debug port any worker can get."""
        return self.allocator.base_port

    def attach(self) -> "ClusterDebug":
        """Subscribe to the cluster's worker exit events.

        Calling it again while attached does nothing.
        """
        if not self._attached:
            self.cluster.add_exit_listener(self._handle_exit)
            self._attached = True
        return self

    def detach(self) -> None:
        """Unsubscribe from worker exit events."""
        if self._attached:
            self.cluster.remove_exit_listener(self._handle_exit)
            self._attached = False

    def lowest_free_port(self) -> int:
        """Port the next forked worker will get."""
        return self.allocator.lowest_free_port()

    def setup(self, port: int) -> None:
        """Make the cluster start its next worker with ``port``."""
        if hasattr(self.cluster, "setup_primary"):
            self.cluster.setup_primary(inspect_port=port)
        elif hasattr(self.cluster, "setup_master"):
            self.cluster.setup_master(inspect_port=port)
        else:
            raise TypeError(
                f"{type(self.cluster).__name__} has no setup_primary or setup_master"
            )

    async def fork(self, env: Optional[Mapping[str, str]] = None) -> Any:
        """Fork a worker with the lowest free debug port.

        Args:
            env: Key/value pairs to add to the worker process environment

        Returns:
            The cluster's worker handle
        """
        async with self._fork_lock:
            port = self.allocator.lowest_free_port()
            self.setup(port)
            worker = await self.cluster.fork(env or {})
            self.allocator.lease(worker.id, port)

        logger.info(f"Worker {worker.id} debugger on port {port}")
        return worker

    def on_worker_exit(self, worker_id: int) -> None:
        """Give an exited worker's port back to the pool."""
        port = self.allocator.release(worker_id)
        if port is not None:
            logger.info(f"Worker {worker_id} exited, port {port} is free")

    def _handle_exit(self, worker: Any) -> None:
        self.on_worker_exit(worker.id)


def create_cluster_debug(
    cluster: Optional[Any] = None,
    settings: Optional[Settings] = None,
    exec_args: Optional[str] = None,
) -> ClusterDebug:
    """Build an attached ClusterDebug from environment settings.

    Args:
        cluster: Cluster to wrap (a new WorkerCluster if None)
        settings: Loaded settings (read from the environment if None)
        exec_args: Primary start arguments (this process's if None)

    Raises:
        ConfigurationError: If the environment configuration is invalid
    """
    if settings is None:
        settings = get_settings()
    setup_logger("cluster_debug", level=settings.log_level.upper(), log_file=settings.log_file)

    allocator = DebugPortAllocator.from_settings(settings, exec_args=exec_args)
    return ClusterDebug(cluster or WorkerCluster(), allocator).attach()
