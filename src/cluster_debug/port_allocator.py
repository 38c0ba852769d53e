"""Debug port allocation for cluster workers.

Workers get the lowest port at or above the base port that no live worker
holds. When a worker exits its port goes straight back to the pool, so a
restarted worker reuses it instead of ramping the port number up.
"""

import logging
from typing import Dict, Optional

from .config import MAX_PORT, Settings, get_settings
from .errors import LeaseConflictError, PortExhaustedError
from .inspect_args import primary_exec_args, resolve_primary_debug_port

logger = logging.getLogger("cluster_debug.port_allocator")


def resolve_base_port(override: Optional[int], exec_args: str = "") -> int:
    """Compute the minimal worker debug port.

    Args:
        override: Explicit base port, used verbatim when set
        exec_args: Primary process start arguments, space-joined

    Returns:
        The override, or one above the primary's own debug port
    """
    if override is not None:
        return override
    return resolve_primary_debug_port(exec_args) + 1


class DebugPortAllocator:
    """Leases debug ports to worker ids.

    The lease table is kept in both directions (port -> worker and
    worker -> port) and the two maps are only ever changed together.
    """

    def __init__(self, base_port: int, max_port: int = MAX_PORT):
        """Initialize the allocator.

        Args:
            base_port: Lowest port a worker may be leased
            max_port: Highest port the scan may reach (inclusive)
        """
        self._base_port = base_port
        self.max_port = max_port
        self._ports: Dict[int, int] = {}  # port -> worker id
        self._workers: Dict[int, int] = {}  # worker id -> port

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        exec_args: Optional[str] = None,
    ) -> "DebugPortAllocator":
        """Build an allocator with its base port computed once.

        Args:
            settings: Loaded settings (read from the environment if None)
            exec_args: Primary start arguments (this process's if None)
        """
        if settings is None:
            settings = get_settings()
        if exec_args is None:
            exec_args = primary_exec_args()

        base_port = resolve_base_port(settings.worker_debug_port, exec_args)
        if settings.worker_debug_port is not None:
            logger.info(f"Worker debug ports start at {base_port} (CLUSTER_WORKER_DEBUG_PORT)")
        else:
            logger.info(f"Worker debug ports start at {base_port}")
        return cls(base_port, max_port=settings.max_debug_port)

    @property
    def base_port(self) -> int:
        """Lowest port a worker may be leased."""
        return self._base_port

    @property
    def leases(self) -> Dict[int, int]:
        """Get a copy of the port -> worker id table."""
        return dict(self._ports)

    def lowest_free_port(self) -> int:
        """Find the lowest port not leased to any worker.

        Does not change the lease table, so repeated calls return the
        same port until the next lease or release.

        Raises:
            PortExhaustedError: If every port up to max_port is leased
        """
        port = self._base_port
        while port in self._ports:
            port += 1
        if port > self.max_port:
            raise PortExhaustedError(self._base_port, self.max_port)
        return port

    def lease(self, worker_id: int, port: int) -> None:
        """Record that a worker holds a port.

        Raises:
            LeaseConflictError: If the port or the worker already has a lease
        """
        if port in self._ports:
            raise LeaseConflictError(
                f"Port {port} is already leased to worker {self._ports[port]}"
            )
        if worker_id in self._workers:
            raise LeaseConflictError(
                f"Worker {worker_id} already holds port {self._workers[worker_id]}"
            )
        self._ports[port] = worker_id
        self._workers[worker_id] = port
        logger.debug(f"Leased port {port} to worker {worker_id}")

    def release(self, worker_id: int) -> Optional[int]:
        """Return a worker's port to the pool.

        Unknown or already released workers are ignored.

        Returns:
            The released port, or None if the worker held no lease
        """
        port = self._workers.pop(worker_id, None)
        if port is None:
            return None
        del self._ports[port]
        logger.debug(f"Released port {port} from worker {worker_id} ({len(self._ports)} leased)")
        return port

    def port_for(self, worker_id: int) -> Optional[int]:
        """Get the port leased to a worker."""
        return self._workers.get(worker_id)

    def worker_for(self, port: int) -> Optional[int]:
        """Get the worker holding a port."""
        return self._ports.get(port)

    def __len__(self) -> int:
        return len(self._ports)

    def __contains__(self, port: object) -> bool:
        return port in self._ports
