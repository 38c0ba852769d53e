"""Process cluster for worker subprocesses.

Spawns workers with asyncio, watches them for exit and notifies exit
listeners. Mirrors the usual primary/worker cluster shape: settings made
with ``setup_primary`` apply to later forks, except ``inspect_port``
which only applies to the very next one.
"""

import asyncio
import itertools
import logging
import os
import sys
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .errors import ErrorCategory, WorkerSpawnError, log_and_format_error
from .inspect_args import strip_inspect_flags
from .worker import Worker, WorkerState

logger = logging.getLogger("cluster_debug.cluster")

# Process termination settings
GRACEFUL_SHUTDOWN_TIMEOUT = 10.0  # seconds to wait after SIGTERM
KILL_TIMEOUT = 5.0                # seconds to wait after SIGKILL

# Environment passed to every worker
WORKER_ID_ENV = "CLUSTER_WORKER_ID"
INSPECT_PORT_ENV = "CLUSTER_INSPECT_PORT"

ExitListener = Callable[[Worker], None]


class WorkerCluster:
    """Manages worker subprocesses for a primary process.

    Responsibilities:
    - Spawn workers running ``exec_path exec_args args``
    - Pass a per-fork debug port to the next worker
    - Watch workers and notify listeners when they exit
    - Terminate workers on request or on shutdown
    """

    def __init__(
        self,
        exec_path: Optional[str] = None,
        exec_args: Optional[Sequence[str]] = None,
        args: Optional[Sequence[str]] = None,
    ):
        """Initialize the cluster.

        Args:
            exec_path: Program to run (current interpreter if None)
            exec_args: Arguments placed before ``args``
            args: Worker arguments (this process's argv if None)
        """
        self.exec_path = exec_path or sys.executable
        self.exec_args: List[str] = list(exec_args or [])
        self.args: List[str] = list(sys.argv if args is None else args)

        # One-shot debug port for the next fork
        self._inspect_port: Optional[int] = None

        self.workers: Dict[int, Worker] = {}
        self._ids = itertools.count(1)
        self._watchers: Dict[int, asyncio.Task] = {}
        self._exit_listeners: List[ExitListener] = []

    def setup_primary(
        self,
        *,
        exec_path: Optional[str] = None,
        exec_args: Optional[Sequence[str]] = None,
        args: Optional[Sequence[str]] = None,
        inspect_port: Optional[int] = None,
    ) -> None:
        """Change how workers are spawned.

        Args:
            exec_path: Program to run for later forks
            exec_args: Arguments before ``args`` for later forks
            args: Worker arguments for later forks
            inspect_port: Debug port for the next fork only
        """
        if exec_path is not None:
            self.exec_path = exec_path
        if exec_args is not None:
            self.exec_args = list(exec_args)
        if args is not None:
            self.args = list(args)
        if inspect_port is not None:
            self._inspect_port = inspect_port

    # Legacy name kept for callers written against older cluster APIs
    setup_master = setup_primary

    def add_exit_listener(self, callback: ExitListener) -> None:
        """Call ``callback(worker)`` whenever a worker exits."""
        self._exit_listeners.append(callback)

    def remove_exit_listener(self, callback: ExitListener) -> None:
        """Stop calling ``callback`` on worker exit."""
        if callback in self._exit_listeners:
            self._exit_listeners.remove(callback)

    def _build_command(self, inspect_port: Optional[int]) -> List[str]:
        cmd = [self.exec_path, *self.exec_args, *strip_inspect_flags(self.args)]
        if inspect_port is not None:
            cmd.append(f"--inspect-port={inspect_port}")
        return cmd

    async def fork(self, env: Optional[Mapping[str, str]] = None) -> Worker:
        """Spawn a new worker.

        Args:
            env: Key/value pairs added to the worker's environment

        Returns:
            The spawned Worker

        Raises:
            WorkerSpawnError: If the process could not be started
        """
        inspect_port, self._inspect_port = self._inspect_port, None

        worker = Worker(id=next(self._ids), debug_port=inspect_port)

        worker_env = dict(os.environ)
        worker_env.update({k: str(v) for k, v in (env or {}).items()})
        worker_env[WORKER_ID_ENV] = str(worker.id)
        if inspect_port is not None:
            worker_env[INSPECT_PORT_ENV] = str(inspect_port)

        cmd = self._build_command(inspect_port)
        logger.debug(f"Spawning worker {worker.id}: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                env=worker_env,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            message = log_and_format_error(
                "fork",
                e,
                ErrorCategory.FORK,
                user_message=f"Failed to spawn worker {worker.id}: {e}",
                logger=logger,
                worker_id=worker.id,
            )
            worker.state = WorkerState.CRASHED
            raise WorkerSpawnError(message) from e

        worker.process = process
        worker.pid = process.pid
        worker.state = WorkerState.RUNNING
        worker.started_at = datetime.now()
        self.workers[worker.id] = worker

        self._watchers[worker.id] = asyncio.create_task(self._watch(worker))

        if inspect_port is not None:
            logger.info(f"Spawned worker {worker.id} (PID {worker.pid}) with debug port {inspect_port}")
        else:
            logger.info(f"Spawned worker {worker.id} (PID {worker.pid})")
        return worker

    async def _watch(self, worker: Worker) -> None:
        """Wait for a worker's process to exit, then notify listeners."""
        assert worker.process is not None
        try:
            code = await worker.process.wait()
        finally:
            self._watchers.pop(worker.id, None)

        worker.exit_code = code
        if worker.state == WorkerState.STOPPING or code == 0:
            worker.state = WorkerState.EXITED
        else:
            worker.state = WorkerState.CRASHED
            logger.warning(f"Worker {worker.id} (PID {worker.pid}) exited with code {code}")
        self.workers.pop(worker.id, None)
        logger.info(f"Worker {worker.id} exited")

        self._emit_exit(worker)

    def _emit_exit(self, worker: Worker) -> None:
        for callback in list(self._exit_listeners):
            try:
                callback(worker)
            except Exception as e:
                log_and_format_error(
                    "exit_listener", e, ErrorCategory.EXIT, logger=logger, worker_id=worker.id
                )

    async def wait(self, worker_id: int) -> Optional[int]:
        """Wait until a worker has exited and its listeners have run.

        Returns:
            The worker's exit code, or None if it is not being watched
        """
        watcher = self._watchers.get(worker_id)
        if watcher is None:
            return None
        worker = self.workers.get(worker_id)
        await asyncio.shield(watcher)
        return worker.exit_code if worker else None

    async def kill_worker(self, worker_id: int, force: bool = False) -> bool:
        """Stop a running worker.

        Args:
            worker_id: ID of the worker to stop
            force: If True, use SIGKILL instead of SIGTERM

        Returns:
            True if the worker was running and has now exited
        """
        worker = self.workers.get(worker_id)
        watcher = self._watchers.get(worker_id)
        if worker is None or worker.process is None or watcher is None:
            logger.warning(f"Worker {worker_id} not found")
            return False

        worker.state = WorkerState.STOPPING
        try:
            if force:
                logger.info(f"Force killing worker {worker_id} (PID {worker.pid})")
                worker.process.kill()
            else:
                logger.info(f"Terminating worker {worker_id} (PID {worker.pid})")
                worker.process.terminate()
        except ProcessLookupError:
            pass

        try:
            await asyncio.wait_for(asyncio.shield(watcher), timeout=GRACEFUL_SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Worker {worker_id} did not stop gracefully, killing")
            try:
                worker.process.kill()
            except ProcessLookupError:
                pass
            await asyncio.wait_for(asyncio.shield(watcher), timeout=KILL_TIMEOUT)

        return True

    async def stop(self) -> None:
        """Stop all running workers."""
        tasks = [self.kill_worker(worker_id) for worker_id in list(self.workers)]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Cluster stopped")

    def get_worker(self, worker_id: int) -> Optional[Worker]:
        """Get a live worker by ID."""
        return self.workers.get(worker_id)

    def list_workers(self) -> List[Worker]:
        """Get all live workers."""
        return list(self.workers.values())
