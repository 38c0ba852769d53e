"""Worker process data model."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class WorkerState(str, Enum):
    """State of a worker process."""

    STARTING = "starting"    # Spawn requested, process not yet started
    RUNNING = "running"      # Process spawned
    STOPPING = "stopping"    # Termination requested
    EXITED = "exited"        # Process exited with code 0 or was stopped
    CRASHED = "crashed"      # Process died unexpectedly


@dataclass(eq=False)
class Worker:
    """A worker process spawned by the cluster.

    Each live worker has a unique id and, when debugging is enabled,
    its own debug port.
    """

    # Cluster-issued identifier, unique among live workers
    id: int

    # Port the worker's debugger listens on (None if not configured)
    debug_port: Optional[int] = None

    state: WorkerState = WorkerState.STARTING

    pid: Optional[int] = None

    # asyncio Process handle
    process: Optional[asyncio.subprocess.Process] = field(default=None, repr=False)

    started_at: Optional[datetime] = None

    # Return code once exited (negative for signals on POSIX)
    exit_code: Optional[int] = None

    @property
    def is_alive(self) -> bool:
        """Check if the worker process is considered alive."""
        return self.state in (WorkerState.STARTING, WorkerState.RUNNING, WorkerState.STOPPING)

    @property
    def uptime_seconds(self) -> Optional[float]:
        """Get uptime in seconds if started."""
        if self.started_at is None:
            return None
        return (datetime.now() - self.started_at).total_seconds()
