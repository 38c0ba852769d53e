"""Cluster Debug - unique debugger ports for cluster worker processes."""

from .cluster import WorkerCluster
from .cluster_debug import ClusterDebug, create_cluster_debug
from .config import Settings, get_settings
from .errors import (
    ClusterDebugError,
    ConfigurationError,
    LeaseConflictError,
    PortExhaustedError,
    WorkerSpawnError,
)
from .inspect_args import DEFAULT_INSPECT_PORT, resolve_primary_debug_port
from .port_allocator import DebugPortAllocator, resolve_base_port
from .worker import Worker, WorkerState

__all__ = [
    "ClusterDebug",
    "create_cluster_debug",
    "WorkerCluster",
    "Worker",
    "WorkerState",
    "DebugPortAllocator",
    "resolve_base_port",
    "resolve_primary_debug_port",
    "DEFAULT_INSPECT_PORT",
    "Settings",
    "get_settings",
    "ClusterDebugError",
    "ConfigurationError",
    "LeaseConflictError",
    "PortExhaustedError",
    "WorkerSpawnError",
]
