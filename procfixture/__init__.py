"""
procfixture launches external server binaries (etcd, kube-apiserver, ...)
as ephemeral fixtures for integration tests, waits for them to become
ready, and tears them down deterministically.
"""
from .exceptions import (
    CleanupError, ConfigurationError, FixtureError, PathResolutionError, ReadinessTimeoutError,
    ResourceAllocationError, SpawnError, StopTimeoutError, TemplateError,
)
from .integration import APIServer, Etcd
from .supervisor import ProcessSupervisor

__all__ = [
    "APIServer", "Etcd", "ProcessSupervisor",
    "CleanupError", "ConfigurationError", "FixtureError", "PathResolutionError",
    "ReadinessTimeoutError", "ResourceAllocationError", "SpawnError", "StopTimeoutError",
    "TemplateError",
]
