"""procfixture exception hierarchy."""

from typing import List, Optional


class FixtureError(Exception):
    """Base exception for all fixture lifecycle errors."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        return self.message


class ConfigurationError(FixtureError):
    """A fixture or cluster configuration is invalid or unsupported."""

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="configuration")


class PathResolutionError(FixtureError):
    """No executable could be found for a binary name."""

    def __init__(self, message: str, binary: str) -> None:
        super().__init__(message, stage="path_resolution")
        self.binary = binary


class ResourceAllocationError(FixtureError):
    """A data directory or a network address could not be allocated."""

    pass


class TemplateError(FixtureError):
    """An argument template has an unknown placeholder or broken syntax."""

    def __init__(self, message: str, template: Optional[str] = None) -> None:
        super().__init__(message, stage="render_args")
        self.template = template


class SpawnError(FixtureError):
    """The process starter failed to launch the binary."""

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="spawn")


class ReadinessTimeoutError(FixtureError):
    """The process did not report readiness within its start timeout."""

    def __init__(self, message: str, timeout: float) -> None:
        super().__init__(message, stage="readiness")
        self.timeout = timeout


class StopTimeoutError(FixtureError):
    """The process ignored graceful termination for longer than its stop timeout."""

    def __init__(self, message: str, timeout: float, killed: bool = True) -> None:
        super().__init__(message, stage="stop")
        self.timeout = timeout
        self.killed = killed


class CleanupError(FixtureError):
    """One or more teardown steps failed."""

    def __init__(self, message: str, errors: Optional[List[Exception]] = None) -> None:
        super().__init__(message, stage="cleanup")
        self.errors = errors or []
