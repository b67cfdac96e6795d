from dataclasses import dataclass, field
from typing import List, Optional
from procfixture import settings
from procfixture.process.session import OutputBuffer, Session


@dataclass(frozen=True)
class DefaultedInput:
    """The resolved configuration of one start attempt. Never mutated."""

    name: str
    url: str
    host: str
    port: int
    data_dir: str
    dir_needs_cleaning: bool
    path: str
    start_timeout: float
    stop_timeout: float


@dataclass
class ProcessState:
    """
    Everything a supervisor knows about one start/stop cycle.

    Created when `start()` is entered and filled in as each stage succeeds,
    so teardown knows exactly which resources to give back.
    """

    name: str
    path: Optional[str] = None
    data_dir: Optional[str] = None
    dir_needs_cleaning: bool = False
    address_allocated: bool = False
    defaulted: Optional[DefaultedInput] = None
    args: List[str] = field(default_factory=list)
    start_message: Optional[str] = None
    health_check_url: Optional[str] = None
    output: Optional[OutputBuffer] = None
    session: Optional[Session] = None
    exit_code: int = settings.RUNNING_EXIT_CODE
    stopped: bool = False

    @property
    def is_running(self) -> bool:
        """True once a session exists and teardown has not run yet."""
        return self.session is not None and not self.stopped
