import time
import logging
from typing import IO, Any, Dict, List, Mapping, Optional, Sequence
from procfixture import settings
from procfixture.exceptions import FixtureError
from procfixture.process.addr import AddressManager, PortManager
from procfixture.process.binpath import BinaryPathFinder, DefaultBinaryPathFinder
from procfixture.process.datadir import DataDirManager, TempDirManager
from procfixture.process.session import OutputBuffer, ProcessStarter, start_process
from procfixture.supervisor import shutdown, startup
from .state import DefaultedInput, ProcessState

log = logging.getLogger(__name__)


class ProcessSupervisor:
    """
    Runs one external server process as a test fixture.

    `start()` resolves the binary, allocates a data directory and an address,
    renders the arguments, spawns the process and blocks until it is ready.
    `stop()` terminates it, escalating to a kill on timeout, and gives every
    allocated resource back. One supervisor runs at most one process at a time.

    The collaborators (address manager, data dir manager, path finder and
    process starter) are injectable; production implementations are used
    when they are not given.
    """

    def __init__(
        self,
        name: str,
        default_args: Sequence[str] = (),
        url: Optional[str] = None,
        path: Optional[str] = None,
        data_dir: Optional[str] = None,
        extra_args: Optional[Mapping[str, str]] = None,
        start_timeout: Optional[float] = None,
        stop_timeout: Optional[float] = None,
        out: Optional[IO[str]] = None,
        address_manager: Optional[AddressManager] = None,
        data_dir_manager: Optional[DataDirManager] = None,
        path_finder: Optional[BinaryPathFinder] = None,
        process_starter: Optional[ProcessStarter] = None,
    ) -> None:
        """
        :param name: Binary name, used for path lookup and logging.
        :param default_args: Argument templates, e.g. '--listen={url}'.
        :param url: Listen URL; a free localhost port is allocated if not given.
        :param path: Path to the binary; looked up by name if not given.
        :param data_dir: Working directory for the server; an ephemeral one
            is created (and removed on stop) if not given.
        :param extra_args: Flags merged into, and overriding, the default args.
        :param start_timeout: Seconds to wait for readiness (default 20).
        :param stop_timeout: Seconds to wait for a graceful exit (default 20).
        :param out: Text stream receiving a copy of the process output.
        """
        self.name = name
        self.default_args = tuple(default_args)
        self.configured_url = url
        self.path = path
        self.data_dir = data_dir
        self.extra_args: Dict[str, str] = dict(extra_args or {})
        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout
        self.out = out

        self.address_manager = address_manager or PortManager()
        self.data_dir_manager = data_dir_manager or TempDirManager(name)
        self.path_finder = path_finder or DefaultBinaryPathFinder()
        self.process_starter = process_starter or start_process

        self.process_state: Optional[ProcessState] = None

    #* --- Extension points ---
    def start_message(self, defaulted: DefaultedInput) -> Optional[str]:
        """The readiness marker to wait for in the output. None disables the wait."""
        return None

    health_check_path: Optional[str] = None

    def template_context(self, defaulted: DefaultedInput) -> Dict[str, Any]:
        """Additional placeholders available to the argument templates."""
        return {}

    def validate(self) -> None:
        """Checks the configuration before anything is allocated."""

    #* --- Lifecycle ---
    def start(self) -> None:
        """
        Starts the process and waits for it to become ready.

        If a stage before the spawn fails, whatever this attempt allocated is
        released before the error is raised. If the process was spawned but
        did not become ready, it is left running and `stop()` must be called.

        :raises FixtureError: A subclass naming the stage that failed.
        """
        if self.process_state is not None and self.process_state.is_running:
            raise FixtureError(f"{self.name} is already running; stop it before starting again", stage="start")

        self.validate()
        state = self.process_state = ProcessState(name=self.name)
        start_time = time.monotonic()

        try:
            state.defaulted = startup.do_defaulting(self, state)
            state.start_message = self.start_message(state.defaulted)
            if self.health_check_path:
                state.health_check_url = f"{state.defaulted.url.rstrip('/')}{self.health_check_path}"
            startup.render_args(self, state)
            startup.spawn(self, state)
        except Exception as e:
            log.error(f"Failed to start {self.name}: {e}")
            cleanup_errors = shutdown.release_resources(self, state)
            for error in cleanup_errors:
                log.error(f"Cleanup after failed start of {self.name}: {error}")
            raise

        if state.start_message or state.health_check_url:
            startup.wait_until_ready(state)
        log.info(f"{self.name} started successfully in {time.monotonic() - start_time:.2f} seconds.")

    def stop(self) -> None:
        """
        Stops the process gracefully, waits for it and cleans up.

        A no-op if `start()` never produced a process, and on every call
        after the first.

        :raises FixtureError: If termination timed out or cleanup failed.
            All teardown steps are attempted before raising.
        """
        state = self.process_state
        if state is None or state.session is None:
            log.debug(f"{self.name} was never started, nothing to stop.")
            return
        if state.stopped:
            log.debug(f"{self.name} is already stopped.")
            return

        state.stopped = True
        log.info(f"Stopping {self.name}...")
        errors: List[FixtureError] = []
        try:
            errors.extend(shutdown.stop_session(state))
        finally:
            errors.extend(shutdown.release_resources(self, state))
        shutdown.raise_errors(self.name, errors)

    #* --- Queries ---
    def url(self) -> str:
        """
        Returns the URL the process listens on.

        :raises Exception: Whatever the address manager raised, unchanged.
        """
        if self.configured_url:
            return self.configured_url
        host = self.address_manager.host()
        port = self.address_manager.port()
        return f"{settings.URL_SCHEME}://{host}:{port}"

    def buffer(self) -> Optional[OutputBuffer]:
        """The session's live output buffer, or None before a process was spawned."""
        if self.process_state is None or self.process_state.session is None:
            return None
        return self.process_state.session.buffer()

    def exit_code(self) -> int:
        """The process's exit status, RUNNING_EXIT_CODE while it runs or before it started."""
        if self.process_state is None or self.process_state.session is None:
            return settings.RUNNING_EXIT_CODE
        return self.process_state.session.exit_code()

    def __enter__(self) -> "ProcessSupervisor":
        try:
            self.start()
        except Exception:
            try:
                self.stop()
            except FixtureError as stop_error:
                log.error(f"Failed to stop {self.name} after a failed start: {stop_error}")
            raise
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
