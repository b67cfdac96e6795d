import logging
from typing import TYPE_CHECKING, List, Optional
from procfixture import settings
from procfixture.exceptions import CleanupError, FixtureError, StopTimeoutError
from .state import ProcessState

if TYPE_CHECKING:
    from .supervisor import ProcessSupervisor

log = logging.getLogger(__name__)


def _forceful_kill(state: ProcessState) -> bool:
    """Kills a process that ignored the termination signal. Returns True if it exited."""
    log.warning(f"{state.name} did not terminate gracefully. Forcing shutdown...")
    state.session.kill()
    return state.session.wait(settings.KILL_TIMEOUT)


def stop_session(state: ProcessState) -> List[FixtureError]:
    """
    Terminates the session, waits for it and records its exit code.

    SIGTERM first; if the process is still alive after the stop timeout it
    is killed, so this never blocks longer than stop timeout + KILL_TIMEOUT.

    :param state: The state of the cycle being stopped.
    :return list: Errors encountered; empty on a clean stop.
    """
    errors: List[FixtureError] = []
    session = state.session
    timeout = state.defaulted.stop_timeout

    try:
        session.terminate()
    except Exception as e:
        errors.append(CleanupError(f"failed to send termination signal to {state.name}: {e}"))

    graceful: Optional[bool] = None
    try:
        graceful = session.wait(timeout)
    except Exception as e:
        errors.append(CleanupError(f"failed waiting for {state.name} to stop: {e}"))

    if not graceful:
        try:
            exited = _forceful_kill(state)
        except Exception as e:
            log.error(f"Failed to kill {state.name}: {e}")
            exited = False
        # None means the wait itself failed, which is already recorded.
        if graceful is False:
            outcome = "killed" if exited else "still running after kill"
            errors.append(StopTimeoutError(
                f"timeout waiting for process {state.name} to stop after {timeout}s ({outcome})",
                timeout,
                killed=exited,
            ))

    try:
        state.exit_code = session.exit_code()
    except Exception as e:
        errors.append(CleanupError(f"failed to query the exit code of {state.name}: {e}"))
    log.info(f"{state.name} stopped with exit code {state.exit_code}")
    return errors


def release_resources(supervisor: "ProcessSupervisor", state: ProcessState) -> List[FixtureError]:
    """
    Destroys the data directory (if this cycle created it) and releases the address.

    Each resource is released at most once; the flags on `state` are cleared
    before the release is attempted.

    :return list: Errors encountered; the remaining steps still run.
    """
    errors: List[FixtureError] = []

    if state.dir_needs_cleaning:
        state.dir_needs_cleaning = False
        try:
            supervisor.data_dir_manager.destroy()
        except Exception as e:
            log.error(f"Failed to remove data directory '{state.data_dir}' of {state.name}: {e}")
            errors.append(CleanupError(f"failed to remove data directory '{state.data_dir}' of {state.name}: {e}"))

    if state.address_allocated:
        state.address_allocated = False
        try:
            supervisor.address_manager.release()
        except Exception as e:
            log.error(f"Failed to release address of {state.name}: {e}")
            errors.append(CleanupError(f"failed to release address of {state.name}: {e}"))

    return errors


def raise_errors(name: str, errors: List[FixtureError]) -> None:
    """Raises a single error as is, or several wrapped in a CleanupError."""
    if not errors:
        return
    if len(errors) == 1:
        raise errors[0]
    summary = "; ".join(str(e) for e in errors)
    raise CleanupError(f"{len(errors)} errors while stopping {name}: {summary}", errors)
