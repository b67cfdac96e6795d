import time
import logging
import requests
from urllib.parse import urlsplit
from typing import TYPE_CHECKING, Any, Dict
from procfixture import settings
from procfixture.exceptions import (
    ConfigurationError, PathResolutionError, ReadinessTimeoutError, ResourceAllocationError, SpawnError,
)
from procfixture.process.session import Command, OutputBuffer, Session
from procfixture.process.templates import merge_args, render_templates
from .state import DefaultedInput, ProcessState

if TYPE_CHECKING:
    from .supervisor import ProcessSupervisor

log = logging.getLogger(__name__)


#* --- Defaulting ---
def resolve_binary_path(supervisor: "ProcessSupervisor", state: ProcessState) -> str:
    """
    Returns the configured path, or asks the path finder for one.

    :raises PathResolutionError: If the binary cannot be found.
    """
    if supervisor.path:
        state.path = supervisor.path
        return state.path

    path = supervisor.path_finder.find(supervisor.name)
    if not path:
        raise PathResolutionError(
            f"unable to find the {supervisor.name} binary; set the "
            f"{settings.ASSET_ENV_PREFIX}* environment variable or install it on the PATH",
            supervisor.name,
        )
    state.path = path
    return path


def allocate_data_dir(supervisor: "ProcessSupervisor", state: ProcessState) -> str:
    """
    Returns the configured data directory, or creates an ephemeral one.

    Only directories created here are marked for cleaning.

    :raises ResourceAllocationError: If the directory cannot be created.
    """
    if supervisor.data_dir:
        state.data_dir = str(supervisor.data_dir)
        return state.data_dir

    try:
        state.data_dir = supervisor.data_dir_manager.create()
    except Exception as e:
        raise ResourceAllocationError(
            f"failed to create data directory for {supervisor.name}: {e}", stage="data_dir"
        ) from e
    state.dir_needs_cleaning = True
    return state.data_dir


def allocate_address(supervisor: "ProcessSupervisor", state: ProcessState) -> Dict[str, Any]:
    """
    Returns the url, host and port the process will listen on.

    :raises ResourceAllocationError: If no address can be allocated.
    :raises ConfigurationError: If a configured URL has no host or port.
    """
    if supervisor.configured_url:
        parts = urlsplit(supervisor.configured_url)
        if not parts.hostname or parts.port is None:
            raise ConfigurationError(
                f"configured URL '{supervisor.configured_url}' for {supervisor.name} needs a host and a port"
            )
        return {"url": supervisor.configured_url, "host": parts.hostname, "port": parts.port}

    try:
        port, host = supervisor.address_manager.initialize(settings.DEFAULT_HOST)
    except Exception as e:
        raise ResourceAllocationError(
            f"failed to allocate an address for {supervisor.name}: {e}", stage="address"
        ) from e
    state.address_allocated = True
    return {"url": f"{settings.URL_SCHEME}://{host}:{port}", "host": host, "port": port}


def do_defaulting(supervisor: "ProcessSupervisor", state: ProcessState) -> DefaultedInput:
    """
    Resolves path, data directory and address, in that order, and freezes the result.

    Each stage only runs if the previous one succeeded. What was allocated is
    recorded on `state` as it happens.
    """
    path = resolve_binary_path(supervisor, state)
    data_dir = allocate_data_dir(supervisor, state)
    address = allocate_address(supervisor, state)

    return DefaultedInput(
        name=supervisor.name,
        url=address["url"],
        host=address["host"],
        port=address["port"],
        data_dir=data_dir,
        dir_needs_cleaning=state.dir_needs_cleaning,
        path=path,
        start_timeout=supervisor.start_timeout or settings.DEFAULT_START_TIMEOUT,
        stop_timeout=supervisor.stop_timeout or settings.DEFAULT_STOP_TIMEOUT,
    )


#* --- Process Creation ---
def render_args(supervisor: "ProcessSupervisor", state: ProcessState) -> None:
    """Merges the extra args into the defaults and renders them with the resolved values."""
    defaulted = state.defaulted
    context = {
        "url": defaulted.url,
        "host": defaulted.host,
        "port": defaulted.port,
        "data_dir": defaulted.data_dir,
    }
    context.update(supervisor.template_context(defaulted))
    templates = merge_args(supervisor.default_args, supervisor.extra_args)
    state.args = render_templates(templates, context)


def spawn(supervisor: "ProcessSupervisor", state: ProcessState) -> Session:
    """
    Hands the command to the process starter.

    :raises SpawnError: Unchanged if the starter raised one, otherwise with
        the starter's exception message as is.
    """
    command = Command(path=state.defaulted.path, args=list(state.args), name=supervisor.name)
    state.output = OutputBuffer(tee=supervisor.out)
    log.info(f"Starting process: {supervisor.name}...")
    log.debug(f"{supervisor.name} command line: {command.argv}")
    try:
        session = supervisor.process_starter(command, state.output)
    except SpawnError:
        raise
    except Exception as e:
        raise SpawnError(str(e)) from e
    if session is None:
        raise SpawnError(f"process starter returned no session for {supervisor.name}")
    state.session = session
    return session


#* --- Readiness ---
def _raise_if_exited(state: ProcessState) -> None:
    """Fails fast once the process has closed its output."""
    if state.output.closed:
        # EOF can arrive before the process is reaped.
        state.session.wait(settings.OUTPUT_DRAIN_TIMEOUT)
        code = state.session.exit_code()
        raise ReadinessTimeoutError(
            f"process {state.name} exited with code {code} before becoming ready",
            state.defaulted.start_timeout,
        )


def wait_for_start_message(state: ProcessState) -> None:
    """
    Waits for the start message to show up in the process output.

    :raises ReadinessTimeoutError: If it does not appear in time.
    """
    timeout = state.defaulted.start_timeout
    if state.output.wait_for(state.start_message, timeout):
        return
    _raise_if_exited(state)
    raise ReadinessTimeoutError(
        f"timeout waiting for process {state.name} to start: "
        f"'{state.start_message}' not seen in output after {timeout}s",
        timeout,
    )


def wait_for_health_check(state: ProcessState) -> None:
    """
    Polls the health check URL until it answers 200 OK.

    :raises ReadinessTimeoutError: If it never does within the start timeout.
    """
    timeout = state.defaulted.start_timeout
    url = state.health_check_url
    log.info(f"Waiting for {state.name} health check at {url}...")
    start_time = time.monotonic()
    while time.monotonic() - start_time < timeout:
        try:
            response = requests.get(url, timeout=settings.HEALTH_CHECK_REQUEST_TIMEOUT)
            if response.status_code == 200:
                return
            log.debug(f"{state.name} health check returned {response.status_code}")
        except requests.RequestException as e:
            log.debug(f"{state.name} health check not answering yet: {e}")
        _raise_if_exited(state)
        time.sleep(settings.HEALTH_CHECK_INTERVAL)

    raise ReadinessTimeoutError(
        f"timeout waiting for process {state.name} to start: health check {url} not OK after {timeout}s",
        timeout,
    )


def wait_until_ready(state: ProcessState) -> None:
    """Waits on the health check if there is one, otherwise on the start message."""
    start_time = time.monotonic()
    if state.health_check_url:
        wait_for_health_check(state)
    else:
        wait_for_start_message(state)
    log.info(f"{state.name} is ready after {time.monotonic() - start_time:.2f} seconds.")
