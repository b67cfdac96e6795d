import sys
import time
import psutil
import logging
import threading
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Dict, List, Optional
from procfixture import settings
from procfixture.exceptions import SpawnError

log = logging.getLogger(__name__)


class OutputBuffer:
    """
    A thread-safe, append-only text buffer for a process's combined output.

    Scanning never consumes content: `wait_for` can be called any number of
    times with the same or different substrings.
    """

    def __init__(self, tee: Optional[IO[str]] = None) -> None:
        """
        :param tee: Optional text stream that receives a copy of every write.
        """
        self._chunks: List[str] = []
        self._text = ""
        self._closed = False
        self._cond = threading.Condition()
        self._tee = tee

    def write(self, data: str) -> int:
        with self._cond:
            if self._closed:
                raise ValueError("write to a closed output buffer")
            self._chunks.append(data)
            self._cond.notify_all()
        if self._tee is not None:
            self._tee.write(data)
            self._tee.flush()
        return len(data)

    def contents(self) -> str:
        with self._cond:
            if self._chunks:
                self._text += "".join(self._chunks)
                self._chunks.clear()
            return self._text

    def contains(self, substring: str) -> bool:
        return substring in self.contents()

    def close(self) -> None:
        """Marks the end of the output, waking any waiters."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def wait_for(self, substring: str, timeout: float) -> bool:
        """
        Blocks until `substring` appears in the output.

        :param substring: The text to look for.
        :param timeout: Maximum number of seconds to wait.
        :return bool: True if found; False on timeout or if the buffer was closed without it.
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                if substring in self.contents():
                    return True
                if self._closed:
                    return False
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(min(remaining, settings.READINESS_POLL_INTERVAL))


@dataclass
class Command:
    """The executable and arguments a supervisor asks its starter to run."""

    path: str
    args: List[str] = field(default_factory=list)
    name: str = ""
    env: Optional[Dict[str, str]] = None
    cwd: Optional[str] = None

    @property
    def argv(self) -> List[str]:
        return [self.path, *self.args]


class Session(ABC):
    """A live handle to one spawned OS process."""

    @abstractmethod
    def buffer(self) -> OutputBuffer:
        """Returns the live buffer holding the process's combined output."""

    @abstractmethod
    def exit_code(self) -> int:
        """Returns RUNNING_EXIT_CODE while running, otherwise the exit status."""

    @abstractmethod
    def terminate(self, sig: Optional[int] = None) -> None:
        """Sends a termination signal (SIGTERM if not given)."""

    @abstractmethod
    def kill(self) -> None:
        """Forcefully kills the process and all of its children."""

    @abstractmethod
    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the process exits. Returns False if `timeout` elapsed first."""


ProcessStarter = Callable[[Command, OutputBuffer], Session]


def exit_status(returncode: Optional[int]) -> int:
    """Maps a Popen returncode to a shell-style exit status (-15 -> 143)."""
    if returncode is None:
        return settings.RUNNING_EXIT_CODE
    if returncode < 0:
        return 128 - returncode
    return returncode


def _read_pipe(pipe, process_name: str, output: OutputBuffer) -> None:
    """Target function for reader threads. Copies lines from a subprocess pipe into the buffer."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    level = logging.getLevelName(settings.PROCESS_OUTPUT_LOG_LEVEL)
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace")
            output.write(line)
            if line.strip():
                proc_logger.log(level, line.rstrip())
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()
        output.close()


class PopenSession(Session):
    """Session backed by `subprocess.Popen`, signalled through psutil."""

    def __init__(self, popen: subprocess.Popen, output: OutputBuffer, name: str) -> None:
        self.popen = popen
        self.name = name
        self.pid = popen.pid
        self._output = output
        self._reader = threading.Thread(
            target=_read_pipe,
            args=(popen.stdout, name, output),
            daemon=True,
            name=f"OutputReader-{popen.pid}",
        )
        self._reader.start()

    def buffer(self) -> OutputBuffer:
        return self._output

    def exit_code(self) -> int:
        return exit_status(self.popen.poll())

    def terminate(self, sig: Optional[int] = None) -> None:
        if self.popen.poll() is not None:
            log.debug(f"{self.name} (PID {self.pid}) already exited, not signalling.")
            return
        try:
            proc = psutil.Process(self.pid)
            if sig is None:
                log.debug(f"Sending SIGTERM to {self.name} (PID {self.pid})")
                proc.terminate()
            else:
                log.debug(f"Sending signal {sig} to {self.name} (PID {self.pid})")
                proc.send_signal(sig)
        except psutil.NoSuchProcess:
            log.debug(f"Process {self.pid} no longer exists, skipping termination.")

    def kill(self) -> None:
        try:
            parent = psutil.Process(self.pid)
            procs = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            log.debug(f"Process {self.pid} no longer exists, skipping forceful kill.")
            return

        for proc in procs:
            try:
                log.warning(f"Killing stubborn process {proc.pid} of {self.name}.")
                proc.kill()
            except psutil.NoSuchProcess:
                continue

    def wait(self, timeout: Optional[float] = None) -> bool:
        try:
            self.popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return False
        # Let the reader drain what the process wrote before exiting.
        self._reader.join(timeout=settings.OUTPUT_DRAIN_TIMEOUT)
        return True


def get_popen_creation_flags() -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments for subprocess.Popen.

    The child gets its own session (or process group on Windows) so signals
    sent to the test runner's terminal do not reach it directly.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


def start_process(command: Command, output: OutputBuffer) -> Session:
    """
    Launches `command` with stdout and stderr merged into `output`.

    :param command: What to run.
    :param output: Buffer receiving the combined output.
    :return Session: A handle to the running process.
    :raises SpawnError: If the executable cannot be started.
    """
    name = command.name or command.path
    try:
        popen = subprocess.Popen(
            command.argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            env=command.env,
            cwd=command.cwd,
            **get_popen_creation_flags(),
        )
    except OSError as e:
        raise SpawnError(f"failed to start {name} ({command.path}): {e}") from e

    log.info(f"{name} started with PID: {popen.pid}")
    return PopenSession(popen, output, name)
