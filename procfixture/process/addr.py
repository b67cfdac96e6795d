import socket
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Set, Tuple
from procfixture import settings
from procfixture.exceptions import ResourceAllocationError

log = logging.getLogger(__name__)

# Ports handed out by any PortManager in this interpreter and not yet released.
_reserved_ports: Set[int] = set()
_reserved_ports_lock = threading.Lock()


class AddressManager(ABC):
    """Allocates a network address for a fixture to listen on."""

    @abstractmethod
    def initialize(self, preferred_host: str = settings.DEFAULT_HOST) -> Tuple[int, str]:
        """
        Allocates a free address, replacing any previous allocation.

        :param preferred_host: The host name to allocate on.
        :return tuple: (port, host) of the new allocation.
        """

    @abstractmethod
    def host(self) -> str:
        """Returns the host of the most recent successful allocation, released or not."""

    @abstractmethod
    def port(self) -> int:
        """Returns the port of the most recent successful allocation, released or not."""

    @abstractmethod
    def release(self) -> None:
        """Gives the current allocation back. A no-op if there is none."""


class PortManager(AddressManager):
    """
    Finds free TCP ports by letting the kernel pick one for a bound socket.

    The chosen port is recorded in a process-wide reservation set before the
    socket is closed, so parallel supervisors in the same interpreter never
    receive the same port until it is released.
    """

    def __init__(self) -> None:
        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._reserved = False

    def initialize(self, preferred_host: str = settings.DEFAULT_HOST) -> Tuple[int, str]:
        host = preferred_host or settings.DEFAULT_HOST
        self.release()

        for attempt in range(settings.PORT_ALLOCATION_ATTEMPTS):
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                    sock.bind((host, 0))
                    bound_host, port = sock.getsockname()[:2]
                    with _reserved_ports_lock:
                        if port in _reserved_ports:
                            log.debug(f"Port {port} is already reserved, retrying (attempt {attempt + 1}).")
                            continue
                        _reserved_ports.add(port)
            except OSError as e:
                raise ResourceAllocationError(
                    f"unable to bind a free port on '{host}': {e}", stage="address"
                ) from e

            self._host, self._port = bound_host, port
            self._reserved = True
            log.debug(f"Allocated address {bound_host}:{port}")
            return port, bound_host

        raise ResourceAllocationError(
            f"no free port found on '{host}' after {settings.PORT_ALLOCATION_ATTEMPTS} attempts",
            stage="address",
        )

    def host(self) -> str:
        if self._host is None:
            raise ResourceAllocationError("address manager is not initialized, no host available", stage="address")
        return self._host

    def port(self) -> int:
        if self._port is None:
            raise ResourceAllocationError("address manager is not initialized, no port available", stage="address")
        return self._port

    def release(self) -> None:
        # host() and port() keep answering with the released address.
        if not self._reserved:
            return
        with _reserved_ports_lock:
            _reserved_ports.discard(self._port)
        self._reserved = False
        log.debug(f"Released address {self._host}:{self._port}")
