from abc import ABC, abstractmethod
from typing import Any, Dict
from .config import Config


class Fixture(ABC):
    """Some kind of test cluster which can be started, interacted with, and stopped."""

    @abstractmethod
    def setup(self, config: Config) -> None:
        """
        Starts the test cluster according to `config`.

        Blocks until the control plane is ready to receive client
        connections. Raises if the config asks for an unsupported feature or
        the cluster fails to start.
        """

    @abstractmethod
    def tear_down(self) -> None:
        """
        Cleanly stops the test cluster. Idempotent.

        Blocks until the cluster has stopped or stopping was given up on,
        in which case an error is raised.
        """

    @abstractmethod
    def client_config(self) -> Dict[str, Any]:
        """Returns a kubeconfig-shaped dict a client can use to reach the cluster."""
