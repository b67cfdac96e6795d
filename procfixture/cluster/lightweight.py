import logging
from typing import IO, Any, Callable, Dict, List, Optional
from procfixture.exceptions import ConfigurationError, FixtureError
from procfixture.integration import APIServer, Etcd
from procfixture.supervisor import shutdown
from .config import Config, do_defaulting
from .fixture import Fixture

log = logging.getLogger(__name__)

CLUSTER_NAME = "procfixture"


class ControlPlane(Fixture):
    """
    A node-less cluster made of an etcd and an API server pointed at it.

    The factories default to the real fixtures and exist so tests can
    substitute supervisors wired to fake collaborators.
    """

    def __init__(
        self,
        etcd_factory: Callable[..., Etcd] = Etcd,
        api_server_factory: Callable[..., APIServer] = APIServer,
        start_timeout: Optional[float] = None,
        stop_timeout: Optional[float] = None,
        out: Optional[IO[str]] = None,
    ) -> None:
        self.etcd_factory = etcd_factory
        self.api_server_factory = api_server_factory
        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout
        self.out = out
        self.etcd: Optional[Etcd] = None
        self.api_server: Optional[APIServer] = None

    def setup(self, config: Config) -> None:
        config = do_defaulting(config)
        if config.shape.node_count > 0:
            raise ConfigurationError(
                f"the lightweight control plane does not run nodes (shape.node_count={config.shape.node_count})"
            )
        if self.etcd is not None or self.api_server is not None:
            raise FixtureError("control plane is already set up; tear it down first", stage="setup")

        timings = {"start_timeout": self.start_timeout, "stop_timeout": self.stop_timeout, "out": self.out}
        try:
            self.etcd = self.etcd_factory(
                data_dir=config.etcd.data_dir, extra_args=config.etcd.extra_args, **timings
            )
            self.etcd.start()

            self.api_server = self.api_server_factory(
                etcd_url=self.etcd.url(), extra_args=config.api.extra_args, **timings
            )
            self.api_server.start()
        except Exception as e:
            log.error(f"Control plane setup failed ({e}), tearing down what was started.")
            try:
                self.tear_down()
            except FixtureError as cleanup_error:
                log.error(f"Cleanup after failed control plane setup: {cleanup_error}")
            raise

        log.info(f"Control plane is up, API server at {self.api_server.url()}")

    def tear_down(self) -> None:
        errors: List[FixtureError] = []
        for supervisor in (self.api_server, self.etcd):
            if supervisor is None:
                continue
            try:
                supervisor.stop()
            except FixtureError as e:
                errors.append(e)
        self.api_server, self.etcd = None, None
        shutdown.raise_errors("control plane", errors)

    def client_config(self) -> Dict[str, Any]:
        if self.api_server is None:
            raise FixtureError("control plane is not set up", stage="client_config")
        return {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [{"name": CLUSTER_NAME, "cluster": {"server": self.api_server.url()}}],
            "contexts": [{"name": CLUSTER_NAME, "context": {"cluster": CLUSTER_NAME, "user": CLUSTER_NAME}}],
            "users": [{"name": CLUSTER_NAME, "user": {}}],
            "current-context": CLUSTER_NAME,
        }
