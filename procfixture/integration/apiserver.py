from typing import IO, Any, Dict, Mapping, Optional, Sequence
from procfixture import settings
from procfixture.exceptions import ConfigurationError
from procfixture.process import AddressManager, BinaryPathFinder, DataDirManager, ProcessStarter
from procfixture.supervisor import DefaultedInput, ProcessSupervisor

APISERVER_DEFAULT_ARGS = settings.APISERVER_DEFAULT_ARGS


class APIServer(ProcessSupervisor):
    """
    Runs a kube-apiserver backed by an already running etcd.

    Readiness is detected by polling the /healthz endpoint rather than by
    scanning the output. The ephemeral data directory doubles as cert dir.
    """

    health_check_path = settings.APISERVER_HEALTH_CHECK_PATH

    def __init__(
        self,
        etcd_url: Optional[str] = None,
        url: Optional[str] = None,
        path: Optional[str] = None,
        data_dir: Optional[str] = None,
        extra_args: Optional[Mapping[str, str]] = None,
        start_timeout: Optional[float] = None,
        stop_timeout: Optional[float] = None,
        out: Optional[IO[str]] = None,
        default_args: Sequence[str] = APISERVER_DEFAULT_ARGS,
        address_manager: Optional[AddressManager] = None,
        data_dir_manager: Optional[DataDirManager] = None,
        path_finder: Optional[BinaryPathFinder] = None,
        process_starter: Optional[ProcessStarter] = None,
    ) -> None:
        """
        :param etcd_url: Client URL of the etcd the API server stores its state in.

        The remaining parameters are those of `ProcessSupervisor`.
        """
        super().__init__(
            settings.APISERVER_BINARY_NAME,
            default_args=default_args,
            url=url,
            path=path,
            data_dir=data_dir,
            extra_args=extra_args,
            start_timeout=start_timeout,
            stop_timeout=stop_timeout,
            out=out,
            address_manager=address_manager,
            data_dir_manager=data_dir_manager,
            path_finder=path_finder,
            process_starter=process_starter,
        )
        self.etcd_url = etcd_url

    def validate(self) -> None:
        if not self.etcd_url:
            raise ConfigurationError("expected etcd_url to be configured for the API server")

    def template_context(self, defaulted: DefaultedInput) -> Dict[str, Any]:
        return {"etcd_url": self.etcd_url}
