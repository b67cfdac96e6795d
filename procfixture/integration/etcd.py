from urllib.parse import urlsplit
from typing import IO, Mapping, Optional, Sequence
from procfixture import settings
from procfixture.process import AddressManager, BinaryPathFinder, DataDirManager, ProcessStarter
from procfixture.supervisor import DefaultedInput, ProcessSupervisor

# Exposed so callers can build on the defaults; a tuple, so it cannot be changed in place.
ETCD_DEFAULT_ARGS = settings.ETCD_DEFAULT_ARGS


def get_etcd_start_message(url: str, host: str, port: int) -> str:
    """Returns the line etcd logs once it serves clients on the given address."""
    if urlsplit(url).scheme == "https":
        return f"{settings.ETCD_SECURE_START_MESSAGE}{host}:{port}"
    return f"{settings.ETCD_INSECURE_START_MESSAGE}{host}:{port}"


class Etcd(ProcessSupervisor):
    """
    Runs an etcd server.

    The binary is looked up through TEST_ASSET_ETCD, the test assets
    directory and the PATH unless `path` is given. Without a `url`, etcd
    listens for clients on a free localhost port.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        path: Optional[str] = None,
        data_dir: Optional[str] = None,
        extra_args: Optional[Mapping[str, str]] = None,
        start_timeout: Optional[float] = None,
        stop_timeout: Optional[float] = None,
        out: Optional[IO[str]] = None,
        default_args: Sequence[str] = ETCD_DEFAULT_ARGS,
        address_manager: Optional[AddressManager] = None,
        data_dir_manager: Optional[DataDirManager] = None,
        path_finder: Optional[BinaryPathFinder] = None,
        process_starter: Optional[ProcessStarter] = None,
    ) -> None:
        super().__init__(
            settings.ETCD_BINARY_NAME,
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

    def start_message(self, defaulted: DefaultedInput) -> str:
        return get_etcd_start_message(defaulted.url, defaulted.host, defaulted.port)
