import sys
import time
import logging
from typing import List, Optional

from procfixture import settings
from procfixture.cluster import Config, ControlPlane, load_config
from procfixture.exceptions import FixtureError
from procfixture.integration import Etcd
from procfixture.log import setup_logging

log = logging.getLogger("console")

USAGE = """usage: procfixture <command> [--config FILE] [--verbose]

commands:
  etcd            run an etcd fixture until interrupted
  control-plane   run etcd + kube-apiserver until interrupted
  help            show this message
"""


def _pop_option(args: List[str], name: str) -> Optional[str]:
    """Removes '--name VALUE' or '--name=VALUE' from args and returns VALUE."""
    for i, arg in enumerate(args):
        if arg == name:
            if i + 1 >= len(args):
                raise ValueError(f"{name} needs a value")
            value = args[i + 1]
            del args[i:i + 2]
            return value
        if arg.startswith(f"{name}="):
            del args[i]
            return arg.split("=", 1)[1]
    return None


def _block_until_interrupted() -> None:
    print("Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down.")


def run_etcd(config: Config) -> int:
    etcd_config = config.etcd
    etcd = Etcd(
        data_dir=etcd_config.data_dir if etcd_config else None,
        extra_args=etcd_config.extra_args if etcd_config else None,
    )
    with etcd:
        print(f"etcd is listening on {etcd.url()}")
        _block_until_interrupted()
    return 0


def run_control_plane(config: Config) -> int:
    control_plane = ControlPlane()
    control_plane.setup(config)
    try:
        print(f"API server is listening on {control_plane.api_server.url()}")
        print(f"etcd is listening on {control_plane.etcd.url()}")
        _block_until_interrupted()
    finally:
        control_plane.tear_down()
    return 0


COMMANDS = {
    "etcd": run_etcd,
    "control-plane": run_control_plane,
}


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the command line."""
    args = list(sys.argv[1:] if argv is None else argv)

    verbose = "--verbose" in args
    if verbose:
        args.remove("--verbose")
    setup_logging(logging.DEBUG if verbose else settings.LOG_LEVEL)

    if not args or args[0] in ("help", "-h", "--help"):
        print(USAGE)
        return 0

    command = args.pop(0).lower()
    if command not in COMMANDS:
        log.error(f"Unknown command '{command}'.")
        print(USAGE)
        return 2

    try:
        config_path = _pop_option(args, "--config")
        if args:
            raise ValueError(f"unexpected arguments: {' '.join(args)}")
    except ValueError as e:
        log.error(str(e))
        return 2

    try:
        config = load_config(config_path) if config_path else Config()
        return COMMANDS[command](config)
    except FixtureError as e:
        log.error(f"{command} failed during {e.stage or 'startup'}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
