import os
import re
import sys
import shutil
import logging
from pathlib import Path
from abc import ABC, abstractmethod
from typing import Optional, Union
from procfixture import settings

log = logging.getLogger(__name__)


class BinaryPathFinder(ABC):
    """Resolves the executable for a named binary."""

    @abstractmethod
    def find(self, name: str) -> Optional[str]:
        """Returns the path to the binary, or None if it cannot be located."""


def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    return base_path.with_suffix(".exe") if sys.platform == "win32" else base_path


def asset_env_var(name: str) -> str:
    """
    Returns the environment variable that overrides the path of a binary.

    e.g. 'kube-apiserver' -> 'TEST_ASSET_KUBE_APISERVER'
    """
    return settings.ASSET_ENV_PREFIX + re.sub(r"[^A-Z0-9]", "_", name.upper())


class DefaultBinaryPathFinder(BinaryPathFinder):
    """
    Looks a binary up in this order:

    1. the TEST_ASSET_<NAME> environment variable,
    2. the test assets directory (TEST_ASSETS_DIR),
    3. the PATH.
    """

    def __init__(self, assets_dir: Optional[Union[str, Path]] = None) -> None:
        self.assets_dir = Path(assets_dir) if assets_dir else settings.ASSETS_DIR

    def find(self, name: str) -> Optional[str]:
        env_var = asset_env_var(name)
        override = os.getenv(env_var)
        if override:
            log.debug(f"Using {name} from {env_var}: {override}")
            return override

        candidate = get_executable_path(self.assets_dir / name)
        if candidate.exists():
            log.debug(f"Using {name} from assets directory: {candidate}")
            return str(candidate)

        found = shutil.which(name)
        if found:
            log.debug(f"Using {name} from PATH: {found}")
        return found
