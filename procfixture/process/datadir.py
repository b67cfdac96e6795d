import shutil
import logging
import tempfile
from abc import ABC, abstractmethod
from typing import Optional
from procfixture import settings

log = logging.getLogger(__name__)


class DataDirManager(ABC):
    """Creates and destroys the ephemeral working directory of a fixture."""

    @abstractmethod
    def create(self) -> str:
        """Creates a new, unique and empty directory and returns its path."""

    @abstractmethod
    def destroy(self) -> None:
        """Recursively removes the current directory."""


class TempDirManager(DataDirManager):
    """Hands out directories created with `tempfile.mkdtemp`."""

    def __init__(self, name: str = "fixture", root: Optional[str] = None) -> None:
        """
        :param name: Logical fixture name, used in the directory prefix.
        :param root: Parent directory; defaults to DATA_DIR_ROOT or the system temp dir.
        """
        self.prefix = f"{settings.DATA_DIR_PREFIX}{name}_"
        self.root = root or settings.DATA_DIR_ROOT
        self.path: Optional[str] = None

    def create(self) -> str:
        self.path = tempfile.mkdtemp(prefix=self.prefix, dir=self.root)
        log.debug(f"Created data directory {self.path}")
        return self.path

    def destroy(self) -> None:
        if self.path is None:
            return
        path, self.path = self.path, None
        shutil.rmtree(path)
        log.debug(f"Removed data directory {path}")
