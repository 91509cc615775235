"""Find a usable pulumi binary, installing a private copy when needed."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from config import DriverConfig
from engine.installer import install_engine

logger = logging.getLogger(__name__)

Installer = Callable[[Path, str, str], Path]


@dataclass
class LocatorResult:
    """Where the engine lives.

    Attributes:
        already_installed: True when a user-installed pulumi was found
        base_dir: Parent of home_dir; local logins store state under it
        home_dir: PULUMI_HOME
        bin_dir: Directory holding the binary
        binary_path: Absolute path (or bare name when on PATH) to invoke
    """
    already_installed: bool
    base_dir: Path
    home_dir: Path
    bin_dir: Path
    binary_path: str


class BinaryLocator:
    """Decides which pulumi binary the driver runs."""

    def __init__(
        self,
        config: DriverConfig,
        user_home: Optional[Path] = None,
        installer: Installer = install_engine,
    ):
        self.config = config
        self.user_home = Path(user_home) if user_home else Path.home()
        self.installer = installer

    def locate(self) -> LocatorResult:
        """Prefer an existing ~/.pulumi install on PATH, else a private one.

        Raises:
            EngineInstallError: If the private install is missing and fails
        """
        user_pulumi_home = self.user_home / '.pulumi'
        found = shutil.which('pulumi')
        if user_pulumi_home.exists() and found:
            logger.debug(f"Using installed pulumi at {found}")
            return LocatorResult(
                already_installed=True,
                base_dir=user_pulumi_home.parent,
                home_dir=user_pulumi_home,
                bin_dir=Path(found).parent,
                binary_path=found,
            )

        home_dir = self.config.home / '.pulumi'
        bin_dir = home_dir / 'bin'
        binary = bin_dir / 'pulumi'
        if not binary.exists():
            logger.info(f"pulumi not found, installing private copy into {home_dir}")
            binary = self.installer(home_dir, self.config.engine_version, self.config.download_url)

        return LocatorResult(
            already_installed=False,
            base_dir=home_dir.parent,
            home_dir=home_dir,
            bin_dir=bin_dir,
            binary_path=str(binary),
        )
