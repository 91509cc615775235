"""Process environment for pulumi invocations."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from config import DEFAULT_PASSPHRASE
from engine.locator import LocatorResult

logger = logging.getLogger(__name__)

FEATURE_FLAGS = {
    'PULUMI_SKIP_UPDATE_CHECK': 'true',
    'PULUMI_ENABLE_LEGACY_PLUGIN_SEARCH': 'false',
    'PULUMI_SKIP_CONFIRMATIONS': 'true',
}


@dataclass
class EngineEnvironment:
    """Environment shared by every pulumi subprocess in this process."""
    home_dir: Path
    bin_dir: Path
    config_passphrase: str = field(repr=False)
    feature_flags: dict = field(default_factory=dict)
    prepend_bin: bool = False
    base_env: dict = field(default_factory=dict, repr=False)

    def engine_vars(self) -> dict:
        """Variables the driver sets itself."""
        return {
            'PULUMI_CONFIG_PASSPHRASE': self.config_passphrase,
            **self.feature_flags,
            'PULUMI_HOME': str(self.home_dir),
        }

    def as_env(self) -> dict:
        """Full subprocess environment.

        Ambient values win over driver values for keys they define, so
        proxy settings and deliberate user overrides pass through.
        """
        env = {**self.engine_vars(), **self.base_env}
        if self.prepend_bin:
            path = env.get('PATH', '')
            env['PATH'] = f'{self.bin_dir}{os.pathsep}{path}' if path else str(self.bin_dir)
        return env


def build_env(
    located: LocatorResult,
    passphrase: str = DEFAULT_PASSPHRASE,
    base_env: Optional[dict] = None,
) -> EngineEnvironment:
    """Build the engine environment from a locator result."""
    if passphrase == DEFAULT_PASSPHRASE:
        logger.warning("PULUMI_CONFIG_PASSPHRASE is the shared default; stack secrets are not isolated per deployment")
    return EngineEnvironment(
        home_dir=located.home_dir,
        bin_dir=located.bin_dir,
        config_passphrase=passphrase,
        feature_flags=dict(FEATURE_FLAGS),
        prepend_bin=not located.already_installed,
        base_env=dict(os.environ if base_env is None else base_env),
    )
