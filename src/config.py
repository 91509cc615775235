"""Driver configuration management.

Configuration is loaded from an optional YAML file:
- defaults: region, work_dir, runtime used when inputs omit them
- supported_platforms: allow-list of cloud platforms
- engine: pulumi version, download URL template, config passphrase
- plugins: latest-version lookup toggle and pinned version overrides
- credentials_file: YAML access file for alias-based credential lookup
- telemetry: optional report endpoint

Resolution order for the config file:
1. Explicit path (CLI --config)
2. $PULUMI_DRIVER_CONFIG environment variable
3. {driver_home}/config.yaml

A missing file is not an error; built-in defaults apply.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'cn-hangzhou'
DEFAULT_WORK_DIR = '.'
DEFAULT_RUNTIME = 'nodejs'
DEFAULT_ENGINE_VERSION = '2.19.0'
DEFAULT_DOWNLOAD_URL = 'https://get.pulumi.com/releases/sdk/pulumi-v{version}-{os}-{arch}.tar.gz'
# Shared across all deployments; changing it breaks decryption of existing stacks
DEFAULT_PASSPHRASE = 'password'

KNOWN_KEYS = {
    'defaults', 'supported_platforms', 'engine', 'plugins',
    'credentials_file', 'telemetry',
}


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class DriverConfig:
    """Resolved driver configuration."""
    home: Path = field(default_factory=lambda: get_driver_home())
    region: str = DEFAULT_REGION
    work_dir: str = DEFAULT_WORK_DIR
    runtime: str = DEFAULT_RUNTIME
    supported_platforms: list = field(default_factory=lambda: ['alicloud'])
    engine_version: str = DEFAULT_ENGINE_VERSION
    download_url: str = DEFAULT_DOWNLOAD_URL
    passphrase: str = DEFAULT_PASSPHRASE
    resolve_latest_plugins: bool = True
    plugin_versions: dict = field(default_factory=dict)
    credentials_file: Optional[Path] = None
    telemetry_endpoint: str = ''
    telemetry_timeout: float = 3.0

    def __post_init__(self):
        if isinstance(self.home, str):
            self.home = Path(self.home)
        if isinstance(self.credentials_file, str):
            self.credentials_file = Path(self.credentials_file).expanduser()
        if self.credentials_file is None:
            self.credentials_file = Path.home() / '.s' / 'access.yaml'

    @property
    def state_dir(self) -> Path:
        """Directory holding persisted deployment identities."""
        return self.home / '.states'

    @classmethod
    def from_dict(cls, data: dict, home: Optional[Path] = None) -> 'DriverConfig':
        """Build config from parsed YAML.

        Raises:
            ConfigError: On unknown keys or wrongly typed sections
        """
        unknown = set(data) - KNOWN_KEYS
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        config = cls(home=home) if home else cls()

        defaults = _section(data, 'defaults')
        if region := defaults.get('region'):
            config.region = str(region)
        if work_dir := defaults.get('work_dir'):
            config.work_dir = str(work_dir)
        if runtime := defaults.get('runtime'):
            config.runtime = str(runtime)

        if 'supported_platforms' in data:
            platforms = data['supported_platforms']
            if not isinstance(platforms, list) or not platforms:
                raise ConfigError("supported_platforms must be a non-empty list")
            config.supported_platforms = [str(p) for p in platforms]

        engine = _section(data, 'engine')
        if version := engine.get('version'):
            config.engine_version = str(version).lstrip('v')
        if url := engine.get('download_url'):
            config.download_url = str(url)
        if passphrase := engine.get('passphrase'):
            config.passphrase = str(passphrase)

        plugins = _section(data, 'plugins')
        if 'resolve_latest' in plugins:
            config.resolve_latest_plugins = bool(plugins['resolve_latest'])
        versions = plugins.get('versions') or {}
        if not isinstance(versions, dict):
            raise ConfigError("plugins.versions must be a mapping of platform to version")
        config.plugin_versions = {str(k): str(v).lstrip('v') for k, v in versions.items()}

        if credentials_file := data.get('credentials_file'):
            config.credentials_file = Path(str(credentials_file)).expanduser()

        telemetry = _section(data, 'telemetry')
        if endpoint := telemetry.get('endpoint'):
            config.telemetry_endpoint = str(endpoint)
        if timeout := telemetry.get('timeout'):
            config.telemetry_timeout = float(timeout)

        return config


def _section(data: dict, key: str) -> dict:
    """Return a mapping section, treating null as empty."""
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a YAML mapping")
    return data


def get_driver_home() -> Path:
    """Get the driver home directory.

    Resolution order:
    1. $PULUMI_DRIVER_HOME environment variable
    2. ~/.pulumi-driver
    """
    if env_path := os.environ.get('PULUMI_DRIVER_HOME'):
        return Path(env_path).expanduser()
    return Path.home() / '.pulumi-driver'


def find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Locate the config file, or None when no file applies.

    Raises:
        ConfigError: If an explicitly named file does not exist
    """
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return path

    if env_path := os.environ.get('PULUMI_DRIVER_CONFIG'):
        candidate = Path(env_path).expanduser()
        if not candidate.exists():
            raise ConfigError(f"PULUMI_DRIVER_CONFIG={env_path} does not exist")
        return candidate

    default = get_driver_home() / 'config.yaml'
    if default.exists():
        return default
    return None


def load_config(path: Optional[Path] = None) -> DriverConfig:
    """Load driver configuration, falling back to defaults."""
    config_file = find_config_file(path)
    if config_file is None:
        logger.debug("No config file found, using defaults")
        return DriverConfig()

    try:
        data = _parse_yaml(config_file)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
    logger.debug(f"Loaded config from {config_file}")
    return DriverConfig.from_dict(data)
