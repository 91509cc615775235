"""Provider plugin resolution and installation.

Version resolution order:
1. plugins.versions override from config
2. Latest published version of the platform's PyPI package
3. Pinned version from the platform table
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import requests

from config import DriverConfig
from errors import EngineCommandError, PluginUnsupportedError
from platforms import PLATFORMS, Platform, PlatformSpec

if TYPE_CHECKING:
    from stack import StackHandle

logger = logging.getLogger(__name__)

PYPI_URL = 'https://pypi.org/pypi/{package}/json'
LOOKUP_TIMEOUT = 10


@dataclass(frozen=True)
class PluginSpec:
    """A resolved plugin to install."""
    name: str
    version: str


def latest_version(package: str, timeout: float = LOOKUP_TIMEOUT) -> Optional[str]:
    """Latest published version of a PyPI package, or None on any lookup failure."""
    url = PYPI_URL.format(package=package)
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        version = resp.json()['info']['version']
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.warning(f"Could not resolve latest version of {package}: {e}")
        return None
    return str(version)


class PluginInstaller:
    """Ensures the platform plugin is installed before a mutating call."""

    def __init__(self, config: DriverConfig, table: Optional[dict[Platform, PlatformSpec]] = None):
        self.config = config
        self.table = PLATFORMS if table is None else table

    def lookup(self, platform: str) -> Optional[PlatformSpec]:
        member = Platform.parse(platform)
        if member is None:
            return None
        return self.table.get(member)

    def resolve(self, platform: str, spec: PlatformSpec) -> PluginSpec:
        if override := self.config.plugin_versions.get(platform):
            return PluginSpec(name=spec.plugin, version=override)
        if self.config.resolve_latest_plugins:
            if version := latest_version(spec.package):
                return PluginSpec(name=spec.plugin, version=version)
        return PluginSpec(name=spec.plugin, version=spec.pinned_version)

    def install(self, platform: str, handle: 'StackHandle') -> PluginSpec:
        """Install the plugin for platform into handle's workspace.

        Raises:
            PluginUnsupportedError: If platform has no plugin mapping. The
                stack is destroyed and its record removed first.
        """
        spec = self.lookup(platform)
        if spec is None:
            self._discard_stack(handle)
            raise PluginUnsupportedError(platform)

        plugin = self.resolve(platform, spec)
        logger.info(f"[{handle.stack_name}] Installing plugin {plugin.name}:v{plugin.version}")
        handle.workspace.install_plugin(plugin.name, plugin.version)
        return plugin

    def _discard_stack(self, handle: 'StackHandle') -> None:
        """Tear down and remove a stack that can never be used.

        Engine failures here are logged so the caller still sees
        PluginUnsupportedError and can drop its identity record.
        """
        logger.error(f"[{handle.stack_name}] No plugin for platform, removing stack")
        try:
            handle.workspace.destroy(handle.stack_name)
        except EngineCommandError as e:
            logger.warning(f"[{handle.stack_name}] Destroy before removal failed: {e}")
        try:
            handle.workspace.remove_stack(handle.stack_name)
        except EngineCommandError as e:
            logger.warning(f"[{handle.stack_name}] Stack removal failed: {e}")
