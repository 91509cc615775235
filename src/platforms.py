"""Supported cloud platforms and their pulumi provider details."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Platform(str, Enum):
    """Cloud platforms the driver knows how to configure."""
    ALICLOUD = 'alicloud'

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional['Platform']:
        """Return the member for value, or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class PlatformSpec:
    """Provider details for one platform.

    Attributes:
        plugin: pulumi resource plugin name
        package: PyPI package published alongside the plugin (latest-version lookup)
        pinned_version: version used when the latest version can't be resolved
        config_namespace: prefix for stack config keys (e.g. alicloud:region)
    """
    plugin: str
    package: str
    pinned_version: str
    config_namespace: str

    def config_values(self, access_key_id: str, access_key_secret: str, region: str) -> list[tuple[str, str, bool]]:
        """Stack config entries as (key, value, secret)."""
        ns = self.config_namespace
        return [
            (f'{ns}:secretKey', access_key_secret, True),
            (f'{ns}:accessKey', access_key_id, True),
            (f'{ns}:region', region, False),
        ]


PLATFORMS: dict[Platform, PlatformSpec] = {
    Platform.ALICLOUD: PlatformSpec(
        plugin='alicloud',
        package='pulumi-alicloud',
        pinned_version='2.38.0',
        config_namespace='alicloud',
    ),
}
