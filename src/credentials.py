"""Cloud credentials and alias-based lookup.

Credentials normally arrive with the inputs. When they don't, the
project's access alias is looked up in a YAML access file:

    default:
      AccountID: "1234"
      AccessKeyID: LTAI...
      AccessKeySecret: ...
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from errors import CredentialsNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_ALIAS = 'default'


@dataclass
class Credentials:
    """Provider credentials. Secret fields are excluded from repr."""
    account_id: str
    access_key_id: str = field(repr=False)
    access_key_secret: str = field(repr=False)

    @classmethod
    def from_inputs(cls, data: Optional[dict]) -> Optional['Credentials']:
        """Build from {AccountID, AccessKeyID, AccessKeySecret}; None if empty."""
        if not data:
            return None
        return cls(
            account_id=str(data.get('AccountID', '')),
            access_key_id=str(data.get('AccessKeyID', '')),
            access_key_secret=str(data.get('AccessKeySecret', '')),
        )

    @property
    def secrets(self) -> list[str]:
        """Values that must never be logged."""
        return [v for v in (self.access_key_id, self.access_key_secret) if v]


class CredentialStore:
    """Reads credentials from a YAML access file keyed by alias."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def get(self, alias: Optional[str] = None) -> Credentials:
        """Look up credentials for alias.

        Raises:
            CredentialsNotFoundError: If the file or alias is missing
        """
        alias = alias or DEFAULT_ALIAS
        if not self.path.exists():
            raise CredentialsNotFoundError(alias, f"{self.path} does not exist")

        with open(self.path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        entry = data.get(alias) if isinstance(data, dict) else None
        if not entry:
            raise CredentialsNotFoundError(alias, f"no entry in {self.path}")

        credentials = Credentials.from_inputs(entry)
        assert credentials is not None
        logger.debug(f"Loaded credentials for alias '{alias}' (account {credentials.account_id})")
        return credentials
