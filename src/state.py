"""Deployment identity persistence.

The identity (project name + stack name) is the only state the driver
keeps between invocations. It is written right after input resolution so
that a later destroy finds the stack an earlier up created, even if the
up crashed half way.

State is persisted to {driver_home}/.states/{key}.json.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r'[^A-Za-z0-9._-]')


@dataclass(frozen=True)
class DeploymentIdentity:
    """(project_name, stack_name) pair addressing one stack."""
    project_name: str
    stack_name: str

    def to_dict(self) -> dict:
        return {'projectName': self.project_name, 'stackName': self.stack_name}

    @classmethod
    def from_dict(cls, data: dict) -> Optional['DeploymentIdentity']:
        """Build identity from persisted data; None if either name is missing."""
        project_name = data.get('projectName')
        stack_name = data.get('stackName')
        if not project_name or not stack_name:
            return None
        return cls(project_name=project_name, stack_name=stack_name)


@runtime_checkable
class IdentityStore(Protocol):
    """Key-value store for persisted identities."""

    def load(self, key: str) -> dict: ...

    def save(self, key: str, data: dict) -> None: ...

    def clear(self, key: str) -> None: ...


class FileIdentityStore:
    """JSON-file backed identity store, one file per key."""

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)

    def _path(self, key: str) -> Path:
        return self.state_dir / f'{_UNSAFE_KEY_CHARS.sub("_", key)}.json'

    def load(self, key: str) -> dict:
        """Load stored data for key; empty dict if nothing stored."""
        path = self._path(key)
        if not path.exists():
            return {}
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt state file {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, key: str, data: dict) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix('.json.tmp')
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        tmp.replace(path)
        logger.debug(f"Saved state {key} to {path}")

    def clear(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
            logger.debug(f"Cleared state {key} ({path})")


class MemoryIdentityStore:
    """In-process identity store (tests, embedding callers)."""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, dict] = dict(initial or {})

    def load(self, key: str) -> dict:
        return dict(self._data.get(key, {}))

    def save(self, key: str, data: dict) -> None:
        self._data[key] = dict(data)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


def state_key(caller_project: str) -> str:
    """State key scoped to the calling project."""
    return f'{caller_project}-pulumi-identity'


def save_identity(store: IdentityStore, key: str, identity: DeploymentIdentity) -> None:
    store.save(key, identity.to_dict())
