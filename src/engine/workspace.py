"""Thin wrapper over the pulumi CLI for one working directory.

Every method spawns one pulumi process and waits for it. Non-zero exits
raise EngineCommandError; "no stack named" on select raises
StackNotFoundError so callers can treat missing stacks softly.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from common import OutputSink, redact_command, run_command, stream_command
from engine.environment import EngineEnvironment
from errors import EngineCommandError, StackNotFoundError

logger = logging.getLogger(__name__)

STACK_NOT_FOUND_MARKERS = ('no stack named', 'no stack found')
PROJECT_FILES = ('Pulumi.yaml', 'Pulumi.yml')


@dataclass
class StackSummary:
    """Entry from `pulumi stack ls --json`."""
    name: str
    current: bool = False
    update_in_progress: bool = False
    last_update: Optional[str] = None
    resource_count: Optional[int] = None
    url: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> 'StackSummary':
        return cls(
            name=data['name'],
            current=bool(data.get('current', False)),
            update_in_progress=bool(data.get('updateInProgress', False)),
            last_update=data.get('lastUpdate'),
            resource_count=data.get('resourceCount'),
            url=data.get('url'),
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {'name': self.name, 'current': self.current}
        if self.update_in_progress:
            d['update_in_progress'] = True
        if self.last_update is not None:
            d['last_update'] = self.last_update
        if self.resource_count is not None:
            d['resource_count'] = self.resource_count
        if self.url is not None:
            d['url'] = self.url
        return d


@dataclass
class UpdateSummary:
    """Entry from `pulumi stack history --json`."""
    kind: str
    result: str
    version: Optional[int] = None
    message: str = ''
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    resource_changes: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict) -> 'UpdateSummary':
        return cls(
            kind=data.get('kind', ''),
            result=data.get('result', ''),
            version=data.get('version'),
            message=data.get('message', ''),
            start_time=data.get('startTime'),
            end_time=data.get('endTime'),
            resource_changes=data.get('resourceChanges') or {},
        )

    def to_dict(self) -> dict:
        return {
            'kind': self.kind,
            'result': self.result,
            'version': self.version,
            'resource_changes': self.resource_changes,
        }


class PulumiWorkspace:
    """Runs pulumi commands inside work_dir with the engine environment."""

    def __init__(
        self,
        binary: str,
        env: EngineEnvironment,
        work_dir: Path,
        on_output: Optional[OutputSink] = None,
    ):
        self.binary = binary
        self.env = env
        self.work_dir = Path(work_dir)
        self.on_output = on_output

    def _run(
        self,
        args: list[str],
        stream: bool = False,
        secrets: Optional[list[str]] = None,
    ) -> tuple[str, str]:
        """Run pulumi with args; return (stdout, stderr).

        Raises:
            EngineCommandError: On non-zero exit
        """
        # Flags must precede the `--` separator; everything after it is positional
        if '--' in args:
            sep = args.index('--')
            cmd = [self.binary, *args[:sep], '--non-interactive', *args[sep:]]
        else:
            cmd = [self.binary, *args, '--non-interactive']
        env = self.env.as_env()
        if stream and self.on_output is not None:
            rc, out, err = stream_command(cmd, self.on_output, cwd=self.work_dir, env=env, secrets=secrets)
        else:
            # Engine calls are bounded only by the engine itself
            rc, out, err = run_command(cmd, cwd=self.work_dir, timeout=None, env=env, secrets=secrets)
        if rc != 0:
            raise EngineCommandError(redact_command(args, secrets), rc, out, err)
        return out, err

    # -- login ---------------------------------------------------------------

    def is_logged_in(self) -> bool:
        return (self.env.home_dir / 'credentials.json').exists()

    def login(self, url: str) -> None:
        logger.info(f"Logging in to {url}")
        self._run(['login', url])

    # -- project / stack -----------------------------------------------------

    def save_project_settings(self, project_name: str, runtime: str) -> Path:
        """Write name/runtime into Pulumi.yaml, keeping any other keys."""
        self.work_dir.mkdir(parents=True, exist_ok=True)
        path = self.work_dir / PROJECT_FILES[0]
        settings: dict = {}
        for candidate in PROJECT_FILES:
            existing = self.work_dir / candidate
            if existing.exists():
                path = existing
                with open(existing, encoding='utf-8') as f:
                    settings = yaml.safe_load(f) or {}
                break

        if settings.get('name') == project_name and settings.get('runtime') == runtime:
            return path

        settings['name'] = project_name
        settings['runtime'] = runtime
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(settings, f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Wrote project settings to {path}")
        return path

    def select_stack(self, stack_name: str) -> None:
        """Select an existing stack.

        Raises:
            StackNotFoundError: If the engine has no such stack
        """
        try:
            self._run(['stack', 'select', '--stack', stack_name])
        except EngineCommandError as e:
            text = f'{e.stdout}\n{e.stderr}'.lower()
            if any(marker in text for marker in STACK_NOT_FOUND_MARKERS):
                raise StackNotFoundError(stack_name) from e
            raise

    def create_stack(self, stack_name: str) -> None:
        self._run(['stack', 'init', stack_name])

    def remove_stack(self, stack_name: str) -> None:
        self._run(['stack', 'rm', '--yes', '--stack', stack_name])

    def list_stacks(self) -> list[StackSummary]:
        out, _ = self._run(['stack', 'ls', '--json'])
        return [StackSummary.from_json(s) for s in json.loads(out or '[]')]

    def stack_summary(self, stack_name: str) -> Optional[StackSummary]:
        for summary in self.list_stacks():
            if summary.name == stack_name or summary.name.endswith(f'/{stack_name}'):
                return summary
        return None

    # -- configuration / plugins --------------------------------------------

    def set_config(self, stack_name: str, key: str, value: str, secret: bool = False) -> None:
        secret_arg = '--secret' if secret else '--plaintext'
        self._run(
            ['config', 'set', key, secret_arg, '--stack', stack_name, '--', value],
            secrets=[value] if secret else None,
        )

    def install_plugin(self, name: str, version: str) -> None:
        self._run(['plugin', 'install', 'resource', name, f'v{version}'])

    # -- lifecycle -----------------------------------------------------------

    def refresh(self, stack_name: str) -> tuple[str, str]:
        return self._run(['refresh', '--yes', '--skip-preview', '--stack', stack_name], stream=True)

    def up(self, stack_name: str) -> tuple[str, str]:
        return self._run(['up', '--yes', '--skip-preview', '--stack', stack_name], stream=True)

    def destroy(self, stack_name: str) -> tuple[str, str]:
        return self._run(['destroy', '--yes', '--skip-preview', '--stack', stack_name], stream=True)

    def history(self, stack_name: str, page_size: int = 1) -> list[UpdateSummary]:
        out, _ = self._run([
            'stack', 'history', '--json', '--show-secrets',
            '--page-size', str(page_size), '--page', '1',
            '--stack', stack_name,
        ])
        return [UpdateSummary.from_json(u) for u in json.loads(out or '[]')]

    def outputs(self, stack_name: str) -> dict:
        out, _ = self._run(['stack', 'output', '--json', '--stack', stack_name])
        return json.loads(out or '{}')
