"""Input resolution: raw orchestrator inputs to a canonical request.

Raw inputs follow the orchestrator's shape; both capitalized and
lower-case keys are accepted:

    {
      "Properties": {"cloudPlatform": "alicloud", "region": "cn-hangzhou",
                     "projectName": "...", "stackName": "...",
                     "workDir": ".", "runtime": "nodejs"},
      "Credentials": {"AccountID": "...", "AccessKeyID": "...", "AccessKeySecret": "..."},
      "Project": {"ProjectName": "my-app", "Access": "default"},
      "Args": "init --silent"
    }

Precedence:
- projectName/stackName: explicit property > persisted state > generated
- region/workDir/runtime: explicit property > configured default
"""

import argparse
import logging
import shlex
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from config import DriverConfig
from credentials import CredentialStore, Credentials
from errors import CredentialsNotFoundError, UnsupportedPlatformError
from state import DeploymentIdentity, IdentityStore, save_identity, state_key

logger = logging.getLogger(__name__)

DEFAULT_CALLER = 'default'


@dataclass
class ParsedArgs:
    """Tokenized command arguments."""
    positional: list[str] = field(default_factory=list)
    silent: bool = False
    local: bool = False
    extra: list[str] = field(default_factory=list)


def _args_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='pulumi-driver', add_help=False)
    parser.add_argument('-s', '--silent', action='store_true')
    parser.add_argument('--local', action='store_true')
    parser.add_argument('positional', nargs='*')
    return parser


def parse_command_args(args: Union[str, list, None]) -> ParsedArgs:
    """Parse free-form args into positional tokens and boolean flags.

    Unrecognized flags are kept in `extra` rather than rejected.
    """
    if not args:
        return ParsedArgs()
    tokens = shlex.split(args) if isinstance(args, str) else [str(a) for a in args]
    ns, extra = _args_parser().parse_known_intermixed_args(tokens)
    return ParsedArgs(
        positional=list(ns.positional),
        silent=ns.silent,
        local=ns.local,
        extra=extra,
    )


@dataclass
class ResolvedRequest:
    """Per-invocation request. Never persisted."""
    credentials: Optional[Credentials]
    platform: str
    region: str
    work_dir: Path
    runtime: str
    args: ParsedArgs
    identity: DeploymentIdentity
    caller: str = DEFAULT_CALLER
    state_key: str = ''
    access: Optional[str] = None

    @property
    def project_name(self) -> str:
        return self.identity.project_name

    @property
    def stack_name(self) -> str:
        return self.identity.stack_name

    @property
    def account_id(self) -> str:
        return self.credentials.account_id if self.credentials else ''


def _pick(data: Optional[dict], *keys: str):
    """First present key from data (tolerates None)."""
    if not data:
        return None
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def generate_identity(caller: str) -> DeploymentIdentity:
    suffix = uuid.uuid4()
    return DeploymentIdentity(
        project_name=f'pulumi-default-{caller}-project-{suffix}',
        stack_name=f'pulumi-default-{caller}-stack-{suffix}',
    )


class InputResolver:
    """Merges raw inputs, persisted identity and defaults."""

    def __init__(
        self,
        config: DriverConfig,
        store: IdentityStore,
        credential_store: Optional[CredentialStore] = None,
    ):
        self.config = config
        self.store = store
        self.credential_store = credential_store

    def resolve(self, raw_inputs: Optional[dict]) -> ResolvedRequest:
        """Resolve raw inputs and persist the resulting identity.

        Raises:
            UnsupportedPlatformError: If cloudPlatform is missing or not allowed
        """
        raw_inputs = raw_inputs or {}
        props = _pick(raw_inputs, 'Properties', 'properties') or {}
        project = _pick(raw_inputs, 'Project', 'project') or {}

        platform = props.get('cloudPlatform')
        if not platform or platform not in self.config.supported_platforms:
            logger.error(
                f"{platform} not supported now, supported cloud platform includes "
                f"{self.config.supported_platforms}"
            )
            raise UnsupportedPlatformError(platform, self.config.supported_platforms)

        caller = str(_pick(project, 'ProjectName', 'projectName') or DEFAULT_CALLER)
        access = _pick(project, 'Access', 'access')
        key = state_key(caller)

        identity = self._resolve_identity(props, key, caller)
        save_identity(self.store, key, identity)

        request = ResolvedRequest(
            credentials=self._resolve_credentials(raw_inputs, access),
            platform=platform,
            region=str(props.get('region') or self.config.region),
            work_dir=Path(str(props.get('workDir') or self.config.work_dir)).expanduser().resolve(),
            runtime=str(props.get('runtime') or self.config.runtime),
            args=parse_command_args(_pick(raw_inputs, 'Args', 'args')),
            identity=identity,
            caller=caller,
            state_key=key,
            access=access,
        )
        logger.debug(
            f"Resolved {request.project_name}/{request.stack_name} "
            f"({request.platform}, {request.region}, {request.work_dir})"
        )
        return request

    def _resolve_identity(self, props: dict, key: str, caller: str) -> DeploymentIdentity:
        persisted = self.store.load(key)
        generated = None
        if not (props.get('projectName') or persisted.get('projectName')) \
                or not (props.get('stackName') or persisted.get('stackName')):
            generated = generate_identity(caller)

        project_name = props.get('projectName') or persisted.get('projectName')
        stack_name = props.get('stackName') or persisted.get('stackName')
        if generated is not None:
            project_name = project_name or generated.project_name
            stack_name = stack_name or generated.stack_name
        return DeploymentIdentity(project_name=str(project_name), stack_name=str(stack_name))

    def _resolve_credentials(self, raw_inputs: dict, access: Optional[str]) -> Optional[Credentials]:
        explicit = Credentials.from_inputs(_pick(raw_inputs, 'Credentials', 'credentials'))
        if explicit is not None:
            return explicit
        if self.credential_store is None:
            return None
        try:
            return self.credential_store.get(access)
        except CredentialsNotFoundError as e:
            # Not every command needs credentials; lifecycle calls that do will raise
            logger.debug(str(e))
            return None
