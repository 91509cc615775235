"""Stack lifecycle management.

Lifecycle of a stack as seen by the driver:

    Absent -> Selected | Created -> Configured -> Mutated -> Removed | Absent

Mutating calls (up, destroy) always run in this order:
1. select (destroy) or select-or-create (up)
2. configure: provider credentials and region as stack config
3. plugin install for the platform
4. refresh + up, or destroy

A stack that does not exist is never created by destroy, remove or
list; those return a skipped result instead.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from common import ActionResult, OutputSink, print_line
from credentials import Credentials
from engine.environment import EngineEnvironment
from engine.workspace import PulumiWorkspace
from errors import (
    CredentialsNotFoundError,
    PluginUnsupportedError,
    StackNotFoundError,
    classify_engine_failure,
)
from inputs import ResolvedRequest
from plugins import PluginInstaller
from state import DeploymentIdentity, IdentityStore

logger = logging.getLogger(__name__)

WorkspaceFactory = Callable[[Path, Optional[OutputSink]], PulumiWorkspace]


@dataclass
class StackHandle:
    """A selected or created stack, valid for one operation."""
    identity: DeploymentIdentity
    work_dir: Path
    workspace: PulumiWorkspace

    @property
    def stack_name(self) -> str:
        return self.identity.stack_name

    @property
    def project_name(self) -> str:
        return self.identity.project_name


class StackManager:
    """Drives a stack through its lifecycle via the pulumi CLI."""

    def __init__(
        self,
        store: IdentityStore,
        plugins: PluginInstaller,
        workspace_factory: WorkspaceFactory,
        local_backend_url: str,
        output_sink: Optional[OutputSink] = print_line,
    ):
        """Initialize manager.

        Args:
            store: Identity store; cleared when a stack record is removed
            plugins: Plugin installer run before every mutating call
            workspace_factory: Builds a workspace for (work_dir, output sink)
            local_backend_url: file:// URL used for implicit local login
            output_sink: Receives live engine output unless --silent
        """
        self.store = store
        self.plugins = plugins
        self.workspace_factory = workspace_factory
        self.local_backend_url = local_backend_url
        self.output_sink = output_sink
        self._logged_in = False

    @classmethod
    def for_engine(
        cls,
        binary: str,
        env: EngineEnvironment,
        base_dir: Path,
        store: IdentityStore,
        plugins: PluginInstaller,
        output_sink: Optional[OutputSink] = print_line,
    ) -> 'StackManager':
        """Build a manager running the real pulumi binary."""
        def factory(work_dir: Path, sink: Optional[OutputSink]) -> PulumiWorkspace:
            return PulumiWorkspace(binary, env, work_dir, on_output=sink)

        return cls(
            store=store,
            plugins=plugins,
            workspace_factory=factory,
            local_backend_url=f'file://{base_dir}',
            output_sink=output_sink,
        )

    # -- workspace / login ---------------------------------------------------

    def _workspace(self, work_dir: Path, silent: bool = False) -> PulumiWorkspace:
        workspace = self.workspace_factory(Path(work_dir), None if silent else self.output_sink)
        if not self._logged_in:
            if not workspace.is_logged_in():
                workspace.login(self.local_backend_url)
            self._logged_in = True
        return workspace

    def login(self, request: ResolvedRequest, url: Optional[str] = None) -> ActionResult:
        """Log in to url, or the local file backend when url is None."""
        start = time.time()
        target = url or self.local_backend_url
        workspace = self.workspace_factory(request.work_dir, None)
        workspace.login(target)
        self._logged_in = True
        return ActionResult(
            success=True,
            message=f"Logged in to {target}",
            duration=time.time() - start,
        )

    # -- stack resolution ----------------------------------------------------

    def select_or_create(
        self,
        identity: DeploymentIdentity,
        work_dir: Path,
        runtime: str,
        silent: bool = False,
    ) -> StackHandle:
        """Select the stack, creating it only if the engine has no record."""
        workspace = self._workspace(work_dir, silent)
        workspace.save_project_settings(identity.project_name, runtime)
        try:
            workspace.select_stack(identity.stack_name)
            logger.debug(f"[{identity.stack_name}] Selected existing stack")
        except StackNotFoundError:
            logger.info(f"Initializing stack {identity.stack_name} of project {identity.project_name}...")
            workspace.create_stack(identity.stack_name)
            logger.info(f"Stack {identity.stack_name} of project {identity.project_name} created.")
        return StackHandle(identity=identity, work_dir=Path(work_dir), workspace=workspace)

    def select(
        self,
        identity: DeploymentIdentity,
        work_dir: Path,
        runtime: Optional[str] = None,
        silent: bool = False,
    ) -> Optional[StackHandle]:
        """Select an existing stack; None if it does not exist."""
        workspace = self._workspace(work_dir, silent)
        if runtime:
            workspace.save_project_settings(identity.project_name, runtime)
        try:
            workspace.select_stack(identity.stack_name)
        except StackNotFoundError as e:
            logger.warning(e.message)
            return None
        return StackHandle(identity=identity, work_dir=Path(work_dir), workspace=workspace)

    # -- configuration -------------------------------------------------------

    def configure(
        self,
        handle: StackHandle,
        platform: str,
        credentials: Optional[Credentials],
        region: str,
    ) -> None:
        """Write provider credentials and region into stack config.

        Platforms without a table entry get no provider config; the plugin
        installer rejects them afterwards.
        """
        if credentials is None:
            raise CredentialsNotFoundError('default', 'no credentials supplied')
        spec = self.plugins.lookup(platform)
        if spec is None:
            logger.warning(f"[{handle.stack_name}] No provider config mapping for {platform}")
            return

        for key, value, secret in spec.config_values(
            credentials.access_key_id, credentials.access_key_secret, region
        ):
            handle.workspace.set_config(handle.stack_name, key, value, secret=secret)
        logger.debug(f"[{handle.stack_name}] Configured {spec.config_namespace} provider (region {region})")

    def _install_plugin(self, request: ResolvedRequest, handle: StackHandle) -> None:
        try:
            self.plugins.install(request.platform, handle)
        except PluginUnsupportedError:
            self.store.clear(request.state_key)
            raise

    @staticmethod
    def _require_credentials(request: ResolvedRequest) -> Credentials:
        if request.credentials is None:
            raise CredentialsNotFoundError(request.access or 'default', 'required for stack operations')
        return request.credentials

    # -- operations ----------------------------------------------------------

    def init(self, request: ResolvedRequest) -> ActionResult:
        """Create (or select) the stack and write its provider config."""
        start = time.time()
        credentials = self._require_credentials(request)
        handle = self.select_or_create(request.identity, request.work_dir, request.runtime, request.args.silent)
        self.configure(handle, request.platform, credentials, request.region)
        return ActionResult(
            success=True,
            message=f"Stack {request.stack_name} of project {request.project_name} initialized.",
            duration=time.time() - start,
        )

    def up(self, request: ResolvedRequest) -> ActionResult:
        """Refresh then apply the stack, creating it if needed."""
        start = time.time()
        credentials = self._require_credentials(request)
        handle = self.select_or_create(request.identity, request.work_dir, request.runtime, request.args.silent)
        self.configure(handle, request.platform, credentials, request.region)
        self._install_plugin(request, handle)

        stdout: list[str] = []
        stderr: list[str] = []
        try:
            logger.info(f"[{handle.stack_name}] Refreshing stack...")
            out, err = handle.workspace.refresh(handle.stack_name)
            stdout.append(out)
            stderr.append(err)

            logger.info(f"[{handle.stack_name}] Updating stack...")
            out, err = handle.workspace.up(handle.stack_name)
            stdout.append(out)
            stderr.append(err)

            details = self._update_details(handle, include_outputs=True)
        except Exception as e:
            return self._downgrade(e, stdout, stderr, start)

        return ActionResult(
            success=True,
            message=f"Stack {handle.stack_name} updated",
            duration=time.time() - start,
            stdout=''.join(stdout),
            stderr=''.join(stderr),
            details=details,
        )

    def destroy(self, request: ResolvedRequest) -> ActionResult:
        """Destroy the stack's resources. Missing stacks are skipped."""
        start = time.time()
        credentials = self._require_credentials(request)
        handle = self.select(request.identity, request.work_dir, request.runtime, request.args.silent)
        if handle is None:
            return ActionResult.skip(
                StackNotFoundError(request.stack_name).message,
                duration=time.time() - start,
            )

        self.configure(handle, request.platform, credentials, request.region)
        self._install_plugin(request, handle)

        stdout: list[str] = []
        stderr: list[str] = []
        try:
            logger.info(f"[{handle.stack_name}] Destroying stack resources...")
            out, err = handle.workspace.destroy(handle.stack_name)
            stdout.append(out)
            stderr.append(err)
            details = self._update_details(handle, include_outputs=False)
        except Exception as e:
            return self._downgrade(e, stdout, stderr, start)

        return ActionResult(
            success=True,
            message=f"Stack {handle.stack_name} destroyed",
            duration=time.time() - start,
            stdout=''.join(stdout),
            stderr=''.join(stderr),
            details=details,
        )

    def remove(self, request: ResolvedRequest) -> ActionResult:
        """Remove the stack record and forget the persisted identity."""
        start = time.time()
        logger.info(f"Removing stack {request.stack_name}...")
        handle = self.select(request.identity, request.work_dir, silent=True)
        if handle is None:
            return ActionResult.skip(
                StackNotFoundError(request.stack_name).message,
                duration=time.time() - start,
            )

        handle.workspace.remove_stack(handle.stack_name)
        self.store.clear(request.state_key)
        message = f"Stack {request.stack_name} of project {request.project_name} removed."
        logger.info(message)
        return ActionResult(success=True, message=message, duration=time.time() - start)

    def list_stack(self, request: ResolvedRequest) -> ActionResult:
        """Summary of the stack, read-only."""
        start = time.time()
        handle = self.select(request.identity, request.work_dir, silent=True)
        summary = handle.workspace.stack_summary(handle.stack_name) if handle else None
        if summary is None:
            return ActionResult.skip(
                f"Summary of stack {request.stack_name} is undefined.",
                duration=time.time() - start,
            )
        return ActionResult(
            success=True,
            message=f"Summary of stack {request.stack_name}",
            duration=time.time() - start,
            details={'summary': summary.to_dict()},
        )

    # -- helpers -------------------------------------------------------------

    def _update_details(self, handle: StackHandle, include_outputs: bool) -> dict:
        """Latest update summary (and outputs) for the result."""
        details: dict = {'project': handle.project_name, 'stack': handle.stack_name}
        history = handle.workspace.history(handle.stack_name, page_size=1)
        if history:
            details['last_update'] = history[0].to_dict()
        if include_outputs:
            details['outputs'] = handle.workspace.outputs(handle.stack_name)
        return details

    @staticmethod
    def _downgrade(exc: Exception, stdout: list[str], stderr: list[str], start: float) -> ActionResult:
        """Turn a too-old-engine failure into an instructional result; re-raise anything else."""
        incompatible = classify_engine_failure(exc)
        if incompatible is None:
            raise exc
        logger.error(incompatible.message)
        return ActionResult(
            success=False,
            message=incompatible.message,
            duration=time.time() - start,
            stdout=''.join(stdout) + getattr(exc, 'stdout', ''),
            stderr=''.join(stderr) + getattr(exc, 'stderr', ''),
            details={'error_code': incompatible.code},
        )
