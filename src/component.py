"""Pulumi component: the entry points the orchestrator calls.

Each call resolves inputs (validating the platform and persisting the
identity), reports usage, then dispatches to the stack lifecycle. The
engine binary is located (and installed if needed) on first use only,
after input validation has passed.
"""

import logging
from typing import Optional

from common import ActionResult, OutputSink, print_line
from config import DriverConfig, load_config
from credentials import CredentialStore
from dispatcher import OperationDispatcher
from engine.environment import EngineEnvironment, build_env
from engine.locator import BinaryLocator, LocatorResult
from inputs import InputResolver, ResolvedRequest
from plugins import PluginInstaller
from reporting import TelemetryReporter
from stack import StackManager
from state import FileIdentityStore, IdentityStore

logger = logging.getLogger(__name__)


class PulumiComponent:
    """Orchestrator-facing facade over the driver."""

    def __init__(
        self,
        config: Optional[DriverConfig] = None,
        store: Optional[IdentityStore] = None,
        locator: Optional[BinaryLocator] = None,
        reporter: Optional[TelemetryReporter] = None,
        credential_store: Optional[CredentialStore] = None,
        manager: Optional[StackManager] = None,
        output_sink: Optional[OutputSink] = print_line,
    ):
        self.config = config or load_config()
        self.store = store if store is not None else FileIdentityStore(self.config.state_dir)
        self.locator = locator or BinaryLocator(self.config)
        self.reporter = reporter or TelemetryReporter(
            self.config.telemetry_endpoint, self.config.telemetry_timeout
        )
        if credential_store is None and self.config.credentials_file is not None:
            credential_store = CredentialStore(self.config.credentials_file)
        self.resolver = InputResolver(self.config, self.store, credential_store)
        self.plugins = PluginInstaller(self.config)
        self.output_sink = output_sink
        self._manager = manager
        self.located: Optional[LocatorResult] = None
        self.env: Optional[EngineEnvironment] = None

    @property
    def manager(self) -> StackManager:
        """Stack manager bound to the located engine (built once)."""
        if self._manager is None:
            self.located = self.locator.locate()
            self.env = build_env(self.located, passphrase=self.config.passphrase)
            self._manager = StackManager.for_engine(
                binary=self.located.binary_path,
                env=self.env,
                base_dir=self.located.base_dir,
                store=self.store,
                plugins=self.plugins,
                output_sink=self.output_sink,
            )
        return self._manager

    def resolve(self, raw_inputs: Optional[dict]) -> ResolvedRequest:
        return self.resolver.resolve(raw_inputs)

    def run(self, command: str, raw_inputs: Optional[dict]) -> ActionResult:
        """Resolve inputs and run command.

        Raises:
            UnsupportedPlatformError: Before any engine process is spawned
        """
        request = self.resolve(raw_inputs)
        self.reporter.report(command, request.account_id)
        logger.debug(f"Dispatching {command} for {request.project_name}/{request.stack_name}")
        return OperationDispatcher(lambda: self.manager).dispatch(command, request)

    def login(self, raw_inputs: Optional[dict]) -> ActionResult:
        return self.run('login', raw_inputs)

    def stack(self, raw_inputs: Optional[dict]) -> ActionResult:
        return self.run('stack', raw_inputs)

    def up(self, raw_inputs: Optional[dict]) -> ActionResult:
        return self.run('up', raw_inputs)

    def destroy(self, raw_inputs: Optional[dict]) -> ActionResult:
        return self.run('destroy', raw_inputs)
