"""Shared pytest fixtures for pulumi-driver tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from config import DriverConfig  # noqa: E402
from engine.workspace import StackSummary, UpdateSummary  # noqa: E402
from errors import EngineCommandError, StackNotFoundError  # noqa: E402
from plugins import PluginInstaller  # noqa: E402
from stack import StackManager  # noqa: E402
from state import MemoryIdentityStore  # noqa: E402

MUTATING_CALLS = {'set_config', 'install_plugin', 'refresh', 'up', 'destroy', 'create_stack', 'remove_stack'}


class FakeEngine:
    """In-memory pulumi backend shared by every FakeWorkspace it hands out.

    Records each call as a tuple in `calls`. Set `failures[op]` to an
    exception to make that operation raise.
    """

    def __init__(self):
        self.stacks: set[str] = set()
        self.config: dict[tuple[str, str], tuple[str, bool]] = {}
        self.plugins: list[tuple[str, str]] = []
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self.logged_in = False
        self.login_urls: list[str] = []
        self.workspaces: list['FakeWorkspace'] = []

    def workspace(self, work_dir, on_output=None) -> 'FakeWorkspace':
        ws = FakeWorkspace(self, Path(work_dir), on_output)
        self.workspaces.append(ws)
        return ws

    def ops(self) -> list[str]:
        return [c[0] for c in self.calls]

    def mutating_ops(self) -> list[str]:
        return [op for op in self.ops() if op in MUTATING_CALLS]


class FakeWorkspace:
    """Stand-in for engine.workspace.PulumiWorkspace."""

    def __init__(self, engine: FakeEngine, work_dir: Path, on_output=None):
        self.engine = engine
        self.work_dir = work_dir
        self.on_output = on_output

    def _record(self, *call):
        self.engine.calls.append(call)
        if call[0] in self.engine.failures:
            raise self.engine.failures[call[0]]

    def is_logged_in(self):
        return self.engine.logged_in

    def login(self, url):
        self._record('login', url)
        self.engine.logged_in = True
        self.engine.login_urls.append(url)

    def save_project_settings(self, project_name, runtime):
        self._record('save_project_settings', project_name, runtime)
        return self.work_dir / 'Pulumi.yaml'

    def select_stack(self, stack_name):
        self._record('select_stack', stack_name)
        if stack_name not in self.engine.stacks:
            raise StackNotFoundError(stack_name)

    def create_stack(self, stack_name):
        self._record('create_stack', stack_name)
        if stack_name in self.engine.stacks:
            raise EngineCommandError(['stack', 'init', stack_name], 255, '', 'stack already exists')
        self.engine.stacks.add(stack_name)

    def remove_stack(self, stack_name):
        self._record('remove_stack', stack_name)
        self.engine.stacks.discard(stack_name)

    def stack_summary(self, stack_name):
        self._record('stack_summary', stack_name)
        if stack_name in self.engine.stacks:
            return StackSummary(name=stack_name, current=True, resource_count=3)
        return None

    def set_config(self, stack_name, key, value, secret=False):
        self._record('set_config', stack_name, key)
        self.engine.config[(stack_name, key)] = (value, secret)

    def install_plugin(self, name, version):
        self._record('install_plugin', name, version)
        self.engine.plugins.append((name, version))

    def refresh(self, stack_name):
        self._record('refresh', stack_name)
        return 'refresh out\n', ''

    def up(self, stack_name):
        self._record('up', stack_name)
        return 'up out\n', ''

    def destroy(self, stack_name):
        self._record('destroy', stack_name)
        return 'destroy out\n', ''

    def history(self, stack_name, page_size=1):
        self._record('history', stack_name, page_size)
        return [UpdateSummary(kind='update', result='succeeded', version=1)]

    def outputs(self, stack_name):
        self._record('outputs', stack_name)
        return {'functionName': 'my-function-1'}


@pytest.fixture
def driver_config(tmp_path):
    """Config rooted in tmp_path with network lookups disabled."""
    return DriverConfig(
        home=tmp_path / 'driver-home',
        resolve_latest_plugins=False,
        credentials_file=tmp_path / 'access.yaml',
    )


@pytest.fixture
def store():
    return MemoryIdentityStore()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def manager(driver_config, store, fake_engine):
    """StackManager wired to the fake engine."""
    return StackManager(
        store=store,
        plugins=PluginInstaller(driver_config),
        workspace_factory=fake_engine.workspace,
        local_backend_url='file:///tmp/driver-home',
        output_sink=None,
    )


@pytest.fixture
def alicloud_inputs():
    """Raw orchestrator inputs for an alicloud deployment."""
    return {
        'Properties': {'cloudPlatform': 'alicloud', 'region': 'cn-hangzhou'},
        'Credentials': {'AccountID': '1', 'AccessKeyID': 'ak', 'AccessKeySecret': 'sk'},
        'Project': {'ProjectName': 'demo'},
    }
