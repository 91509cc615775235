"""Tests for dispatcher module."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from common import ActionResult
from dispatcher import STACK_COMMANDS, TOP_LEVEL_COMMANDS, OperationDispatcher
from inputs import InputResolver


@pytest.fixture
def mock_manager():
    manager = MagicMock()
    for name in ('login', 'up', 'destroy', 'init', 'remove', 'list_stack'):
        getattr(manager, name).return_value = ActionResult(success=True, message=name)
    return manager


@pytest.fixture
def resolve(driver_config, store, alicloud_inputs):
    def _resolve(args=None):
        raw = {**alicloud_inputs, 'Args': args}
        return InputResolver(driver_config, store).resolve(raw)
    return _resolve


class TestCommandTables:

    def test_top_level(self):
        assert set(TOP_LEVEL_COMMANDS) == {'login', 'up', 'destroy', 'stack'}

    def test_stack(self):
        assert set(STACK_COMMANDS) == {'init', 'rm', 'ls'}


class TestDispatch:

    @pytest.mark.parametrize('command,method', [('up', 'up'), ('destroy', 'destroy')])
    def test_lifecycle(self, mock_manager, resolve, command, method):
        req = resolve()
        result = OperationDispatcher(lambda: mock_manager).dispatch(command, req)
        assert result.message == method
        getattr(mock_manager, method).assert_called_once_with(req)

    @pytest.mark.parametrize('sub,method', [('init', 'init'), ('rm', 'remove'), ('ls', 'list_stack')])
    def test_stack_sub_commands(self, mock_manager, resolve, sub, method):
        req = resolve(sub)
        result = OperationDispatcher(lambda: mock_manager).dispatch('stack', req)
        assert result.message == method
        getattr(mock_manager, method).assert_called_once_with(req)

    def test_login_default(self, mock_manager, resolve):
        req = resolve()
        OperationDispatcher(lambda: mock_manager).dispatch('login', req)
        mock_manager.login.assert_called_once_with(req, None)

    def test_login_url(self, mock_manager, resolve):
        req = resolve('https://api.pulumi.com')
        OperationDispatcher(lambda: mock_manager).dispatch('login', req)
        mock_manager.login.assert_called_once_with(req, 'https://api.pulumi.com')

    def test_login_local_flag_forces_file_backend(self, mock_manager, resolve):
        req = resolve('https://api.pulumi.com --local')
        OperationDispatcher(lambda: mock_manager).dispatch('login', req)
        mock_manager.login.assert_called_once_with(req, None)


class TestSoftFailures:
    """Unsupported input never raises and never touches the engine."""

    def test_unknown_command(self, mock_manager, resolve):
        result = OperationDispatcher(lambda: mock_manager).dispatch('bogus-command', resolve())
        assert result.success is True
        assert result.skipped is True
        assert result.message.startswith('Sorry, bogus-command is not supported for pulumi component')
        assert mock_manager.method_calls == []

    @pytest.mark.parametrize('command,args', [
        ('up', 'extra'),
        ('destroy', 'a b'),
        ('login', 'url1 url2'),
        ('stack', None),
        ('stack', 'deploy'),
        ('stack', 'init extra'),
    ])
    def test_bad_arguments(self, mock_manager, resolve, command, args):
        result = OperationDispatcher(lambda: mock_manager).dispatch(command, resolve(args))
        assert result.skipped is True
        assert mock_manager.method_calls == []

    def test_unknown_stack_sub_command_message(self, mock_manager, resolve):
        result = OperationDispatcher(lambda: mock_manager).dispatch('stack', resolve('deploy'))
        assert result.message == 'Sorry, stack deploy is not supported for pulumi component'

    @pytest.mark.parametrize('command,args', [
        ('bogus-command', None),
        ('up', 'extra'),
        ('stack', 'deploy'),
        ('stack', 'init extra'),
    ])
    def test_rejected_command_never_builds_manager(self, resolve, command, args):
        provider = MagicMock(side_effect=AssertionError('manager built'))
        result = OperationDispatcher(provider).dispatch(command, resolve(args))
        assert result.skipped is True
        provider.assert_not_called()

    def test_manager_built_for_valid_command(self, mock_manager, resolve):
        provider = MagicMock(return_value=mock_manager)
        OperationDispatcher(provider).dispatch('stack', resolve('ls'))
        provider.assert_called_once_with()
        mock_manager.list_stack.assert_called_once()
