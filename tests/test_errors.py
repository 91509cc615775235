"""Tests for errors module."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from errors import (
    EngineCommandError,
    EngineVersionIncompatibleError,
    StackNotFoundError,
    UnsupportedPlatformError,
    classify_engine_failure,
)


class TestMessages:

    def test_unsupported_platform(self):
        err = UnsupportedPlatformError('aws', ['alicloud'])
        assert err.code == 'E100'
        assert err.message == "aws not supported now, supported cloud platform includes ['alicloud']"

    def test_stack_not_found(self):
        err = StackNotFoundError('dev')
        assert err.code == 'E200'
        assert err.message == 'Stack: dev not exist, please create it first!'

    def test_engine_command_prefers_stderr(self):
        err = EngineCommandError(['up', '--yes'], 255, 'some stdout', 'error: boom')
        assert err.code == 'E402'
        assert 'pulumi up --yes failed (rc=255): error: boom' in str(err)

    def test_engine_command_falls_back_to_stdout(self):
        err = EngineCommandError(['up'], 1, 'only stdout', '')
        assert 'only stdout' in str(err)


class TestClassifyEngineFailure:

    def test_marker_in_stderr(self):
        exc = EngineCommandError(['stack', 'history'], 1, '', 'error: unknown flag: --page-size')
        result = classify_engine_failure(exc)
        assert isinstance(result, EngineVersionIncompatibleError)
        assert result.code == 'E400'
        assert 'upgrade' in result.message

    def test_marker_in_stdout_only(self):
        exc = EngineCommandError(['stack', 'history'], 1, 'unknown flag: --page-size', 'other')
        assert classify_engine_failure(exc) is not None

    def test_marker_in_plain_exception(self):
        assert classify_engine_failure(RuntimeError('unknown flag: --page-size')) is not None

    def test_unrelated_failure(self):
        exc = EngineCommandError(['up'], 1, '', 'error: resource quota exceeded')
        assert classify_engine_failure(exc) is None
        assert classify_engine_failure(ValueError('boom')) is None
