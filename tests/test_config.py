#!/usr/bin/env python3
"""Tests for config.py - driver configuration and discovery.

Tests verify:
1. Driver home discovery (env var, default)
2. Config file discovery order
3. YAML parsing into DriverConfig
4. Error handling for malformed config
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from config import (
    DEFAULT_PASSPHRASE,
    ConfigError,
    DriverConfig,
    find_config_file,
    get_driver_home,
    load_config,
)


class TestGetDriverHome:
    """Test driver home discovery."""

    def test_env_var_takes_precedence(self, tmp_path):
        with patch.dict(os.environ, {'PULUMI_DRIVER_HOME': str(tmp_path / 'home')}):
            assert get_driver_home() == tmp_path / 'home'

    def test_default_under_user_home(self):
        env = {k: v for k, v in os.environ.items() if k != 'PULUMI_DRIVER_HOME'}
        with patch.dict(os.environ, env, clear=True):
            assert get_driver_home() == Path.home() / '.pulumi-driver'


class TestFindConfigFile:
    """Test config file resolution order."""

    def test_explicit_path(self, tmp_path):
        path = tmp_path / 'c.yaml'
        path.write_text('{}')
        assert find_config_file(path) == path

    def test_explicit_missing_raises(self, tmp_path):
        with pytest.raises(ConfigError, match='not found'):
            find_config_file(tmp_path / 'missing.yaml')

    def test_env_var(self, tmp_path):
        path = tmp_path / 'env.yaml'
        path.write_text('{}')
        with patch.dict(os.environ, {'PULUMI_DRIVER_CONFIG': str(path)}):
            assert find_config_file() == path

    def test_env_var_missing_raises(self, tmp_path):
        with patch.dict(os.environ, {'PULUMI_DRIVER_CONFIG': str(tmp_path / 'nope.yaml')}):
            with pytest.raises(ConfigError, match='does not exist'):
                find_config_file()

    def test_home_config(self, tmp_path):
        (tmp_path / 'config.yaml').write_text('{}')
        env = {k: v for k, v in os.environ.items() if k != 'PULUMI_DRIVER_CONFIG'}
        env['PULUMI_DRIVER_HOME'] = str(tmp_path)
        with patch.dict(os.environ, env, clear=True):
            assert find_config_file() == tmp_path / 'config.yaml'

    def test_nothing_found(self, tmp_path):
        env = {k: v for k, v in os.environ.items() if k != 'PULUMI_DRIVER_CONFIG'}
        env['PULUMI_DRIVER_HOME'] = str(tmp_path)
        with patch.dict(os.environ, env, clear=True):
            assert find_config_file() is None


class TestDriverConfig:
    """Test DriverConfig defaults and parsing."""

    def test_defaults(self, tmp_path):
        config = DriverConfig(home=tmp_path)
        assert config.region == 'cn-hangzhou'
        assert config.work_dir == '.'
        assert config.runtime == 'nodejs'
        assert config.supported_platforms == ['alicloud']
        assert config.passphrase == DEFAULT_PASSPHRASE
        assert config.state_dir == tmp_path / '.states'
        assert config.credentials_file == Path.home() / '.s' / 'access.yaml'

    def test_home_accepts_string(self, tmp_path):
        config = DriverConfig(home=str(tmp_path))
        assert config.home == tmp_path

    def test_from_dict_full(self, tmp_path):
        data = {
            'defaults': {'region': 'cn-shanghai', 'work_dir': './infra', 'runtime': 'python'},
            'supported_platforms': ['alicloud'],
            'engine': {'version': 'v3.100.0', 'passphrase': 'rotated'},
            'plugins': {'resolve_latest': False, 'versions': {'alicloud': 'v3.45.0'}},
            'credentials_file': str(tmp_path / 'access.yaml'),
            'telemetry': {'endpoint': 'https://telemetry.example.com/report', 'timeout': 1},
        }
        config = DriverConfig.from_dict(data, home=tmp_path)
        assert config.region == 'cn-shanghai'
        assert config.work_dir == './infra'
        assert config.runtime == 'python'
        assert config.engine_version == '3.100.0'
        assert config.passphrase == 'rotated'
        assert config.resolve_latest_plugins is False
        assert config.plugin_versions == {'alicloud': '3.45.0'}
        assert config.credentials_file == tmp_path / 'access.yaml'
        assert config.telemetry_endpoint == 'https://telemetry.example.com/report'
        assert config.telemetry_timeout == 1.0

    def test_unknown_key_raises(self, tmp_path):
        with pytest.raises(ConfigError, match='Unknown config keys: bogus'):
            DriverConfig.from_dict({'bogus': 1}, home=tmp_path)

    def test_empty_platform_list_raises(self, tmp_path):
        with pytest.raises(ConfigError, match='supported_platforms'):
            DriverConfig.from_dict({'supported_platforms': []}, home=tmp_path)

    def test_section_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="'engine' must be a mapping"):
            DriverConfig.from_dict({'engine': 'latest'}, home=tmp_path)

    def test_null_section_is_empty(self, tmp_path):
        config = DriverConfig.from_dict({'defaults': None}, home=tmp_path)
        assert config.region == 'cn-hangzhou'


class TestLoadConfig:
    """Test load_config."""

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("defaults:\n  region: cn-beijing\n")
        config = load_config(path)
        assert config.region == 'cn-beijing'

    def test_defaults_without_file(self, tmp_path):
        env = {k: v for k, v in os.environ.items() if k != 'PULUMI_DRIVER_CONFIG'}
        env['PULUMI_DRIVER_HOME'] = str(tmp_path)
        with patch.dict(os.environ, env, clear=True):
            config = load_config()
        assert config.region == 'cn-hangzhou'
        assert config.home == tmp_path

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("defaults: [unclosed\n")
        with pytest.raises(ConfigError, match='Invalid YAML'):
            load_config(path)

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match='must contain a YAML mapping'):
            load_config(path)
