"""
Tests for cloud_linter/config.py.

Covers:
- Environment variable loading and substitution
- YAML config files
- Priority of CLI > file > environment
- Validation of resolved settings
"""
import argparse
import os
import sys

import pytest
import yaml

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cloud_linter.config import (
    LinterConfig,
    _substitute_env_vars,
    args_to_config,
    config_from_dict,
    generate_sample_config,
    load_config,
    load_config_file,
    load_env_config,
    merge_configs,
)
from cloud_linter.utils import LinterError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No LINTER_* variables and no default config file in the working directory."""
    for key in list(os.environ):
        if key.startswith("LINTER_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


def make_args(**kwargs):
    defaults = {
        'config': None,
        'log_level': None,
        'profile': None,
        'rate_limit': None,
        'enrichment_workers': None,
        'skip_unsupported_engines': False,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


def write_config(path, data):
    path.write_text(yaml.safe_dump(data))
    path.chmod(0o600)
    return str(path)


class TestLinterConfig:
    """Tests for LinterConfig defaults and validation."""

    def test_defaults(self):
        config = LinterConfig()

        assert config.rate_limit == 1.0
        assert config.rate_limit_burst == 1
        assert config.channel_capacity == 100
        assert config.enrichment_workers == 1
        assert config.metric_period_seconds == 86400
        assert config.lookback_days == 30
        assert config.skip_unsupported_engines is False

    @pytest.mark.parametrize("field,value", [
        ("rate_limit", 0),
        ("rate_limit_burst", 0),
        ("channel_capacity", 0),
        ("enrichment_workers", 0),
        ("lookback_days", 0),
    ])
    def test_validate_rejects(self, field, value):
        config = LinterConfig(**{field: value})

        with pytest.raises(LinterError, match=field):
            config.validate()


class TestEnvConfig:
    """Tests for environment variable handling."""

    def test_load_env_config(self, clean_env, monkeypatch):
        monkeypatch.setenv("LINTER_RATE_LIMIT", "5")
        monkeypatch.setenv("LINTER_PROFILE", "prod")

        assert load_env_config() == {'aws': {'rate_limit': '5', 'profile': 'prod'}}

    def test_env_values_are_coerced(self, clean_env, monkeypatch):
        monkeypatch.setenv("LINTER_RATE_LIMIT", "2.5")
        monkeypatch.setenv("LINTER_ENRICHMENT_WORKERS", "4")
        monkeypatch.setenv("LINTER_SKIP_UNSUPPORTED_ENGINES", "true")

        config = load_config(make_args())

        assert config.rate_limit == 2.5
        assert config.enrichment_workers == 4
        assert config.skip_unsupported_engines is True

    def test_invalid_env_value(self, clean_env, monkeypatch):
        monkeypatch.setenv("LINTER_ENRICHMENT_WORKERS", "many")

        with pytest.raises(LinterError, match="metrics.enrichment_workers"):
            load_config(make_args())

    def test_substitute_env_vars(self, monkeypatch):
        monkeypatch.setenv("MY_PROFILE", "audit")
        monkeypatch.delenv("MISSING_VAR", raising=False)

        result = _substitute_env_vars({
            'aws': {'profile': '${MY_PROFILE}', 'region': '${MISSING_VAR:-us-west-2}'},
            'list': ['${MY_PROFILE}'],
        })

        assert result == {'aws': {'profile': 'audit', 'region': 'us-west-2'}, 'list': ['audit']}


class TestConfigFile:
    """Tests for YAML config files."""

    def test_load_config_file(self, tmp_path):
        path = write_config(tmp_path / "config.yaml", {'aws': {'rate_limit': 3}})

        assert load_config_file(path) == {'aws': {'rate_limit': 3}}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("aws: [unclosed")
        path.chmod(0o600)

        with pytest.raises(LinterError, match="Invalid config file"):
            load_config_file(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")
        path.chmod(0o600)

        with pytest.raises(LinterError, match="expected a mapping"):
            load_config_file(str(path))

    def test_loose_permissions_warn(self, tmp_path, caplog):
        path = tmp_path / "open.yaml"
        path.write_text("log_level: DEBUG\n")
        path.chmod(0o644)

        load_config_file(str(path))

        assert "loose permissions" in caplog.text

    def test_default_config_file_is_found(self, clean_env, tmp_path):
        write_config(tmp_path / "linter-config.yaml", {'metrics': {'lookback_days': 7}})

        assert load_config(make_args()).lookback_days == 7


class TestPriority:
    """Tests for merging config sources."""

    def test_merge_configs(self):
        merged = merge_configs(
            {'aws': {'profile': 'a', 'rate_limit': 1}},
            {'aws': {'profile': 'b'}, 'log_level': 'DEBUG'},
            {'aws': {'profile': None}},
        )

        assert merged == {'aws': {'profile': 'b', 'rate_limit': 1}, 'log_level': 'DEBUG'}

    def test_file_overrides_env(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("LINTER_RATE_LIMIT", "5")
        path = write_config(tmp_path / "c.yaml", {'aws': {'rate_limit': 2}})

        assert load_config(make_args(config=path)).rate_limit == 2.0

    def test_cli_overrides_file(self, clean_env, tmp_path):
        path = write_config(tmp_path / "c.yaml", {
            'log_level': 'WARNING',
            'aws': {'rate_limit': 2, 'profile': 'file-profile'},
            'metrics': {'enrichment_workers': 2},
        })

        config = load_config(make_args(
            config=path, rate_limit=8.0, profile='cli-profile', enrichment_workers=6, log_level='DEBUG',
        ))

        assert config.rate_limit == 8.0
        assert config.profile == 'cli-profile'
        assert config.enrichment_workers == 6
        assert config.log_level == 'DEBUG'

    def test_unset_cli_flags_do_not_override(self, clean_env, tmp_path):
        path = write_config(tmp_path / "c.yaml", {'aws': {'skip_unsupported_engines': True}})

        assert load_config(make_args(config=path)).skip_unsupported_engines is True

    def test_args_to_config(self):
        assert args_to_config(make_args(rate_limit=3.0, skip_unsupported_engines=True)) == {
            'aws': {'rate_limit': 3.0, 'skip_unsupported_engines': True},
        }

    def test_invalid_resolved_config(self):
        with pytest.raises(LinterError, match="rate_limit"):
            config_from_dict({'aws': {'rate_limit': -1}})


class TestSampleConfig:
    """Tests for generate_sample_config."""

    def test_sample_config_loads(self):
        data = yaml.safe_load(generate_sample_config())
        config = config_from_dict(data)

        assert config == LinterConfig()
