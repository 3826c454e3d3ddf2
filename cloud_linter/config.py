"""
Cloud Linter - Configuration Management

Supports loading configuration from:
1. Environment variables (LINTER_*)
2. YAML config file (--config or a default location)
3. Command-line arguments (highest priority)

Config file example:
```yaml
log_level: INFO

aws:
  profile: my-profile
  rate_limit: 1
  skip_unsupported_engines: false

metrics:
  lookback_days: 30
  enrichment_workers: 1
```
"""
import logging
import os
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import (
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_ENRICHMENT_WORKERS,
    DEFAULT_METRIC_LOOKBACK_DAYS,
    DEFAULT_METRIC_PERIOD_SECONDS,
    DEFAULT_RATE_LIMIT_BURST,
    DEFAULT_RATE_LIMIT_PER_SECOND,
    ENV_PREFIX,
)
from .utils import LinterError

logger = logging.getLogger(__name__)


# Default config file locations (checked in order)
DEFAULT_CONFIG_PATHS = [
    './linter-config.yaml',
    './linter-config.yml',
    '~/.linter/config.yaml',
    '~/.linter/config.yml',
]

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'log_level': f'{ENV_PREFIX}LOG_LEVEL',
    'aws.profile': f'{ENV_PREFIX}PROFILE',
    'aws.rate_limit': f'{ENV_PREFIX}RATE_LIMIT',
    'aws.rate_limit_burst': f'{ENV_PREFIX}RATE_LIMIT_BURST',
    'aws.skip_unsupported_engines': f'{ENV_PREFIX}SKIP_UNSUPPORTED_ENGINES',
    'metrics.lookback_days': f'{ENV_PREFIX}METRIC_LOOKBACK_DAYS',
    'metrics.enrichment_workers': f'{ENV_PREFIX}ENRICHMENT_WORKERS',
    'metrics.channel_capacity': f'{ENV_PREFIX}CHANNEL_CAPACITY',
}

_FLOAT_KEYS = {'aws.rate_limit'}
_INT_KEYS = {
    'aws.rate_limit_burst',
    'metrics.lookback_days',
    'metrics.enrichment_workers',
    'metrics.channel_capacity',
}
_BOOL_KEYS = {'aws.skip_unsupported_engines'}


@dataclass
class LinterConfig:
    """Resolved settings for one linter run."""
    profile: Optional[str] = None
    log_level: str = "INFO"
    rate_limit: float = DEFAULT_RATE_LIMIT_PER_SECOND
    rate_limit_burst: int = DEFAULT_RATE_LIMIT_BURST
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    enrichment_workers: int = DEFAULT_ENRICHMENT_WORKERS
    metric_period_seconds: int = DEFAULT_METRIC_PERIOD_SECONDS
    lookback_days: int = DEFAULT_METRIC_LOOKBACK_DAYS
    skip_unsupported_engines: bool = False

    def validate(self) -> None:
        if self.rate_limit <= 0:
            raise LinterError(f"rate_limit must be positive, got {self.rate_limit}")
        if self.rate_limit_burst < 1:
            raise LinterError(f"rate_limit_burst must be at least 1, got {self.rate_limit_burst}")
        if self.channel_capacity < 1:
            raise LinterError(f"channel_capacity must be at least 1, got {self.channel_capacity}")
        if self.enrichment_workers < 1:
            raise LinterError(f"enrichment_workers must be at least 1, got {self.enrichment_workers}")
        if self.lookback_days < 1:
            raise LinterError(f"lookback_days must be at least 1, got {self.lookback_days}")


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        # Pattern: ${VAR_NAME} or ${VAR_NAME:-default}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) or ''
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _get_nested(data: Dict, key_path: str, default: Any = None) -> Any:
    """Get a nested value from a dict using dot notation."""
    keys = key_path.split('.')
    value = data
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def _set_nested(data: Dict, key_path: str, value: Any) -> None:
    """Set a nested value in a dict using dot notation."""
    keys = key_path.split('.')
    for key in keys[:-1]:
        data = data.setdefault(key, {})
    data[keys[-1]] = value


def _coerce(key_path: str, value: Any) -> Any:
    """Convert env/YAML strings to the type the setting expects."""
    try:
        if key_path in _BOOL_KEYS:
            if isinstance(value, bool):
                return value
            return str(value).lower() in ('true', '1', 'yes')
        if key_path in _INT_KEYS:
            return int(value)
        if key_path in _FLOAT_KEYS:
            return float(value)
    except (TypeError, ValueError) as e:
        raise LinterError(f"Invalid value for {key_path}: {value!r}") from e
    return value


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    file_mode = path.stat().st_mode
    if file_mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning(f"Config file {config_path} has loose permissions. "
                       f"Consider: chmod 600 {config_path}")

    logger.info(f"Loading config from {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise LinterError(f"Invalid config file {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise LinterError(f"Invalid config file {config_path}: expected a mapping")

    return _substitute_env_vars(config)


def find_default_config() -> Optional[str]:
    """Find a config file in default locations."""
    for path in DEFAULT_CONFIG_PATHS:
        expanded = Path(path).expanduser()
        if expanded.exists():
            return str(expanded)
    return None


def load_env_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    for config_key, env_var in ENV_VAR_MAPPING.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(config, config_key, value)

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            elif value is not None:
                result[key] = value

    return result


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format."""
    config: Dict[str, Any] = {}

    arg_mapping = {
        'log_level': 'log_level',
        'profile': 'aws.profile',
        'rate_limit': 'aws.rate_limit',
        'enrichment_workers': 'metrics.enrichment_workers',
    }

    for arg_name, config_key in arg_mapping.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            _set_nested(config, config_key, value)

    # store_true flags only override when set
    if getattr(args, 'skip_unsupported_engines', False):
        _set_nested(config, 'aws.skip_unsupported_engines', True)

    return config


def config_from_dict(config: Dict[str, Any]) -> LinterConfig:
    """Build a validated LinterConfig from a merged config dict."""
    def get(key_path: str, default: Any) -> Any:
        value = _get_nested(config, key_path)
        return default if value is None else _coerce(key_path, value)

    defaults = LinterConfig()
    linter_config = LinterConfig(
        profile=get('aws.profile', defaults.profile),
        log_level=str(get('log_level', defaults.log_level)),
        rate_limit=get('aws.rate_limit', defaults.rate_limit),
        rate_limit_burst=get('aws.rate_limit_burst', defaults.rate_limit_burst),
        channel_capacity=get('metrics.channel_capacity', defaults.channel_capacity),
        enrichment_workers=get('metrics.enrichment_workers', defaults.enrichment_workers),
        lookback_days=get('metrics.lookback_days', defaults.lookback_days),
        skip_unsupported_engines=get('aws.skip_unsupported_engines', defaults.skip_unsupported_engines),
    )
    linter_config.validate()
    return linter_config


def load_config(args) -> LinterConfig:
    """
    Load configuration from all sources and merge them.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file (--config or default location)
    3. Environment variables
    """
    configs = []

    env_config = load_env_config()
    if env_config:
        logger.debug("Loaded config from environment variables")
        configs.append(env_config)

    config_path = getattr(args, 'config', None)
    if config_path:
        configs.append(load_config_file(config_path))
    else:
        default_config = find_default_config()
        if default_config:
            logger.info(f"Found default config file: {default_config}")
            configs.append(load_config_file(default_config))

    configs.append(args_to_config(args))

    return config_from_dict(merge_configs(*configs))


def generate_sample_config() -> str:
    """Generate a sample config file content."""
    return '''# Cloud Linter Configuration
#
# Environment variable substitution supported:
#   ${VAR_NAME}           - required env var
#   ${VAR_NAME:-default}  - env var with default value

# Logging level: DEBUG, INFO, WARNING, ERROR
log_level: INFO

aws:
  # AWS CLI profile (optional, uses default credentials if not set)
  # profile: my-profile

  # Outbound AWS API calls per second, shared by discovery and CloudWatch
  rate_limit: 1

  # Calls allowed back-to-back before pacing starts
  rate_limit_burst: 1

  # Skip ElastiCache clusters whose engine is neither redis nor memcached
  # instead of failing the run
  skip_unsupported_engines: false

metrics:
  # Days of CloudWatch history to collect (one data point per day)
  lookback_days: 30

  # Resources enriched concurrently (all calls still share the rate limit)
  enrichment_workers: 1

  # Enriched resources buffered before producers wait for the writer
  channel_capacity: 100
'''
