import copy
import logging
import os

import yaml

from deckworthy.constants import CONFIG_FILE, DEFAULT_SETTINGS, ENV_OVERRIDES
from deckworthy.exceptions import ConfigurationError
from deckworthy.utils import parse_bool

# Retrieve main logger
logger = logging.getLogger("main")

# Cache variable
_cached_settings = None


def _merge_settings(base, overrides):
    merged = copy.deepcopy(base)
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def _coerce_env_value(section, key, raw):
    default = DEFAULT_SETTINGS.get(section, {}).get(key)
    if isinstance(default, bool):
        return parse_bool(raw)
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring non-integer value for {section}.{key}: {raw!r}")
            return default
    if isinstance(default, list):
        return [item.strip() for item in raw.split(',') if item.strip()]
    return raw


def apply_env_overrides(settings, environ=None):
    environ = os.environ if environ is None else environ
    for env_name, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == '':
            continue
        settings.setdefault(section, {})[key] = _coerce_env_value(section, key, raw)
    return settings


def load_settings(force=False, path=None):
    """Read the YAML settings file merged over the defaults, then apply environment overrides"""
    global _cached_settings

    if _cached_settings and not force and path is None:
        return _cached_settings

    config_file = path or CONFIG_FILE
    if os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            file_settings = yaml.safe_load(yaml_file) or {}
        settings = _merge_settings(DEFAULT_SETTINGS, file_settings)
    else:
        settings = copy.deepcopy(DEFAULT_SETTINGS)
        try:
            os.makedirs(os.path.dirname(config_file), exist_ok=True)
            with open(config_file, "w") as yaml_file:
                yaml.safe_dump(settings, yaml_file, default_flow_style=False)
            logger.info(f"Default configuration written to {config_file}")
        except OSError as e:
            logger.warning(f"Could not write default configuration to {config_file}: {e}")

    settings = apply_env_overrides(settings)

    if path is None:
        _cached_settings = settings
    return settings


def require_setting(settings, section, key, hint=None):
    """Return a required setting or fail fast with a clear message"""
    value = (settings.get(section) or {}).get(key)
    if not value:
        env_name = next((name for name, target in ENV_OVERRIDES.items() if target == (section, key)), None)
        message = f"Missing required setting {section}.{key}"
        if env_name:
            message += f" (set {env_name} in the environment)"
        if hint:
            message += f". {hint}"
        raise ConfigurationError(message)
    return value


def database_uri(settings):
    """SQLAlchemy URI for the configured database"""
    explicit = os.environ.get("DATABASE_URL")
    if explicit:
        return explicit
    db_path = settings["database"]["path"]
    if db_path == ":memory:":
        return "sqlite://"
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    return f"sqlite:///{db_path}"
