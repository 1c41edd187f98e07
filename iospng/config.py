import logging
import os
import zlib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'IOSPNG_CONFIG'
ENV_PREFIX = 'IOSPNG_'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass(frozen=True)
class NormalizerConfig:
    compression_level: int = zlib.Z_DEFAULT_COMPRESSION
    verify_crc: bool = False
    require_cgbi: bool = True
    verify_output: bool = False
    log_level: str = 'INFO'

    def __post_init__(self):
        if not isinstance(self.compression_level, int) or isinstance(self.compression_level, bool) \
                or not -1 <= self.compression_level <= 9:
            raise ConfigError(f"compression_level must be an integer from -1 to 9, got {self.compression_level!r}")
        for name in ('verify_crc', 'require_cgbi', 'verify_output'):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean, got {getattr(self, name)!r}")
        if str(self.log_level).upper() not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        object.__setattr__(self, 'log_level', str(self.log_level).upper())

    def updated(self, **overrides) -> 'NormalizerConfig':
        """Return a copy with every override that is not None applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off'):
        return False
    raise ConfigError(f"Invalid boolean for {name}: {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigError(f"Invalid integer for {name}: {value!r}") from e


def load_yaml_config(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Failed to load config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(NormalizerConfig)}
    for key in set(data) - known:
        logger.warning(f"Ignoring unknown config key '{key}' in {path}")
    return {k: v for k, v in data.items() if k in known}


def load_env_config(environ=None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for f in fields(NormalizerConfig):
        env_name = ENV_PREFIX + f.name.upper()
        raw = environ.get(env_name)
        if raw is None or raw == '':
            continue
        if f.name == 'compression_level':
            values[f.name] = _parse_int(env_name, raw)
        elif f.name == 'log_level':
            values[f.name] = raw.strip()
        else:
            values[f.name] = _parse_bool(env_name, raw)
    return values


def load_config(path: Optional[Path] = None, environ=None, use_dotenv: bool = True) -> NormalizerConfig:
    """Build the effective configuration.

    Defaults are overlaid by the YAML file (``path``, or the file named by
    ``IOSPNG_CONFIG``) and then by ``IOSPNG_*`` environment variables. When
    ``use_dotenv`` is set, the nearest ``.env`` file at or above the working
    directory is loaded into the environment first.
    """
    if use_dotenv:
        load_dotenv(find_dotenv(usecwd=True))
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    if path is None and environ.get(CONFIG_ENV_VAR):
        path = Path(environ[CONFIG_ENV_VAR])
    if path is not None:
        values.update(load_yaml_config(Path(path)))
        logger.debug(f"Loaded config from {path}")
    values.update(load_env_config(environ))
    return NormalizerConfig(**values)
