from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
import json
import os
import re

import yaml

from .errors import ConfigError
from .utils.http import DEFAULT_USER_AGENT
from .utils.parsing import host_of

ENV_PREFIX = "CRAWLER_"
STORAGE_BACKEND_NAMES = ("mongo", "json", "memory")
STATE_BACKEND_NAMES = ("redis", "memory")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_duration(value: Any) -> float:
    """Seconds from a number or a duration string like "30s", "1m", "500ms"."""
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigError(f"invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _DURATION_UNITS[unit]


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"invalid boolean: {value!r}")


@dataclass
class HTTPConfig:
    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class MongoConfig:
    uri: str = "mongodb://localhost:27017"
    database: str = "crawler_db"
    collection: str = "links"


@dataclass
class RedisConfig:
    addr: str = "localhost:6379"
    password: str = ""
    db: int = 0
    set_key: str = "crawler:visited_urls"


@dataclass
class StorageConfig:
    # "mongo", "json", "memory" or a dotted path "package.module:ClassName".
    backend: str = "mongo"
    path: str = "output/records.json"


@dataclass
class StateConfig:
    # "redis", "memory" or a dotted path.
    backend: str = "redis"


@dataclass
class LogConfig:
    level: str = "info"


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Layered as defaults < config file < environment < command-line flags.
    """
    start_url: str = ""
    same_host: bool = True
    max_depth: int = 2
    worker_count: int = 10
    force_recrawl: bool = False
    http: HTTPConfig = field(default_factory=HTTPConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    state: StateConfig = field(default_factory=StateConfig)
    log: LogConfig = field(default_factory=LogConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def redacted(self) -> Dict[str, Any]:
        """Dict form safe for logging."""
        data = self.to_dict()
        if data["redis"]["password"]:
            data["redis"]["password"] = "***"
        return data

    # ---------- Loaders ----------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrawlConfig":
        cfg = cls()
        cfg.apply(data)
        return cfg

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON or YAML file.
        """
        path = os.fspath(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith((".yaml", ".yml")):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ConfigError(f"config file {path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: Optional["CrawlConfig"] = None) -> "CrawlConfig":
        """
        Overlay CRAWLER_* environment variables on `base` (or defaults).
        Nested options use an underscore: CRAWLER_HTTP_TIMEOUT, CRAWLER_REDIS_SET_KEY.
        """
        cfg = base or cls()
        overrides: Dict[str, Any] = {}
        for f in fields(cfg):
            value = getattr(cfg, f.name)
            if is_dataclass(value):
                nested = {}
                for sub in fields(value):
                    env = f"{ENV_PREFIX}{f.name}_{sub.name}".upper()
                    if env in os.environ:
                        nested[sub.name] = os.environ[env]
                if nested:
                    overrides[f.name] = nested
            else:
                env = f"{ENV_PREFIX}{f.name}".upper()
                if env in os.environ:
                    overrides[f.name] = os.environ[env]
        cfg.apply(overrides)
        return cfg

    def apply(self, data: Mapping[str, Any]) -> None:
        """
        Merge a (possibly partial) nested mapping into this config, coercing
        values to the declared field types. Dotted keys ("http.timeout") are
        accepted as well.
        """
        for key, value in data.items():
            if "." in key:
                section, _, name = key.partition(".")
                self.apply({section: {name: value}})
                continue
            current = getattr(self, key, _MISSING)
            if current is _MISSING:
                raise ConfigError(f"unknown config option: {key}")
            if is_dataclass(current):
                if not isinstance(value, Mapping):
                    raise ConfigError(f"config section {key} must be a mapping")
                for name, sub_value in value.items():
                    sub_current = getattr(current, name, _MISSING)
                    if sub_current is _MISSING:
                        raise ConfigError(f"unknown config option: {key}.{name}")
                    setattr(current, name, _coerce(f"{key}.{name}", sub_current, sub_value))
            else:
                setattr(self, key, _coerce(key, current, value))

    # ---------- Validation ----------

    def validate(self) -> None:
        if not self.start_url:
            raise ConfigError("start_url is required; pass it as an argument or set it in the config")
        if host_of(self.start_url) is None:
            raise ConfigError(f"start_url must be an absolute http(s) URL: {self.start_url!r}")
        if self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.worker_count < 1:
            raise ConfigError("worker_count must be >= 1")
        if self.http.timeout <= 0:
            raise ConfigError("http.timeout must be > 0")
        if not self.redis.set_key:
            raise ConfigError("redis.set_key cannot be empty")
        _check_backend("storage", self.storage.backend, STORAGE_BACKEND_NAMES)
        _check_backend("state", self.state.backend, STATE_BACKEND_NAMES)


_MISSING = object()


def _check_backend(kind: str, name: str, known: Tuple[str, ...]) -> None:
    if name.lower() in known or "." in name or ":" in name:
        return
    raise ConfigError(f"unknown {kind} backend {name!r}; expected one of {list(known)} or a dotted path")


def _coerce(name: str, current: Any, value: Any) -> Any:
    try:
        if name == "http.timeout":
            return parse_duration(value)
        if isinstance(current, bool):
            return parse_bool(value)
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {name}: {value!r}") from exc
    return "" if value is None else str(value)
