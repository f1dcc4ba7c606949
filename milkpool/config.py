"""Environment-driven settings for the milk pool service.

``FLASK_ENV`` selects one of the config classes below. Every other value is
read through :class:`EnvReader`, which never raises on a malformed value: it
records a warning (surfaced at startup through ``ENV_DIAGNOSTICS``) and keeps
the default.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, TypeVar

T = TypeVar("T")

ENV_KEY = "FLASK_ENV"
ENVIRONMENTS = ("development", "testing", "staging", "production")
_RETIRED_ENV_KEYS = ("APP_ENV", "MILKPOOL_ENV", "ENVIRONMENT")
_BOOLEANS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


@dataclass(frozen=True)
class EnvironmentInfo:
    name: str
    source: str
    raw_value: str


class EnvReader:
    """Typed, forgiving access to a mapping of environment variables."""

    def __init__(self, data: Mapping[str, str] | None = None):
        self._data = dict(os.environ if data is None else data)
        self.warnings: list[str] = []

    def raw(self, key: str) -> str | None:
        return self._data.get(key)

    def _typed(self, key: str, default: T, parse: Callable[[str], T], label: str) -> T:
        value = (self._data.get(key) or "").strip()
        if not value:
            return default
        try:
            return parse(value)
        except (KeyError, ValueError):
            self.warnings.append(f"{key}={value!r} is not a valid {label}; using {default!r}.")
            return default

    def str(self, key: str, default: str | None = None) -> str | None:
        return self._typed(key, default, lambda v: v, "string")

    def int(self, key: str, default: int = 0) -> int:
        return self._typed(key, default, int, "integer")

    def float(self, key: str, default: float = 0.0) -> float:
        return self._typed(key, default, float, "number")

    def bool(self, key: str, default: bool = False) -> bool:
        return self._typed(key, default, lambda v: _BOOLEANS[v.lower()], "boolean")


def _normalize_db_url(url: str | None) -> str | None:
    if not url:
        return None
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def _database_url(reader: EnvReader) -> str | None:
    return _normalize_db_url(reader.str("DATABASE_INTERNAL_URL") or reader.str("DATABASE_URL"))


def _resolve_ratelimit_uri(reader: EnvReader) -> str:
    return (
        reader.str("RATELIMIT_STORAGE_URI")
        or reader.str("REDIS_URL")
        or "memory://"
    )


def _resolve_environment(reader: EnvReader) -> EnvironmentInfo:
    retired = [key for key in _RETIRED_ENV_KEYS if reader.raw(key)]
    if retired:
        raise RuntimeError(
            f"{', '.join(retired)} is not read; set {ENV_KEY} to one of {list(ENVIRONMENTS)}."
        )

    raw_value = reader.str(ENV_KEY, "development")
    name = raw_value.lower()
    if name not in ENVIRONMENTS:
        raise RuntimeError(f"{ENV_KEY}={raw_value!r} is not one of {list(ENVIRONMENTS)}.")
    return EnvironmentInfo(name=name, source=ENV_KEY, raw_value=raw_value)


env = EnvReader()
ENV_INFO = _resolve_environment(env)


class LedgerSettings:
    """Knobs for the pool ledger itself."""

    MILK_POOL_DEFAULT_NAME = env.str("MILK_POOL_DEFAULT_NAME", "Main Pool")
    # extra attempts after a version conflict before reporting it to the caller
    MILK_POOL_CONFLICT_RETRIES = env.int("MILK_POOL_CONFLICT_RETRIES", 1)
    MILK_POOL_FLOAT_TOLERANCE = env.float("MILK_POOL_FLOAT_TOLERANCE", 1e-9)
    MILK_POOL_RECENT_USAGE_LIMIT = env.int("MILK_POOL_RECENT_USAGE_LIMIT", 20)
    MILK_POOL_BOOK_LIST_LIMIT = env.int("MILK_POOL_BOOK_LIST_LIMIT", 50)
    POOL_RESET_RATE_LIMIT = env.str("POOL_RESET_RATE_LIMIT", "10 per minute")


class BaseConfig(LedgerSettings):
    FLASK_ENV = ENV_INFO.name
    SECRET_KEY = env.str("FLASK_SECRET_KEY", "milkpool-dev-secret")

    SQLALCHEMY_DATABASE_URI = _database_url(env)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": env.int("SQLALCHEMY_POOL_SIZE", 10),
        "max_overflow": env.int("SQLALCHEMY_MAX_OVERFLOW", 20),
        "pool_recycle": env.int("SQLALCHEMY_POOL_RECYCLE", 1800),
        "pool_timeout": env.int("SQLALCHEMY_POOL_TIMEOUT", 30),
    }

    RATELIMIT_ENABLED = env.bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = _resolve_ratelimit_uri(env)
    RATELIMIT_DEFAULT = env.str("RATELIMIT_DEFAULT", "5000 per hour;1000 per minute")

    CACHE_TYPE = env.str("CACHE_TYPE", "SimpleCache")
    CACHE_REDIS_URL = env.str("CACHE_REDIS_URL") or env.str("REDIS_URL")
    CACHE_DEFAULT_TIMEOUT = env.int("CACHE_DEFAULT_TIMEOUT", 300)

    LOG_LEVEL = env.str("LOG_LEVEL")
    LOG_REDACT_PII = env.bool("LOG_REDACT_PII", True)


def _local_sqlite_uri() -> str:
    instance_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "instance")
    os.makedirs(instance_dir, exist_ok=True)
    return "sqlite:///" + os.path.join(instance_dir, "milkpool.db")


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = BaseConfig.SQLALCHEMY_DATABASE_URI or _local_sqlite_uri()
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 3600}


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"


class StagingConfig(BaseConfig):
    ENV = "staging"
    DEBUG = False


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False
    LOG_LEVEL = env.str("LOG_LEVEL", "INFO")


config_map = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}

Config = config_map[ENV_INFO.name]
ENV_DIAGNOSTICS = {
    "active": ENV_INFO.name,
    "source": ENV_INFO.source,
    "warnings": tuple(env.warnings),
}
