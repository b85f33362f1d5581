from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from .errors import ConfigError

MODES = ("truncate", "delete")
DEFAULT_SCHEMAS = ("public",)

_OPTION_ALIASES = {
    "mode": "mode",
    "ignore_tables": "ignore_tables",
    "ignoreTables": "ignore_tables",
    "schemas": "schemas",
}

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(?P<key>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def _names(option: str, values: Any) -> list[str]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise ConfigError(f"{option} must be a list of names, got {type(values).__name__}")
    names = list(values)
    for name in names:
        if not isinstance(name, str) or not name:
            raise ConfigError(f"{option} entries must be non-empty strings, got {name!r}")
    return names


@dataclass
class CleanOptions:
    mode: str = "truncate"
    ignore_tables: frozenset[str] = field(default_factory=frozenset)
    schemas: tuple[str, ...] = DEFAULT_SCHEMAS

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ConfigError(f"Unsupported clean mode: {self.mode}")
        self.ignore_tables = frozenset(_names("ignore_tables", self.ignore_tables))
        self.schemas = tuple(dict.fromkeys(_names("schemas", self.schemas)))
        if not self.schemas:
            raise ConfigError("At least one schema must be given")

    @classmethod
    def resolve(
        cls, options: CleanOptions | Mapping[str, Any] | None = None
    ) -> CleanOptions:
        """Fill defaults for ``options``, which may be None, a mapping, or CleanOptions."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if not isinstance(options, Mapping):
            raise ConfigError(f"Clean options must be a mapping, got {type(options).__name__}")

        kwargs: dict[str, Any] = {}
        for key, value in options.items():
            if key not in _OPTION_ALIASES:
                raise ConfigError(f"Unknown clean option: {key}")
            if value is not None:
                kwargs[_OPTION_ALIASES[key]] = value
        return cls(**kwargs)


@dataclass
class DatabaseConfig:
    url: str


@dataclass
class ObservabilityConfig:
    log_level: str = "info"


@dataclass
class CleanerConfig:
    database: DatabaseConfig
    clean: CleanOptions
    observability: ObservabilityConfig


def expand_env(text: str, env: Mapping[str, str]) -> str:
    """Replace ``${NAME}`` and ``${NAME:-fallback}`` references in ``text`` from ``env``.

    Only ``env`` is consulted, so callers control exactly which variables a
    config file can see. A reference without a fallback whose variable is
    missing raises ``ConfigError``.
    """

    def substitute(match: re.Match[str]) -> str:
        key, fallback = match.group("key"), match.group("default")
        if key in env:
            return env[key]
        if fallback is not None:
            return fallback
        raise ConfigError(f"Environment variable {key} is required but not set")

    return _ENV_REF.sub(substitute, text)


def _expand_tree(node: Any, env: Mapping[str, str]) -> Any:
    if isinstance(node, str):
        return expand_env(node, env)
    if isinstance(node, dict):
        return {key: _expand_tree(item, env) for key, item in node.items()}
    if isinstance(node, list):
        return [_expand_tree(item, env) for item in node]
    return node


def load_config(path: str | Path, env: Mapping[str, str] | None = None) -> CleanerConfig:
    env = env if env is not None else os.environ
    try:
        raw = yaml.safe_load(Path(path).read_text()) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Config file must contain a mapping")
    resolved = _expand_tree(raw, env)

    try:
        database_raw = resolved["database"] or {}
    except KeyError as exc:
        raise ConfigError(f"Missing config section: {exc.args[0]}") from exc
    clean_raw = resolved.get("clean") or {}
    observability_raw = resolved.get("observability") or {}

    url = database_raw.get("url")
    if not url:
        raise ConfigError("database.url is required")

    return CleanerConfig(
        database=DatabaseConfig(url=str(url)),
        clean=CleanOptions.resolve(clean_raw),
        observability=ObservabilityConfig(
            log_level=str(observability_raw.get("log_level", "info")),
        ),
    )
