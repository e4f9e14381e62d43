"""YAML configuration loader.

Loads an optional YAML file layered over the AUTODEV_* environment
variables.  When no file is given, ``./.autodev/autodev.yaml`` is used
if it exists.

Example YAML:
    engine:
      step_delay_min_seconds: 0.4
      step_delay_max_seconds: 1.0
      seed: 42
      fail_stage: test
      failure_rate: 0.0
      messages_per_stage: 3

    server:
      host: 127.0.0.1
      port: 8765
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from .config import EngineConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_RELPATH = Path(".autodev") / "autodev.yaml"


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "127.0.0.1"
    port: int = 0  # 0 = pick a free port


@dataclass
class AppConfig:
    """Complete parsed configuration."""
    engine: EngineConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    source: Path | None = None


def discover_config_path(cwd: Path | None = None) -> Path | None:
    """Return ./.autodev/autodev.yaml if it exists."""
    candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_RELPATH
    logger.debug("Config auto-discovery candidate: %s (exists=%s)", candidate, candidate.is_file())
    return candidate if candidate.is_file() else None


def load_yaml_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration: env defaults, then the YAML file on top.

    Raises FileNotFoundError for an explicit path that does not exist,
    yaml.YAMLError for malformed YAML and ConfigError for bad values.
    """
    base = EngineConfig.from_env()
    if path is None:
        path = discover_config_path()
        if path is None:
            logger.info("No config file found; using environment and defaults")
            return AppConfig(engine=base)
    path = Path(path)

    logger.info("load_yaml_config: loading %s", path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        raise ConfigError("<root>", type(raw).__name__, "top level must be a mapping")

    engine = _merge_engine(base, raw.get("engine") or {})
    server = _parse_server(raw.get("server") or {})
    logger.info(
        "Parsed YAML config %s sections: %s",
        path.name, ", ".join(sorted(raw)) if raw else "(empty)",
    )
    return AppConfig(engine=engine, server=server, source=path)


def _merge_engine(base: EngineConfig, section: dict) -> EngineConfig:
    if not isinstance(section, dict):
        raise ConfigError("engine", section, "must be a mapping")
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        logger.warning("Ignoring unknown engine config keys: %s", ", ".join(unknown))
    values = {f.name: getattr(base, f.name) for f in fields(EngineConfig)}
    values.update({k: v for k, v in section.items() if k in known})
    try:
        return EngineConfig(**values)
    except TypeError as exc:
        raise ConfigError("engine", section, str(exc)) from None


def _parse_server(section: dict) -> ServerConfig:
    if not isinstance(section, dict):
        raise ConfigError("server", section, "must be a mapping")
    port = section.get("port", ServerConfig.port)
    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ConfigError("server.port", port, "not an integer") from None
    if not 0 <= port <= 65535:
        raise ConfigError("server.port", port, "must be within 0-65535")
    return ServerConfig(
        host=str(section.get("host", ServerConfig.host)),
        port=port,
    )
