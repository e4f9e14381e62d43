"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via AUTODEV_* env vars.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .errors import ConfigError
from .models import AgentId
from .registry import parse_agent_id

logger = logging.getLogger(__name__)


# Synchronous observer of engine events.
# Receives dicts like {"event": "log_appended", "generation": 3, ...}
EventListener = Callable[[dict[str, Any]], None]

MAX_STEP_DELAY_SECONDS = 60.0


def fire_event(listeners: Iterable[EventListener], event: dict[str, Any]) -> None:
    """Deliver *event* to every listener, logging (not raising) failures."""
    for listener in list(listeners):
        try:
            listener(event)
        except Exception:
            logger.exception("Event listener failed on %s", event.get("event"))


@dataclass
class EngineConfig:
    """Simulation engine configuration."""

    # Simulated work per stage is drawn uniformly from [min, max].
    step_delay_min_seconds: float = 0.6
    step_delay_max_seconds: float = 1.4

    # Seed for message selection, delays and random failures.
    # None means a fresh nondeterministic generator per engine.
    seed: int | None = None

    # Force a stage to fail (takes precedence over failure_rate).
    fail_stage: AgentId | None = None
    # Independent per-stage failure probability.
    failure_rate: float = 0.0

    # Descriptive log lines per stage, between "started" and "completed".
    messages_per_stage: int = 2

    # Logging
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError if any value is out of range."""
        if self.step_delay_min_seconds <= 0:
            raise ConfigError(
                "step_delay_min_seconds", self.step_delay_min_seconds,
                "must be greater than 0",
            )
        if self.step_delay_max_seconds < self.step_delay_min_seconds:
            raise ConfigError(
                "step_delay_max_seconds", self.step_delay_max_seconds,
                "must be >= step_delay_min_seconds",
            )
        if self.step_delay_max_seconds > MAX_STEP_DELAY_SECONDS:
            raise ConfigError(
                "step_delay_max_seconds", self.step_delay_max_seconds,
                f"must be <= {MAX_STEP_DELAY_SECONDS:g}",
            )
        if not 0.0 <= self.failure_rate <= 1.0:
            raise ConfigError("failure_rate", self.failure_rate, "must be within [0, 1]")
        if self.messages_per_stage < 0:
            raise ConfigError("messages_per_stage", self.messages_per_stage, "must be >= 0")
        if self.fail_stage is not None and not isinstance(self.fail_stage, AgentId):
            self.fail_stage = parse_fail_stage(self.fail_stage)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load configuration from AUTODEV_* environment variables."""
        autodev_vars = {
            k: v for k, v in os.environ.items() if k.startswith("AUTODEV_")
        }
        if autodev_vars:
            logger.info(
                "EngineConfig.from_env: AUTODEV_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(autodev_vars.items())),
            )
        else:
            logger.debug("EngineConfig.from_env: no AUTODEV_* env vars set, using defaults")

        seed_raw = os.getenv("AUTODEV_SEED", "").strip()
        config = cls(
            step_delay_min_seconds=_env_float(
                "AUTODEV_STEP_DELAY_MIN_SECONDS", cls.step_delay_min_seconds,
            ),
            step_delay_max_seconds=_env_float(
                "AUTODEV_STEP_DELAY_MAX_SECONDS", cls.step_delay_max_seconds,
            ),
            seed=_parse_int("AUTODEV_SEED", seed_raw) if seed_raw else None,
            fail_stage=parse_fail_stage(os.getenv("AUTODEV_FAIL_STAGE")),
            failure_rate=_env_float("AUTODEV_FAILURE_RATE", cls.failure_rate),
            messages_per_stage=_parse_int(
                "AUTODEV_MESSAGES_PER_STAGE",
                os.getenv("AUTODEV_MESSAGES_PER_STAGE", str(cls.messages_per_stage)),
            ),
            log_level=os.getenv("AUTODEV_LOG_LEVEL", cls.log_level).upper(),
        )
        logger.info(
            "EngineConfig.from_env: delay=%.2f-%.2fs seed=%s fail_stage=%s failure_rate=%.2f",
            config.step_delay_min_seconds, config.step_delay_max_seconds,
            config.seed, config.fail_stage.value if config.fail_stage else None,
            config.failure_rate,
        )
        return config


def parse_fail_stage(value: str | AgentId | None) -> AgentId | None:
    """Parse a fail-stage setting; blank means no forced failure."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return parse_agent_id(value)
    except ValueError as exc:
        raise ConfigError("fail_stage", value, str(exc)) from None


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(key, raw, "not a number") from None


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(key, raw, "not an integer") from None
