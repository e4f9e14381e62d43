from __future__ import annotations

import asyncio
import random

import pytest

from autodev.engine.config import EngineConfig
from autodev.engine.engine import SimulationEngine


async def instant_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


def make_engine(**kwargs) -> SimulationEngine:
    config = kwargs.pop("config", None) or EngineConfig(
        step_delay_min_seconds=0.001,
        step_delay_max_seconds=0.002,
        seed=7,
    )
    kwargs.setdefault("rng", random.Random(7))
    kwargs.setdefault("sleep", instant_sleep)
    return SimulationEngine(config, **kwargs)


@pytest.fixture
def engine() -> SimulationEngine:
    return make_engine()


@pytest.fixture
def events(engine: SimulationEngine) -> list[dict]:
    received: list[dict] = []
    engine.subscribe(received.append)
    return received
