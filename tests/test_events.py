from __future__ import annotations

import asyncio

import pytest

from autodev.adapters.agent_adapter import (
    STATUS_DISPLAY,
    agent_label,
    format_entry,
    format_log_line,
    parse_log_type,
    parse_status,
)
from autodev.adapters.event_bus import EventBus
from autodev.adapters.events import (
    AgentStatusChanged,
    EngineEvent,
    FilesEmitted,
    LogAppended,
    RunFinished,
    RunReset,
    dict_to_event,
    event_to_dict,
)
from autodev.engine.models import AgentId, AgentStatus, LogEntry, LogType

from conftest import make_engine


def test_dict_to_event_builds_typed_events() -> None:
    event = dict_to_event({
        "event": "agent_status_changed",
        "generation": 2,
        "agent_id": "test",
        "old_status": "idle",
        "new_status": "running",
        "active_agent": "test",
        "unexpected": "ignored",
    })
    assert isinstance(event, AgentStatusChanged)
    assert event.generation == 2
    assert event.new_status == "running"

    assert isinstance(dict_to_event({"event": "run_reset"}), RunReset)
    unknown = dict_to_event({"event": "mystery", "generation": 1})
    assert type(unknown) is EngineEvent
    assert unknown.event_type == "mystery"


def test_event_to_dict_uses_event_key() -> None:
    data = event_to_dict(RunFinished(generation=3, success=False, failed_agent="file"))
    assert data["event"] == "run_finished"
    assert "event_type" not in data
    assert data["failed_agent"] == "file"


def test_adapter_parsers_fall_back() -> None:
    assert parse_status("running") is AgentStatus.RUNNING
    assert parse_status("bogus") is AgentStatus.IDLE
    assert parse_log_type("bogus") is LogType.INFO
    assert STATUS_DISPLAY[AgentStatus.ERROR][1] == "red"
    assert "StoryParserAgent" in agent_label(AgentId.PARSER)


def test_log_line_format_escapes_markup() -> None:
    entry = LogEntry(agent=AgentId.CODEGEN, message="wrote [src/index.ts]", type=LogType.ERROR)
    line = format_entry(entry)
    assert f"\\[{entry.timestamp:%H:%M:%S}]" in line
    assert "\\[codegen]" in line
    assert "[red]wrote \\[src/index.ts][/red]" in line
    assert format_log_line(entry.timestamp, AgentId.CODEGEN, "x", LogType.INFO).endswith(" x")


@pytest.mark.asyncio
async def test_bus_delivers_engine_events_in_order() -> None:
    engine = make_engine()
    bus = EventBus()
    engine.subscribe(bus.make_listener())
    engine.start("app", "story")
    await engine.wait()
    bus.close()

    received = []
    while bus.pending():
        received.append(bus._queue.get_nowait())

    assert received[0].event_type == "run_started"
    assert received[-1].event_type == "run_finished"
    logs = [e for e in received if isinstance(e, LogAppended)]
    assert [e.message for e in logs] == [entry.message for entry in engine.logs]
    assert any(isinstance(e, FilesEmitted) for e in received)


@pytest.mark.asyncio
async def test_bus_drops_when_full() -> None:
    bus = EventBus(maxsize=2)
    for _ in range(3):
        bus.publish(RunReset())
    assert bus.dropped == 1
    assert bus.pending() == 2


@pytest.mark.asyncio
async def test_consume_stops_after_close() -> None:
    bus = EventBus()
    bus.publish(RunReset(generation=1))
    seen = []

    async def _consume() -> None:
        async for event in bus.consume():
            seen.append(event)
            bus.close()

    await asyncio.wait_for(_consume(), timeout=2.0)
    assert [e.generation for e in seen] == [1]
    bus.publish(RunReset(generation=2))
    assert bus.pending() == 0
