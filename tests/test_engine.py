from __future__ import annotations

import asyncio
import json

import pytest

from autodev.engine.config import EngineConfig
from autodev.engine.engine import _RunContext
from autodev.engine.file_tree import all_paths, find_node, flatten_files
from autodev.engine.messages import STAGE_MESSAGES, MessageContext
from autodev.engine.models import (
    AgentId,
    AgentStatus,
    LogType,
    RunState,
    join_path,
    make_directory,
    make_file,
)
from autodev.engine.outcomes import FailAt, RandomFailures
from autodev.engine.registry import AGENT_ORDER, AGENTS
from autodev.engine.scaffold import build_project

from conftest import make_engine


class _GatedSleep:
    """Sleep that blocks until released."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls = 0

    async def __call__(self, _seconds: float) -> None:
        self.calls += 1
        await self.gate.wait()


async def _until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def _running_sequence(events: list[dict]) -> list[str]:
    return [
        e["agent_id"] for e in events
        if e["event"] == "agent_status_changed" and e["new_status"] == "running"
    ]


@pytest.mark.asyncio
async def test_todo_app_run_completes_in_order(engine, events) -> None:
    assert engine.start("todo-app", "Build a REST API with CRUD endpoints")
    assert engine.is_running
    await engine.wait()

    assert not engine.is_running
    assert engine.active_agent is None
    assert all(s is AgentStatus.COMPLETED for s in engine.agent_statuses.values())
    assert _running_sequence(events) == [a.value for a in AGENT_ORDER]

    milestones = [
        (e.agent, e.message) for e in engine.logs
        if e.message.endswith((" started", " completed"))
    ]
    expected = []
    for agent_id in AGENT_ORDER:
        name = AGENTS[agent_id].name
        expected += [(agent_id, f"{name} started"), (agent_id, f"{name} completed")]
    assert milestones == expected

    roots = [node for node in engine.files if node.name == "todo-app"]
    assert len(roots) == 1
    manifest = find_node(engine.files, "todo-app/package.json")
    assert manifest is not None
    assert json.loads(manifest.content)["name"] == "todo-app"
    assert find_node(engine.files, "todo-app/coverage/summary.json") is not None
    assert find_node(engine.files, "todo-app/REVIEW.md") is not None


@pytest.mark.asyncio
async def test_exactly_one_agent_running_while_run_in_progress(engine) -> None:
    snapshots: list[RunState] = []
    engine.subscribe(lambda _event: snapshots.append(engine.state))

    engine.start("app", "a story")
    await engine.wait()

    for state in snapshots:
        running = [a for a, s in state.agent_statuses.items() if s is AgentStatus.RUNNING]
        if state.is_running:
            assert len(running) == 1
            assert state.active_agent is running[0]
        else:
            assert running == []


@pytest.mark.asyncio
async def test_log_timestamps_are_monotonic_and_ids_unique(engine) -> None:
    engine.start("app", "a story")
    await engine.wait()

    stamps = [entry.timestamp for entry in engine.logs]
    assert stamps == sorted(stamps)
    assert len({entry.id for entry in engine.logs}) == len(engine.logs)


@pytest.mark.asyncio
async def test_file_paths_are_unique(engine) -> None:
    engine.start("Todo App", "REST API for todos with postgres")
    await engine.wait()

    paths = all_paths(engine.files)
    assert len(paths) == len(set(paths))
    assert all(p.startswith("todo-app") for p in paths)


@pytest.mark.asyncio
async def test_forced_test_failure_stops_before_reviewer(events) -> None:
    engine = make_engine(outcome_policy=FailAt(AgentId.TEST))
    engine.subscribe(events.append)

    assert engine.start("app", "REST API")
    await engine.wait()

    assert not engine.is_running
    assert engine.active_agent is None
    assert engine.agent_statuses[AgentId.TEST] is AgentStatus.ERROR
    assert engine.agent_statuses[AgentId.REVIEWER] is AgentStatus.IDLE
    assert AgentId.REVIEWER.value not in _running_sequence(events)

    test_errors = [
        e for e in engine.logs
        if e.agent is AgentId.TEST and e.type is LogType.ERROR
    ]
    assert len(test_errors) == 1
    assert test_errors[0].message.startswith("TestRunnerAgent failed: ")

    finished = [e for e in events if e["event"] == "run_finished"]
    assert finished[-1]["success"] is False
    assert finished[-1]["failed_agent"] == "test"


@pytest.mark.asyncio
async def test_random_failure_rate_one_fails_first_stage() -> None:
    engine = make_engine(outcome_policy=RandomFailures(1.0))
    engine.start("app", "story")
    await engine.wait()

    assert engine.agent_statuses[AgentId.PARSER] is AgentStatus.ERROR
    assert all(
        engine.agent_statuses[a] is AgentStatus.IDLE for a in AGENT_ORDER[1:]
    )
    assert engine.files == ()


@pytest.mark.asyncio
@pytest.mark.parametrize(("name", "story"), [("", "story"), ("app", "   "), ("  ", "")])
async def test_empty_input_is_rejected_with_a_warning(engine, name, story) -> None:
    assert engine.start(name, story) is False

    assert not engine.is_running
    assert set(engine.agent_statuses.values()) == {AgentStatus.IDLE}
    assert len(engine.logs) == 1
    assert engine.logs[0].type is LogType.WARNING
    assert engine.logs[0].agent is AgentId.PARSER
    assert "must not be empty" in engine.logs[0].message


@pytest.mark.asyncio
async def test_start_while_running_is_ignored() -> None:
    sleep = _GatedSleep()
    engine = make_engine(sleep=sleep)
    assert engine.start("first", "story one")
    generation = engine.generation
    await _until(lambda: sleep.calls > 0)

    assert engine.start("second", "story two") is False
    assert engine.generation == generation
    assert engine.project_name == "first"
    assert engine.logs[-1].type is LogType.WARNING
    assert "already in progress" in engine.logs[-1].message

    sleep.gate.set()
    await engine.wait()
    assert all(s is AgentStatus.COMPLETED for s in engine.agent_statuses.values())
    assert engine.files[0].name == "first"


@pytest.mark.asyncio
async def test_reset_mid_run_restores_zero_state_and_nothing_resurrects(events) -> None:
    sleep = _GatedSleep()
    engine = make_engine(sleep=sleep)
    engine.subscribe(events.append)
    engine.start("app", "story")
    await _until(lambda: sleep.calls > 0)
    assert engine.agent_statuses[AgentId.PARSER] is AgentStatus.RUNNING

    engine.reset()
    generation = engine.generation
    assert engine.state == RunState()
    seen = len(events)

    sleep.gate.set()
    for _ in range(50):
        await asyncio.sleep(0)

    assert engine.state == RunState()
    assert all(e["generation"] == generation for e in events[seen - 1:])
    assert len(events) == seen


@pytest.mark.asyncio
async def test_stale_token_steps_are_no_ops() -> None:
    sleep = _GatedSleep()
    engine = make_engine(sleep=sleep)
    engine.start("app", "story")
    await _until(lambda: sleep.calls > 0)
    stale = engine._token
    engine.reset()

    run = _RunContext(
        name="app",
        story="story",
        project=build_project("app", "story"),
        messages=MessageContext("app", "app", "item", "api", 2),
        started_at=0.0,
    )
    sleep.gate.set()
    assert await engine._run_stage(stale, AgentId.PARSER, run) is None
    await engine._drive(stale, run)
    assert engine.state == RunState()


@pytest.mark.asyncio
async def test_start_after_reset_shows_only_the_new_run() -> None:
    sleep = _GatedSleep()
    engine = make_engine(sleep=sleep)
    engine.start("alpha", "story")
    await _until(lambda: sleep.calls > 0)
    engine.reset()

    assert engine.start("beta", "story")
    sleep.gate.set()
    await engine.wait()

    assert [node.name for node in engine.files] == ["beta"]
    assert all("alpha" not in entry.message for entry in engine.logs)


@pytest.mark.asyncio
async def test_start_clears_previous_run(engine) -> None:
    engine.start("first", "story")
    await engine.wait()
    engine.start("second", "story")
    await engine.wait()

    assert [node.name for node in engine.files] == ["second"]
    assert engine.logs[0].message == "StoryParserAgent started"


def test_reset_is_idempotent(engine, events) -> None:
    engine.reset()
    first = engine.state
    engine.reset()

    assert engine.state == first == RunState()
    assert [e["event"] for e in events] == ["run_reset", "run_reset"]


def test_start_outside_event_loop_raises_without_mutating(engine) -> None:
    with pytest.raises(RuntimeError):
        engine.start("app", "story")
    assert engine.state == RunState()
    assert engine.generation == 0


@pytest.mark.asyncio
async def test_events_carry_generation_and_finish_summary(engine, events) -> None:
    engine.start("app", "story")
    await engine.wait()

    assert {e["generation"] for e in events} == {1}
    assert events[0]["event"] == "run_started"
    assert events[0]["project_name"] == "app"
    finished = events[-1]
    assert finished["event"] == "run_finished"
    assert finished["success"] is True
    assert finished["file_count"] == len(flatten_files(engine.files))

    emitted = [e for e in events if e["event"] == "files_emitted"]
    assert [e["agent_id"] for e in emitted] == ["file", "test", "reviewer"]
    assert "app/coverage/summary.json" in emitted[1]["paths"]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_the_run(engine) -> None:
    def _boom(_event: dict) -> None:
        raise RuntimeError("listener failure")

    engine.subscribe(_boom)
    engine.start("app", "story")
    await engine.wait()
    assert all(s is AgentStatus.COMPLETED for s in engine.agent_statuses.values())


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(engine) -> None:
    received: list[dict] = []
    unsubscribe = engine.subscribe(received.append)
    unsubscribe()
    unsubscribe()
    engine.start("app", "story")
    await engine.wait()
    assert received == []


@pytest.mark.asyncio
async def test_same_seed_gives_same_log_messages() -> None:
    first = make_engine()
    second = make_engine()
    for engine in (first, second):
        engine.start("app", "Build a CLI tool")
        await engine.wait()

    assert [e.message for e in first.logs] == [e.message for e in second.logs]
    assert first.files == second.files


@pytest.mark.asyncio
async def test_parser_reports_matched_story_keywords() -> None:
    engine = make_engine(config=EngineConfig(
        step_delay_min_seconds=0.001,
        step_delay_max_seconds=0.002,
        messages_per_stage=len(STAGE_MESSAGES[AgentId.PARSER]),
    ))
    engine.start("todo-app", "Build a REST API with CRUD endpoints")
    await engine.wait()

    parser_messages = [e.message for e in engine.logs if e.agent is AgentId.PARSER]
    assert "Matched story keywords: api, rest, endpoint, crud" in parser_messages


@pytest.mark.asyncio
async def test_reviewer_overwriting_a_file_logs_a_warning(monkeypatch, engine) -> None:
    def _review(project, _reviewed, _rng):
        root = project.name
        return make_directory(root, [make_file(join_path(root, "package.json"), "{}")])

    monkeypatch.setattr("autodev.engine.engine.build_review", _review)
    engine.start("todo-app", "Build a REST API with CRUD endpoints")
    await engine.wait()

    assert all(s is AgentStatus.COMPLETED for s in engine.agent_statuses.values())
    warnings = [
        e for e in engine.logs
        if e.agent is AgentId.REVIEWER and e.type is LogType.WARNING
    ]
    assert [w.message for w in warnings] == ["Overwrote existing file todo-app/package.json"]
    assert find_node(engine.files, "todo-app/package.json").content == "{}"
    paths = all_paths(engine.files)
    assert len(paths) == len(set(paths))


@pytest.mark.asyncio
async def test_reviewer_type_conflict_fails_the_stage(monkeypatch, engine, events) -> None:
    def _review(project, _reviewed, _rng):
        root = project.name
        return make_directory(root, [make_directory(join_path(root, "package.json"))])

    monkeypatch.setattr("autodev.engine.engine.build_review", _review)
    engine.start("todo-app", "Build a REST API with CRUD endpoints")
    await engine.wait()

    assert not engine.is_running
    assert engine.active_agent is None
    assert engine.agent_statuses[AgentId.REVIEWER] is AgentStatus.ERROR
    errors = [e for e in engine.logs if e.type is LogType.ERROR]
    assert len(errors) == 1
    assert errors[0].agent is AgentId.REVIEWER
    assert errors[0].message.startswith(
        "CodeReviewerAgent failed: Cannot place directory at 'todo-app/package.json'"
    )
    assert find_node(engine.files, "todo-app/package.json").type == "file"
    assert find_node(engine.files, "todo-app/REVIEW.md") is None
    assert events[-1]["event"] == "run_finished"
    assert events[-1]["failed_agent"] == "reviewer"


@pytest.mark.asyncio
async def test_reset_inside_a_listener_keeps_the_batch_generation(engine) -> None:
    received: list[dict] = []

    def _listener(event: dict) -> None:
        received.append(event)
        if event["event"] == "run_started":
            engine.reset()

    engine.subscribe(_listener)
    engine.start("app", "story")
    await engine.wait()

    assert [e["event"] for e in received] == [
        "run_started", "run_reset", "agent_status_changed",
    ]
    assert received[0]["generation"] == 1
    assert received[1]["generation"] == 2
    assert received[2]["generation"] == 1
    assert engine.generation == 2
    assert engine.logs == ()
