"""Simulation engine: drives the six agents through one run at a time.

Owns the single RunState.  Every mutation goes through ``_commit``,
which replaces the snapshot and notifies listeners in commit order.

Runs are asyncio tasks on the caller's event loop.  Each run holds a
RunToken; ``start()`` and ``reset()`` cancel the previous token (and
task), and every step re-checks its token after each suspension, so a
callback from an abandoned run can never touch a later run's state.
All calls must come from the loop's thread; other threads should go
through ``loop.call_soon_threadsafe``.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from . import registry
from .config import EngineConfig, EventListener, fire_event
from .errors import InvalidInputError, PathCollisionError
from .file_tree import FileTreeBuilder, flatten_files
from .log_emitter import Clock, LogEmitter
from .messages import MessageContext, select_failure, select_messages
from .models import (
    AgentId,
    AgentStatus,
    FileNode,
    GeneratedDirectory,
    LogEntry,
    LogType,
    RunState,
)
from .outcomes import OutcomePolicy, policy_from_settings
from .pipeline import PipelineStateMachine
from .scaffold import analyze_story, build_coverage_report, build_project, build_review, slugify

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RunToken:
    """Cancellation token tying scheduled steps to the run that made them."""

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"RunToken(generation={self.generation}, cancelled={self._cancelled})"


@dataclass
class _RunContext:
    """Per-run values computed once in start()."""
    name: str
    story: str
    project: GeneratedDirectory
    messages: MessageContext
    started_at: float


class SimulationEngine:
    """Agent pipeline orchestrator.

    Commands: ``start(name, story)``, ``reset()``.
    Projections: ``state``, ``logs``, ``files``, ``is_running``,
    ``active_agent``, ``agent_statuses``.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        rng: random.Random | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
        outcome_policy: OutcomePolicy | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._rng = rng or random.Random(self._config.seed)
        self._sleep: Sleep = sleep or asyncio.sleep
        self._policy = outcome_policy or policy_from_settings(
            self._config.fail_stage, self._config.failure_rate,
        )
        self._pipeline = PipelineStateMachine()
        self._emitter = LogEmitter(clock=clock)
        self._tree = FileTreeBuilder()
        self._state = RunState()
        self._generation = 0
        self._token: RunToken | None = None
        self._task: asyncio.Task | None = None
        self._listeners: list[EventListener] = []
        self._project_name: str | None = None
        logger.info(
            "SimulationEngine init delay=%.2f-%.2fs seed=%s policy=%r",
            self._config.step_delay_min_seconds,
            self._config.step_delay_max_seconds,
            self._config.seed,
            self._policy,
        )

    # ── Projections ──

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        return self._state.logs

    @property
    def files(self) -> tuple[FileNode, ...]:
        return self._state.files

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def active_agent(self) -> AgentId | None:
        return self._state.active_agent

    @property
    def agent_statuses(self) -> Mapping[AgentId, AgentStatus]:
        return self._state.agent_statuses

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def project_name(self) -> str | None:
        return self._project_name

    # ── Observers ──

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── Commands ──

    def start(self, name: str, story: str) -> bool:
        """Start a run. Returns False if the invocation was rejected.

        Must be called from a running event loop.
        """
        name = (name or "").strip()
        story = (story or "").strip()
        try:
            if not name:
                raise InvalidInputError("Project name")
            if not story:
                raise InvalidInputError("User story")
        except InvalidInputError as exc:
            self._reject(f"Cannot start: {exc}")
            return False

        begun = self._pipeline.begin_run(self._state)
        if begun is None:
            self._reject("A run is already in progress; start ignored")
            return False

        begun = self._pipeline.advance(begun, registry.AGENT_ORDER[0])

        loop = asyncio.get_running_loop()
        self._cancel_pending()
        self._generation += 1
        token = RunToken(self._generation)
        self._token = token
        self._project_name = name

        analysis = analyze_story(story)
        run = _RunContext(
            name=name,
            story=story,
            project=build_project(name, story),
            messages=MessageContext(
                name=name,
                slug=slugify(name),
                entity=analysis.entity,
                features=", ".join(analysis.features),
                requirements=analysis.requirement_count,
                keywords=", ".join(analysis.keywords) or "none",
            ),
            started_at=time.monotonic(),
        )
        logger.info(
            "Run %d started name=%r features=%s entity=%s",
            token.generation, name, analysis.features, analysis.entity,
        )
        self._commit(
            replace(begun, logs=(), files=()),
            [{
                "event": "run_started",
                "project_name": name,
                "story": story,
            }],
            token.generation,
        )
        self._task = loop.create_task(
            self._drive(token, run), name=f"autodev-run-{token.generation}",
        )
        return True

    def reset(self) -> None:
        """Cancel any pending work and return to the zero state."""
        had_run = self._token is not None and not self._token.cancelled
        self._cancel_pending()
        self._generation += 1
        self._token = None
        self._project_name = None
        if had_run:
            logger.info("Reset cancelled in-flight run; generation now %d", self._generation)
        else:
            logger.debug("Reset (idle); generation now %d", self._generation)
        self._state = RunState()
        self._notify([{"event": "run_reset"}])

    async def wait(self) -> None:
        """Wait until the current run task (if any) has finished."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    # ── Internals ──

    def _cancel_pending(self) -> None:
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _is_current(self, token: RunToken) -> bool:
        return not token.cancelled and token is self._token

    def _commit(
        self,
        new_state: RunState,
        extra_events: Iterable[dict[str, Any]] = (),
        generation: int | None = None,
    ) -> None:
        """Replace the state and notify listeners of everything that changed.

        Every event is stamped with *generation* (default: the current
        one) before the first listener runs.
        """
        old = self._state
        self._state = new_state
        events: list[dict[str, Any]] = list(extra_events)
        for agent_id in registry.AGENT_ORDER:
            before = old.status_of(agent_id)
            after = new_state.status_of(agent_id)
            if before != after:
                events.append({
                    "event": "agent_status_changed",
                    "agent_id": agent_id.value,
                    "old_status": before.value,
                    "new_status": after.value,
                    "active_agent": new_state.active_agent.value if new_state.active_agent else None,
                })
        if new_state.logs[: len(old.logs)] == old.logs:
            appended = new_state.logs[len(old.logs):]
        else:
            appended = new_state.logs
        for entry in appended:
            events.append({"event": "log_appended", **_entry_fields(entry)})
        self._notify(events, generation)

    def _notify(self, events: list[dict[str, Any]], generation: int | None = None) -> None:
        if generation is None:
            generation = self._generation
        for event in events:
            event.setdefault("generation", generation)
        for event in events:
            fire_event(self._listeners, event)

    def _reject(self, message: str) -> None:
        """Record a rejected invocation as one warning entry.

        LogEntry always names an agent, so the warning is filed under the
        pipeline's entry agent (parser). It is an engine notice rather than
        a stage log: the parser's status is left untouched.
        """
        logger.warning("Invocation rejected: %s", message)
        logs = self._emitter.append(self._state.logs, registry.AGENT_ORDER[0], message, LogType.WARNING)
        self._commit(replace(self._state, logs=logs))

    def _apply(
        self,
        token: RunToken,
        transform: Callable[[RunState], RunState],
        extra_events: Iterable[dict[str, Any]] = (),
    ) -> bool:
        """Commit transform(state) only if *token* still owns the engine."""
        if not self._is_current(token):
            logger.debug("Dropped stale step from run %d", token.generation)
            return False
        self._commit(transform(self._state), extra_events, token.generation)
        return True

    def _log(self, token: RunToken, agent_id: AgentId, message: str, log_type: LogType = LogType.INFO) -> bool:
        return self._apply(
            token,
            lambda s: replace(s, logs=self._emitter.append(s.logs, agent_id, message, log_type)),
        )

    def _next_delay(self) -> float:
        return self._rng.uniform(
            self._config.step_delay_min_seconds,
            self._config.step_delay_max_seconds,
        )

    async def _pause(self, token: RunToken, seconds: float) -> bool:
        """Sleep, then report whether *token* is still current."""
        await self._sleep(seconds)
        return self._is_current(token)

    async def _drive(self, token: RunToken, run: _RunContext) -> None:
        """Run every stage in order, stopping at the first error."""
        if not self._is_current(token):
            return
        failed: AgentId | None = None
        try:
            for agent_id in registry.AGENT_ORDER:
                outcome = await self._run_stage(token, agent_id, run)
                if outcome is None:
                    return
                if outcome == AgentStatus.ERROR:
                    failed = agent_id
                    break
        except asyncio.CancelledError:
            logger.info("Run %d task cancelled", token.generation)
            raise

        if not self._is_current(token):
            return
        duration = time.monotonic() - run.started_at
        file_count = len(flatten_files(self._state.files))
        if failed is None:
            last = registry.AGENT_ORDER[-1]
            self._log(
                token, last,
                f"Pipeline finished: '{run.name}' generated with {file_count} files",
                LogType.SUCCESS,
            )
        else:
            self._log(
                token, failed,
                f"Pipeline halted at {registry.AGENTS[failed].name}; "
                "remaining agents were not run",
                LogType.WARNING,
            )
        logger.info(
            "Run %d finished success=%s failed=%s files=%d duration=%.2fs",
            token.generation, failed is None,
            failed.value if failed else None, file_count, duration,
        )
        self._notify([{
            "event": "run_finished",
            "success": failed is None,
            "failed_agent": failed.value if failed else None,
            "file_count": file_count,
            "duration_seconds": round(duration, 3),
        }], token.generation)
        token.cancel()

    async def _run_stage(
        self,
        token: RunToken,
        agent_id: AgentId,
        run: _RunContext,
    ) -> AgentStatus | None:
        """Run one stage. Returns its outcome, or None if the run was abandoned.

        The agent is already running: start() advances the first one and
        each completed stage hands off to the next.
        """
        agent = registry.AGENTS[agent_id]
        if not self._log(token, agent_id, f"{agent.name} started"):
            return None

        try:
            context = replace(
                run.messages, file_count=len(flatten_files(self._state.files)),
            )
            for message in select_messages(
                agent_id, self._rng, context, self._config.messages_per_stage,
            ):
                if not await self._pause(token, self._next_delay() / 2):
                    return None
                if not self._log(token, agent_id, message):
                    return None
            if not await self._pause(token, self._next_delay()):
                return None

            outcome = self._policy(agent_id, self._rng)
            if outcome == AgentStatus.ERROR:
                reason = select_failure(agent_id, self._rng, context)
                return self._fail(token, agent_id, reason)

            if not self._emit_stage_files(token, agent_id, run):
                return None
        except asyncio.CancelledError:
            raise
        except PathCollisionError as exc:
            return self._fail(token, agent_id, str(exc))
        except Exception as exc:
            logger.exception("Stage %s raised", agent_id.value)
            return self._fail(token, agent_id, f"unexpected {type(exc).__name__}: {exc}")

        if not self._log(token, agent_id, f"{agent.name} completed", LogType.SUCCESS):
            return None
        if not self._apply(token, lambda s: self._pipeline.handoff(s, agent_id)):
            return None
        return AgentStatus.COMPLETED

    def _fail(self, token: RunToken, agent_id: AgentId, reason: str) -> AgentStatus | None:
        agent = registry.AGENTS[agent_id]
        logger.warning("Stage %s failed: %s", agent_id.value, reason)
        if not self._log(token, agent_id, f"{agent.name} failed: {reason}", LogType.ERROR):
            return None
        if not self._apply(
            token, lambda s: self._pipeline.settle(s, agent_id, AgentStatus.ERROR),
        ):
            return None
        return AgentStatus.ERROR

    def _emit_stage_files(self, token: RunToken, agent_id: AgentId, run: _RunContext) -> bool:
        """Merge the files *agent_id* produces. Raises PathCollisionError."""
        if agent_id == AgentId.FILE:
            nodes: list[FileNode] = [run.project]
        elif agent_id == AgentId.TEST:
            sources = [
                f.path for f in flatten_files(self._state.files)
                if "/src/" in f.path
            ]
            nodes = [build_coverage_report(run.project, sources, self._rng)]
        elif agent_id == AgentId.REVIEWER:
            reviewed = [f.path for f in flatten_files(self._state.files)]
            nodes = [build_review(run.project, reviewed, self._rng)]
        else:
            return True

        result = self._tree.emit_files(self._state.files, nodes)
        if not self._apply(
            token,
            lambda s: replace(s, files=result.files),
            [{
                "event": "files_emitted",
                "agent_id": agent_id.value,
                "paths": list(result.added),
                "overwritten": list(result.overwritten),
            }],
        ):
            return False
        for path in result.overwritten:
            if not self._log(token, agent_id, f"Overwrote existing file {path}", LogType.WARNING):
                return False
        return self._log(
            token, agent_id,
            f"Wrote {len(result.added)} file(s) to {run.project.name}/",
        )


def _entry_fields(entry: LogEntry) -> dict[str, Any]:
    return {
        "log_id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "agent_id": entry.agent.value,
        "message": entry.message,
        "log_type": entry.type.value,
    }
