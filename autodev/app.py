"""AutoDev CLI: main application entry point."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler

import yaml
from rich.console import Console

from autodev.adapters.agent_adapter import format_log_line, parse_log_type
from autodev.engine.engine import SimulationEngine
from autodev.engine.errors import ConfigError
from autodev.engine.models import AgentId
from autodev.engine.pipeline import PipelineStateMachine
from autodev.engine.yaml_config import AppConfig, load_yaml_config

EXIT_OK = 0
EXIT_STAGE_FAILED = 1
EXIT_INVALID = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"


def configure_logging(level: str, *, to_stderr: bool) -> Path:
    """Configure the root logger once per process. Returns the log file path."""
    log_dir = Path(os.getenv("AUTODEV_LOG_DIR", "") or Path.home() / ".autodev" / "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "autodev.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    if to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


async def run_headless(
    engine: SimulationEngine,
    name: str,
    story: str,
    *,
    export: Path | None = None,
    console: Console | None = None,
) -> int:
    """Run one pipeline to completion, printing the agent log as it grows."""
    console = console or Console()

    def _print_event(event: dict) -> None:
        if event.get("event") != "log_appended":
            return
        console.print(format_log_line(
            datetime.fromisoformat(event["timestamp"]),
            AgentId(event["agent_id"]),
            event["message"],
            parse_log_type(event["log_type"]),
        ))

    unsubscribe = engine.subscribe(_print_event)
    try:
        if not engine.start(name, story):
            return EXIT_INVALID
        await engine.wait()
    finally:
        unsubscribe()

    failed = PipelineStateMachine.failed_agent(engine.state)
    if export is not None and engine.files:
        from autodev.shared.export import export_project

        target = export_project(engine.files, export)
        console.print(f"[green]Exported to[/green] {target}")
    return EXIT_STAGE_FAILED if failed is not None else EXIT_OK


def _load_config(args) -> AppConfig:
    config = load_yaml_config(args.config)
    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.fail_stage is not None:
        overrides["fail_stage"] = args.fail_stage
    if overrides:
        config.engine = replace(config.engine, **overrides)
    if args.host is not None:
        config.server = replace(config.server, host=args.host)
    if args.port is not None:
        config.server = replace(config.server, port=args.port)
    return config


def main(argv: list[str] | None = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="autodev",
        description="AutoDev: simulated multi-agent code-generation pipeline",
    )
    parser.add_argument(
        "--server", action="store_true",
        help="Start HTTP+SSE server mode",
    )
    parser.add_argument(
        "--host", default=None,
        help="Server host (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", type=int, default=None,
        help="Server port (0=random available port)",
    )
    parser.add_argument(
        "--run", metavar="NAME",
        help="Run one pipeline headless for project NAME and exit",
    )
    parser.add_argument(
        "--story", metavar="STORY",
        help="User story for --run",
    )
    parser.add_argument(
        "--export", metavar="PATH", type=Path,
        help="After --run, write the generated files (.zip or directory)",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for messages, delays and random failures",
    )
    parser.add_argument(
        "--fail-stage", metavar="AGENT", default=None,
        help="Force a stage to fail (" + ", ".join(a.value for a in AgentId) + ")",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: ./.autodev/autodev.yaml if present)",
    )
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except (ConfigError, FileNotFoundError, yaml.YAMLError) as exc:
        print(f"autodev: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(EXIT_INVALID)

    tui_mode = not args.server and args.run is None
    log_file = configure_logging(config.engine.log_level, to_stderr=not tui_mode)
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting AutoDev mode=%s cwd=%s config=%s log=%s",
        "server" if args.server else "run" if args.run is not None else "tui",
        Path.cwd(), config.source or "<none>", log_file,
    )

    if args.run is not None:
        engine = SimulationEngine(config.engine)
        code = asyncio.run(run_headless(engine, args.run, args.story or "", export=args.export))
        logger.info("Headless run exited with %d", code)
        sys.exit(code)

    if args.server:
        from autodev.server.server import AutodevServer

        server = AutodevServer(SimulationEngine(config.engine), config.server)
        try:
            asyncio.run(server.serve_forever())
        except KeyboardInterrupt:
            logger.info("Server interrupted")
        return

    from autodev.tui.app import AutodevApp

    AutodevApp(engine=SimulationEngine(config.engine)).run()


if __name__ == "__main__":
    main()
