import json
import random

from autodev.engine.file_tree import all_paths, find_node
from autodev.engine.scaffold import (
    analyze_story,
    build_coverage_report,
    build_project,
    build_review,
    slugify,
)


def test_slugify() -> None:
    assert slugify("Todo App") == "todo-app"
    assert slugify("  My_Cool.App!! ") == "my_cool.app"
    assert slugify("!!!") == "generated-project"


def test_analyze_story_detects_features_entity_and_database() -> None:
    analysis = analyze_story(
        "Build a REST API with Express that has CRUD endpoints for managing a todo list with MongoDB"
    )
    assert analysis.features == ("api",)
    assert analysis.entity == "todo"
    assert analysis.database == "mongodb"
    assert analysis.requirement_count == 3
    assert analysis.keywords == ("api", "rest", "endpoint", "crud", "express")


def test_analyze_story_defaults_to_api() -> None:
    analysis = analyze_story("Make something nice")
    assert analysis.features == ("api",)
    assert analysis.entity == "item"
    assert analysis.database is None
    assert analysis.keywords == ()


def test_build_project_for_todo_api() -> None:
    project = build_project("todo-app", "Build a REST API with CRUD endpoints for todos")
    paths = all_paths([project])

    assert project.name == "todo-app"
    assert "todo-app/package.json" in paths
    assert "todo-app/src/api.ts" in paths
    assert "todo-app/src/models/Todo.ts" in paths
    assert "todo-app/tests/todo.test.ts" in paths
    assert len(paths) == len(set(paths))

    manifest = json.loads(find_node([project], "todo-app/package.json").content)
    assert manifest["name"] == "todo-app"
    assert "express" in manifest["dependencies"]

    api = find_node([project], "todo-app/src/api.ts").content
    assert "router.get('/api/todos'" in api


def test_build_project_features_from_story() -> None:
    chat = all_paths([build_project("chat", "A real-time chat server using Socket.IO")])
    assert "chat/src/socket.ts" in chat
    cli = all_paths([build_project("gen", "Create a CLI tool for React components")])
    assert "gen/src/cli.ts" in cli
    assert any(p.startswith("gen/src/components/") for p in cli)


def test_build_project_is_deterministic() -> None:
    story = "Create a CLI tool that generates boilerplate code"
    assert build_project("x", story) == build_project("x", story)


def test_multiline_story_in_readme() -> None:
    project = build_project("notes", "Line one\nLine two")
    readme = find_node([project], "notes/README.md").content
    assert readme.startswith("# notes")
    assert "Line two" in readme


def test_stage_reports_share_the_project_root() -> None:
    project = build_project("app", "REST API for books")
    coverage = build_coverage_report(project, ["app/src/api.ts"], random.Random(1))
    review = build_review(project, ["app/src/api.ts"], random.Random(1))

    assert coverage.name == review.name == "app"
    summary = json.loads(find_node([coverage], "app/coverage/summary.json").content)
    assert 72.0 <= summary["total"]["lines"]["pct"] <= 100.0
    assert "`app/src/api.ts`" in find_node([review], "app/REVIEW.md").content
