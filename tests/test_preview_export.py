from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

import pytest

from autodev.engine.models import make_directory, make_file
from autodev.engine.scaffold import build_project
from autodev.shared.export import (
    export_directory,
    export_project,
    export_zip,
    to_sandbox_tree,
    zip_bytes,
)
from autodev.shared.preview import extract_endpoints, generate_preview_html, read_manifest


def test_preview_lists_manifest_endpoints_and_files() -> None:
    project = build_project("todo-app", "REST API with CRUD endpoints for todos using MongoDB")
    page = generate_preview_html([project])

    assert "<title>todo-app - Live Preview</title>" in page
    assert "GET /api/todos" in page
    assert "DELETE /api/todos/:id" in page
    assert "<li>express</li>" in page
    assert "<li>todo-app/src/api.ts</li>" in page


def test_preview_defaults_for_missing_or_invalid_manifest() -> None:
    broken = make_directory("x", [make_file("x/package.json", "{not json")])
    assert read_manifest([broken.children[0]])["name"] == "Generated Project"
    page = generate_preview_html([broken])
    assert "Generated Project" in page
    assert generate_preview_html([]).count("<li>") == 0


def test_preview_escapes_html() -> None:
    manifest = json.dumps({"name": "<script>alert(1)</script>", "dependencies": {"<b>": "1"}})
    page = generate_preview_html([make_directory("x", [make_file("x/package.json", manifest)])])
    assert "<script>alert" not in page
    assert "&lt;script&gt;" in page
    assert "&lt;b&gt;" in page


def test_extract_endpoints_reads_router_calls() -> None:
    api = make_file("a/src/api.js", "router.post('/login', h);\nrouter.put(\"/users/:id\", h);")
    assert extract_endpoints([api]) == ["POST /login", "PUT /users/:id"]
    assert extract_endpoints([make_file("a/other.ts", "router.get('/x')")]) == []


def test_sandbox_tree_shape() -> None:
    tree = to_sandbox_tree([make_directory("app", [
        make_file("app/README.md", "hi"),
        make_directory("app/src", [make_file("app/src/index.ts", "x")]),
    ])])
    assert tree == {
        "app": {"directory": {
            "README.md": {"file": {"contents": "hi"}},
            "src": {"directory": {"index.ts": {"file": {"contents": "x"}}}},
        }},
    }


def test_zip_contains_every_file() -> None:
    project = build_project("app", "CLI tool")
    with zipfile.ZipFile(io.BytesIO(zip_bytes([project]))) as zf:
        names = zf.namelist()
        assert "app/package.json" in names
        assert json.loads(zf.read("app/package.json"))["name"] == "app"


def test_export_zip_and_directory(tmp_path: Path) -> None:
    project = build_project("app", "CLI tool")
    archive = export_zip([project], tmp_path / "out")
    assert archive.suffix == ".zip"
    assert archive.exists()

    written = export_directory([project], tmp_path / "tree")
    assert (tmp_path / "tree" / "app" / "package.json").read_text(encoding="utf-8").startswith("{")
    assert all(path.is_file() for path in written)

    assert export_project([project], tmp_path / "p.zip").suffix == ".zip"
    assert export_project([project], tmp_path / "dir") == tmp_path / "dir"


def test_export_rejects_unsafe_paths(tmp_path: Path) -> None:
    unsafe = make_directory("..", [make_file("../evil.txt", "x")])
    with pytest.raises(ValueError, match="unsafe"):
        export_directory([unsafe], tmp_path)
