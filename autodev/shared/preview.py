"""Live preview: a static HTML page summarizing a generated project.

Pure function of the file tree.  Shared between the TUI and the server.
"""
from __future__ import annotations

import html
import json
import logging
import re
from collections.abc import Iterable

from autodev.engine.file_tree import flatten_files
from autodev.engine.models import FileNode, GeneratedFile

logger = logging.getLogger(__name__)

_ROUTE_RE = re.compile(r"""router\.(get|post|put|delete)\(\s*['"]([^'"]+)['"]""")
_API_FILE_NAMES = {"api.ts", "api.js"}

_DEFAULT_INFO = {"name": "Generated Project", "version": "1.0.0", "dependencies": {}}


def read_manifest(files: Iterable[GeneratedFile]) -> dict:
    """Project info from the first package.json; defaults if missing or invalid."""
    manifest = next((f for f in files if f.name == "package.json"), None)
    info = dict(_DEFAULT_INFO)
    if manifest is None or not manifest.content:
        return info
    try:
        parsed = json.loads(manifest.content)
    except json.JSONDecodeError as exc:
        logger.debug("package.json at %s is not valid JSON: %s", manifest.path, exc)
        return info
    if isinstance(parsed, dict):
        info.update({k: v for k, v in parsed.items() if v is not None})
    return info


def extract_endpoints(files: Iterable[GeneratedFile]) -> list[str]:
    """``METHOD /path`` for every router call in the first api.ts/api.js."""
    api = next((f for f in files if f.name in _API_FILE_NAMES), None)
    if api is None or not api.content:
        return []
    return [
        f"{method.upper()} {path}"
        for method, path in _ROUTE_RE.findall(api.content)
    ]


def generate_preview_html(files: Iterable[FileNode]) -> str:
    """Render the preview page for *files*."""
    all_files = flatten_files(files)
    info = read_manifest(all_files)
    endpoints = extract_endpoints(all_files)
    dependencies = info.get("dependencies") or {}
    if not isinstance(dependencies, dict):
        dependencies = {}

    name = html.escape(str(info.get("name", _DEFAULT_INFO["name"])))
    version = html.escape(str(info.get("version", _DEFAULT_INFO["version"])))
    endpoint_items = "".join(f"<li>{html.escape(e)}</li>" for e in endpoints)
    dependency_items = "".join(f"<li>{html.escape(str(d))}</li>" for d in dependencies)
    file_items = "".join(f"<li>{html.escape(f.path)}</li>" for f in all_files)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<title>{name} - Live Preview</title>
<style>
  body {{ font-family: monospace; background:#0f1724; color:#e2e8f0; padding:24px; }}
  .section {{ margin-bottom:16px; }}
</style>
</head>
<body>
  <h1>{name}</h1>
  <p>v{version}</p>
  <div class="section">
    <h2>Files</h2>
    <p>{len(all_files)} files</p>
    <ul>{file_items}</ul>
  </div>
  <div class="section">
    <h2>API Endpoints</h2>
    <ul>{endpoint_items}</ul>
  </div>
  <div class="section">
    <h2>Dependencies</h2>
    <ul>{dependency_items}</ul>
  </div>
</body>
</html>
"""
