"""Export service: hand the generated tree to the outside world.

- to_sandbox_tree: nested mapping for an external runtime sandbox
- export_zip / export_directory: write the tree to disk
"""
from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from autodev.engine.file_tree import flatten_files
from autodev.engine.models import FileNode, GeneratedDirectory, GeneratedFile

logger = logging.getLogger(__name__)


def to_sandbox_tree(files: Iterable[FileNode]) -> dict[str, Any]:
    """``{name: {"directory": {...}}}`` / ``{name: {"file": {"contents": str}}}``."""
    tree: dict[str, Any] = {}
    for node in files:
        if isinstance(node, GeneratedDirectory):
            tree[node.name] = {"directory": to_sandbox_tree(node.children)}
        elif isinstance(node, GeneratedFile):
            tree[node.name] = {"file": {"contents": node.content or ""}}
    return tree


def _safe_relpath(path: str) -> PurePosixPath:
    rel = PurePosixPath(path)
    if rel.is_absolute() or ".." in rel.parts:
        raise ValueError(f"Refusing to export unsafe path: {path!r}")
    return rel


def zip_bytes(files: Iterable[FileNode]) -> bytes:
    """The tree as an in-memory zip archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for f in flatten_files(files):
            zf.writestr(str(_safe_relpath(f.path)), f.content or "")
    return buffer.getvalue()


def export_zip(files: Iterable[FileNode], dest: Path) -> Path:
    """Write the tree to a .zip at *dest*. Returns the archive path."""
    dest = Path(dest)
    if dest.suffix != ".zip":
        dest = dest.with_suffix(".zip")
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(zip_bytes(files))
    logger.info("Exported project archive to %s", dest)
    return dest


def export_directory(files: Iterable[FileNode], dest: Path) -> list[Path]:
    """Write every file under *dest*. Returns the written paths."""
    dest = Path(dest)
    written: list[Path] = []
    for f in flatten_files(files):
        target = dest.joinpath(*_safe_relpath(f.path).parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content or "", encoding="utf-8")
        written.append(target)
    logger.info("Exported %d file(s) to %s", len(written), dest)
    return written


def export_project(files: Iterable[FileNode], dest: Path) -> Path:
    """Zip when *dest* ends in .zip, otherwise write a directory."""
    dest = Path(dest)
    if dest.suffix == ".zip":
        return export_zip(files, dest)
    export_directory(files, dest)
    return dest
