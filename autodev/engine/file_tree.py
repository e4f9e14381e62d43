"""File tree builder: path-addressed tree of generated files.

Collision policy when an emitted node's path already exists:

    directory + directory  ->  merge children recursively
    file + file            ->  overwrite content in place (position kept),
                               reported in EmitResult.overwritten
    file + directory       ->  PathCollisionError, tree left unchanged

The same inputs always produce the same tree.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace

from .errors import PathCollisionError
from .models import (
    PATH_SEPARATOR,
    FileNode,
    GeneratedDirectory,
    GeneratedFile,
    join_path,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmitResult:
    """Outcome of FileTreeBuilder.emit_files."""
    files: tuple[FileNode, ...]
    added: list[str] = field(default_factory=list)
    overwritten: list[str] = field(default_factory=list)


class FileTreeBuilder:
    """Merges root-level nodes into an existing tree."""

    def emit_files(
        self,
        files: tuple[FileNode, ...],
        nodes: Iterable[FileNode],
    ) -> EmitResult:
        """Return a new tree with *nodes* merged into *files*.

        Raises PathCollisionError on a file/directory conflict and
        ValueError when a node's path disagrees with its position.
        """
        added: list[str] = []
        overwritten: list[str] = []
        tree = tuple(files)
        for node in nodes:
            _check_paths(node, parent="")
            tree = _merge_into(tree, node, added, overwritten)
        if overwritten:
            logger.info("emit_files overwrote %d file(s): %s", len(overwritten), overwritten)
        return EmitResult(files=tree, added=added, overwritten=overwritten)


def _check_paths(node: FileNode, parent: str) -> None:
    expected = join_path(parent, node.name)
    if not node.name or PATH_SEPARATOR in node.name:
        raise ValueError(f"Invalid node name {node.name!r} at {node.path!r}")
    if node.path != expected:
        raise ValueError(
            f"Node path {node.path!r} does not match its position {expected!r}"
        )
    if isinstance(node, GeneratedDirectory):
        for child in node.children:
            _check_paths(child, node.path)


def _merge_into(
    siblings: tuple[FileNode, ...],
    node: FileNode,
    added: list[str],
    overwritten: list[str],
) -> tuple[FileNode, ...]:
    for index, existing in enumerate(siblings):
        if existing.path != node.path:
            continue
        if type(existing) is not type(node):
            raise PathCollisionError(node.path, existing.type, node.type)
        if isinstance(node, GeneratedFile):
            overwritten.append(node.path)
            merged: FileNode = node
        else:
            merged = _merge_children(existing, node.children, added, overwritten)
        return siblings[:index] + (merged,) + siblings[index + 1:]

    if isinstance(node, GeneratedFile):
        added.append(node.path)
        return siblings + (node,)
    # Rebuild new directories child by child so duplicates inside the
    # emitted node follow the same policy.
    fresh = _merge_children(replace(node, children=()), node.children, added, overwritten)
    return siblings + (fresh,)


def _merge_children(
    directory: GeneratedDirectory,
    children: Iterable[FileNode],
    added: list[str],
    overwritten: list[str],
) -> GeneratedDirectory:
    merged = directory.children
    for child in children:
        merged = _merge_into(merged, child, added, overwritten)
    return replace(directory, children=merged)


def walk(files: Iterable[FileNode]) -> Iterator[FileNode]:
    """Depth-first, pre-order traversal of every node."""
    for node in files:
        yield node
        if isinstance(node, GeneratedDirectory):
            yield from walk(node.children)


def flatten_files(files: Iterable[FileNode]) -> list[GeneratedFile]:
    """All file (non-directory) nodes in pre-order."""
    return [node for node in walk(files) if isinstance(node, GeneratedFile)]


def find_node(files: Iterable[FileNode], path: str) -> FileNode | None:
    """Find the node at *path*, or None."""
    for node in walk(files):
        if node.path == path:
            return node
    return None


def all_paths(files: Iterable[FileNode]) -> list[str]:
    return [node.path for node in walk(files)]
