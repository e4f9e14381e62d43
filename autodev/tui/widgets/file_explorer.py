"""File explorer: Tree view of the generated project."""

from __future__ import annotations

from collections.abc import Iterable

from textual.message import Message
from textual.widgets import Tree
from textual.widgets.tree import TreeNode

from autodev.engine.models import FileNode, GeneratedDirectory, GeneratedFile


class FileExplorer(Tree[FileNode]):
    """Directories expand; selecting a file posts FileSelected."""

    class FileSelected(Message):
        def __init__(self, file: GeneratedFile) -> None:
            super().__init__()
            self.file = file

    def __init__(self, **kwargs) -> None:
        super().__init__("Project", **kwargs)
        self.show_root = False
        self.guide_depth = 2

    def show_files(self, files: Iterable[FileNode]) -> None:
        """Rebuild the tree from a snapshot of the file tree."""
        self.clear()
        self._add_nodes(self.root, files)
        self.root.expand_all()

    def _add_nodes(self, parent: TreeNode[FileNode], nodes: Iterable[FileNode]) -> None:
        for node in nodes:
            if isinstance(node, GeneratedDirectory):
                branch = parent.add(f"\U0001f4c1 {node.name}", data=node)
                self._add_nodes(branch, node.children)
            else:
                parent.add_leaf(f"\U0001f4c4 {node.name}", data=node)

    def on_tree_node_selected(self, event: Tree.NodeSelected[FileNode]) -> None:
        data = event.node.data
        if isinstance(data, GeneratedFile):
            event.stop()
            self.post_message(self.FileSelected(data))
