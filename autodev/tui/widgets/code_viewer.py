"""Code viewer: read-only TextArea showing the selected file."""

from __future__ import annotations

from pathlib import PurePosixPath

from textual.widgets import TextArea

from autodev.engine.models import GeneratedFile

_LANGUAGES = {
    ".ts": "javascript",
    ".tsx": "javascript",
    ".js": "javascript",
    ".json": "json",
    ".md": "markdown",
}


class CodeViewer(TextArea):
    """Displays one GeneratedFile at a time."""

    def __init__(self, **kwargs) -> None:
        super().__init__("", read_only=True, show_line_numbers=True, **kwargs)
        self.current_path: str | None = None

    def show_file(self, file: GeneratedFile) -> None:
        language = _LANGUAGES.get(PurePosixPath(file.name).suffix)
        # Highlighting needs the optional tree-sitter grammars.
        self.language = language if language in self.available_languages else None
        self.load_text(file.content or "")
        self.current_path = file.path
        self.border_title = file.path

    def clear_file(self) -> None:
        self.language = None
        self.load_text("")
        self.current_path = None
        self.border_title = "No file selected"
