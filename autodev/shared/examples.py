"""Canned user stories offered by the job form and ``GET /examples``."""
from __future__ import annotations

EXAMPLE_STORIES: tuple[str, ...] = (
    "Build a REST API with Express that has CRUD endpoints for managing a todo list with MongoDB",
    "Create a CLI tool that generates boilerplate code for React components with TypeScript",
    "Build a real-time chat server using Socket.IO with rooms and private messaging",
)
