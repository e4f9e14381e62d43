"""Adapters package - Bridge between the engine and UI frontends.

This package contains the typed events, the event bus, and display
helpers that connect the engine to the TUI and server frontends.
"""
from __future__ import annotations

__all__ = [
    "EventBus",
    "EngineEvent",
    "dict_to_event",
    "event_to_dict",
]

from autodev.adapters.event_bus import EventBus
from autodev.adapters.events import EngineEvent, dict_to_event, event_to_dict
