"""Shared services: no Textual or aiohttp dependency."""
