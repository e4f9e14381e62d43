"""Textual terminal UI for the AutoDev pipeline."""
