"""AutoDev: simulated multi-agent code generation pipeline."""

__version__ = "0.1.0"
