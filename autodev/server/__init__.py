"""HTTP + SSE frontend for the simulation engine."""
