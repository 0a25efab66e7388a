"""Core building blocks: declarations, compiled schemas, resolution and planning."""
