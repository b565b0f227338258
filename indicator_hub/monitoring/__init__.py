"""Provider health monitoring."""
