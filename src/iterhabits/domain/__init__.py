"""Storage-agnostic domain contracts."""
