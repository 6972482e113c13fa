"""Interview evaluation workflow service."""
