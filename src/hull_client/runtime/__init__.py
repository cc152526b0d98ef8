"""Process environment and logging."""
