"""Spawner: a local process supervisor that keeps a manifest of child processes alive."""

__version__ = "0.1.0"
