"""
Local package for the Spawner process supervisor.

This package provides the merged configuration (effective_settings), the
manifest loader and the supervisor itself.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
