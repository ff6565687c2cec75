"""
Read-only HTTP API over the latest dashboard snapshot.
"""

from .api import build_view, create_server

__all__ = ["build_view", "create_server"]
