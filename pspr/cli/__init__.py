"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import cli, main

__all__ = ['cli', 'main']
