from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

import click
import pygments
from loguru import logger
from pygments.formatters import TerminalFormatter
from pygments.lexers import get_lexer_by_name

from ..store import ConfigStore, load_store

log = logger


@dataclass
class CliState:
    """Options given to the root command, shared with every subcommand."""

    config_path: Path | None = None

    def load_store(self) -> ConfigStore:
        return load_store(self.config_path)


pass_state = click.make_pass_decorator(CliState, ensure=True)


def highlight_code(text: str, lexer_name: str = 'bash') -> str:
    """Terminal-colorize ``text``; plain when stdout is not a TTY or NO_COLOR is set."""
    if not sys.stdout.isatty() or os.getenv('NO_COLOR') is not None:
        return text
    lexer = get_lexer_by_name(lexer_name)
    return pygments.highlight(text, lexer, TerminalFormatter()).rstrip('\n')


__all__ = [name for name in globals() if not name.startswith('__')]
