"""Host dependency checks for the external tools pspr drives."""

from __future__ import annotations

from loguru import logger

from .errors import MissingDependencyError
from .util import which

log = logger

INSTALL_HINTS = {
    'hdiutil': 'hdiutil ships with macOS; disk image commands need a Mac host.',
    'rclone': 'Install it (e.g., `brew install rclone`).',
    'code': (
        'Install VS Code and its CLI '
        '(e.g., `brew install --cask visual-studio-code`).'
    ),
    'sudo': 'sudo is required to update /usr/local/bin/pspr.',
}

REQUIRED_CMDS = ['hdiutil', 'rclone']
OPTIONAL_CMDS = ['code', 'sudo', 'open']


def check_commands() -> tuple[list[str], list[str]]:
    missing = [c for c in REQUIRED_CMDS if which(c) is None]
    missing_opt = [c for c in OPTIONAL_CMDS if which(c) is None]
    return missing, missing_opt


def require_command(cmd: str) -> str:
    found = which(cmd)
    if found is None:
        raise MissingDependencyError(cmd, INSTALL_HINTS.get(cmd, ''))
    log.debug('Found {} at {}', cmd, found)
    return found
