"""Project-specific exception types."""

from __future__ import annotations

from typing import Sequence


class PsprError(RuntimeError):
    """Base error for domain-level pspr failures."""


class InvalidKeyError(PsprError):
    """Raised when a config key does not match ``[A-Za-z0-9_]+``."""


class InvalidValueError(PsprError):
    """Raised when a config value cannot be stored on a single line."""


class InvalidArgumentError(PsprError):
    """Raised when a command-line argument is malformed."""


class MissingConfigError(PsprError):
    """Raised when one or more required config keys are unset.

    All missing keys are collected before raising so the user can fix them
    in one pass.
    """

    def __init__(self, keys: Sequence[str]):
        self.keys = list(keys)
        lines = [f'Missing required config key(s): {" ".join(self.keys)}']
        if len(self.keys) == 1:
            lines.append(
                f'Set it with: pspr config set {self.keys[0]} <value>'
            )
        else:
            lines.append('Set them with: pspr config set <key> <value>')
        super().__init__('\n'.join(lines))


class MissingDependencyError(PsprError):
    """Raised when a required external command is not on PATH."""

    def __init__(self, command: str, hint: str = ''):
        self.command = command
        self.hint = hint
        msg = f'{command} not found.'
        if hint:
            msg = f'{msg} {hint}'
        super().__init__(msg)


class NotFoundError(PsprError):
    """Raised when a requested local resource does not exist."""


class DiskImageNotFoundError(NotFoundError):
    pass


class DirectoryNotFoundError(NotFoundError):
    pass


class FileNotFoundInWorkspaceError(NotFoundError):
    pass


class DiskImageError(PsprError):
    """Raised when the disk image cannot be attached or detached."""
