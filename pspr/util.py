"""Shared utility helpers for subprocess execution, paths, and command formatting."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from loguru import logger

log = logger


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        shown = cmd if isinstance(cmd, str) else shell_join(cmd)
        super().__init__(
            f'Command failed (code={result.code}): {shown}\n{result.stderr}'.strip()
        )


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    env_overlay: Optional[Mapping[str, str]] = None,
) -> CmdResult:
    """Run an external command and wait for it to exit.

    ``env_overlay`` is merged over a copy of the current environment and
    handed to the child only; ``os.environ`` itself is left untouched.
    Overlay values are never logged.
    """
    env = None
    if env_overlay:
        env = dict(os.environ)
        env.update(env_overlay)
        log.opt(depth=1).debug(
            'Child environment overlay keys: {}', ', '.join(sorted(env_overlay))
        )
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    p = subprocess.run(
        list(cmd),
        capture_output=capture,
        text=True,
        env=env,
    )
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check and p.returncode != 0:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={} stdout={}',
            p.returncode,
            shell_join(cmd),
            res.stderr.strip(),
            res.stdout.strip(),
        )
        raise CmdError(cmd, res)
    if p.returncode == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shell_join(cmd))
    return res


def which(cmd: str) -> Optional[str]:
    from shutil import which as _which

    return _which(cmd)


def expand_path(path: str) -> str:
    """Expand a leading ``~`` and strip one trailing ``/``.

    No symlink resolution and no ``..`` collapsing is done.

    Example:
        >>> expand_path('/Volumes/Projects/')
        '/Volumes/Projects'
        >>> expand_path('/Volumes/Projects')
        '/Volumes/Projects'
        >>> expand_path('/')
        '/'
    """
    p = str(path)
    if p.startswith('~'):
        p = str(Path.home()) + p[1:]
    if p.endswith('/') and len(p) > 1:
        p = p[:-1]
    return p


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
