"""Editor launching and self-update helpers around the configured workspace."""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

from . import dmg
from .errors import (
    DirectoryNotFoundError,
    DiskImageError,
    FileNotFoundInWorkspaceError,
    MissingConfigError,
    PsprError,
)
from .host import require_command
from .store import ConfigStore
from .sync import load_base_path, validate_folder_arg
from .util import expand_path, run_cmd, which

log = logger

EDITOR = 'code'
DMG_KEY = 'dmg'
UPDATE_SOURCE_NAME = 'pspr'
UPDATE_DEST = '/usr/local/bin/pspr'


def configured_dmg(store: ConfigStore) -> str:
    raw = store.get(DMG_KEY)
    if not raw:
        raise MissingConfigError([DMG_KEY])
    return expand_path(raw)


def resolve_open_target(
    store: ConfigStore, foldername: str, filename: str = ''
) -> str:
    base = load_base_path(store)
    validate_folder_arg(foldername, base)
    target = f'{base}/{foldername}'
    if filename:
        target = f'{target}/{filename}'
        if not os.path.isfile(target):
            raise FileNotFoundInWorkspaceError(f'File not found: {target}')
    elif not os.path.isdir(target):
        raise DirectoryNotFoundError(f'Folder not found: {target}')
    return target


def open_in_editor(target: str) -> None:
    require_command(EDITOR)
    run_cmd([EDITOR, target], check=True, capture=False)


def reveal_in_finder(path: str) -> bool:
    if which('open') is None:
        log.debug('No `open` command; not revealing {}', path)
        return False
    res = run_cmd(['open', path], check=False, capture=True)
    if res.code != 0:
        log.warning('Could not reveal {}: {}', path, res.stderr.strip())
    return res.code == 0


def self_update(
    store: ConfigStore,
    *,
    mount_root: str = dmg.MOUNT_ROOT,
    dest: str = UPDATE_DEST,
) -> str:
    """Install the launcher shipped on the disk image into ``dest``.

    Privileges are validated up front so the user is not prompted halfway
    through the copy.
    """
    require_command('sudo')
    if run_cmd(['sudo', '-v'], check=False, capture=False).code != 0:
        raise PsprError('sudo authentication failed or not permitted.')

    image = configured_dmg(store)
    attached = dmg.attach(image, mount_root=mount_root)
    mp = attached.mount_point or dmg.discover_mount_point(
        dmg.MountEvidence(
            image, mount_root=mount_root, volumes=dmg.list_volumes(mount_root)
        ),
        strategies=(dmg.from_newest_volume,),
    )
    if mp is None:
        raise DiskImageError(
            f'Could not determine mount point for: {image}\n'
            'Tip: ensure the DMG is mounted (pspr open), then run: pspr update'
        )

    src = Path(mp) / UPDATE_SOURCE_NAME
    if not src.is_file():
        raise FileNotFoundInWorkspaceError(f'File not found in DMG: {src}')

    run_cmd(['sudo', 'mkdir', '-p', str(Path(dest).parent)], check=True)
    res = run_cmd(
        ['sudo', 'install', '-m', '0755', str(src), dest], check=False
    )
    if res.code != 0:
        log.warning('install failed ({}); falling back to cp', res.stderr.strip())
        run_cmd(['sudo', 'cp', '-f', str(src), dest], check=True)
        run_cmd(['sudo', 'chmod', '0755', dest], check=True)
    return dest
