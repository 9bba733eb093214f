"""CLI commands that mount/unmount the disk image and open project folders."""

from __future__ import annotations

import click

from .. import dmg
from ..errors import DiskImageError
from ..store import ConfigStore
from ..workspace import (
    configured_dmg,
    open_in_editor,
    resolve_open_target,
    reveal_in_finder,
)
from ._common import CliState, log, pass_state


@click.command('open')
@click.argument('foldername', required=False, default='')
@click.argument('filename', required=False, default='')
@pass_state
def open_cmd(state: CliState, foldername: str, filename: str):
    """Mount the disk image, or open FOLDERNAME [FILENAME] in VS Code.

    FOLDERNAME is relative to the configured `path`.
    """
    store = state.load_store()
    if not foldername:
        _mount(store)
        return
    target = resolve_open_target(store, foldername, filename)
    open_in_editor(target)


@click.command('close')
@pass_state
def close_cmd(state: CliState):
    """Unmount the disk image (no-op when it is not mounted)."""
    image = configured_dmg(state.load_store())
    outcome = dmg.detach(image)
    if outcome.already_detached:
        click.echo(f'DMG not mounted: {image}')
        return
    if not outcome.ok:
        raise DiskImageError(
            f'One or more detach operations failed for: {image}'
        )
    if outcome.overridden:
        log.info('Detach steps failed but the image is gone: {}', outcome.attempted)
    suffix = ' (forced)' if outcome.forced else ''
    click.echo(f'DMG unmounted{suffix}: {image}')


def _mount(store: ConfigStore) -> None:
    image = configured_dmg(store)
    result = dmg.attach(image)
    if result.already_attached:
        click.echo(f'DMG already mounted: {image}')
        if result.mount_point:
            click.echo(f'Mount point: {result.mount_point}')
        return
    click.echo(f'Mounted: {image}')
    if result.mount_point:
        click.echo(f'Mount point: {result.mount_point}')
        reveal_in_finder(result.mount_point)
        return
    click.echo(
        'Mounted, but could not determine mount point automatically.',
        err=True,
    )
    click.echo(
        'Run: hdiutil info  (then open the mount point manually with: '
        f'open {dmg.MOUNT_ROOT}/YourVolume)',
        err=True,
    )
