"""CLI commands that mirror project folders to the bucket and purge them."""

from __future__ import annotations

import click

from ..sync import SyncRun, mirror, unsync
from ..util import shell_join
from ._common import CliState, pass_state


def _report(run: SyncRun) -> None:
    if run.dry_run:
        click.echo(f'DRYRUN: {shell_join(run.command)}')


@click.command('sync')
@click.option(
    '-q',
    '--quiet',
    is_flag=True,
    default=False,
    help='One stats line per minute instead of live progress.',
)
@click.option(
    '--dry_run',
    '--dry-run',
    'dry_run',
    is_flag=True,
    default=False,
    help='Print the rclone command without running it.',
)
@click.argument('foldername')
@pass_state
def sync_cmd(state: CliState, quiet: bool, dry_run: bool, foldername: str):
    """Mirror FOLDERNAME under the configured path to the bucket.

    Remote objects that no longer exist locally are deleted after the
    upload finishes.
    """
    run = mirror(state.load_store(), foldername, quiet=quiet, dry_run=dry_run)
    _report(run)


@click.command('unsync')
@click.option(
    '--dry_run',
    '--dry-run',
    'dry_run',
    is_flag=True,
    default=False,
    help='Print the rclone command without running it.',
)
@click.argument('foldername')
@pass_state
def unsync_cmd(state: CliState, dry_run: bool, foldername: str):
    """Delete FOLDERNAME from the bucket. Local files are not touched."""
    run = unsync(state.load_store(), foldername, dry_run=dry_run)
    _report(run)
    if not run.dry_run:
        click.echo(f'Removed remote prefix: {run.target.remote_address}')
