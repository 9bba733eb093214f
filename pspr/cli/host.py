from __future__ import annotations

import sys

import click

from ..host import INSTALL_HINTS, check_commands
from ..workspace import self_update
from ._common import CliState, pass_state


@click.command('doctor')
def doctor_cmd():
    """Check host prerequisites and list missing external tools."""
    missing, missing_opt = check_commands()
    if missing:
        click.echo(f'❌ Missing required commands: {", ".join(missing)}')
        for cmd in missing:
            click.echo(f'💡 {cmd}: {INSTALL_HINTS.get(cmd, "")}'.rstrip())
        sys.exit(1)
    if missing_opt:
        click.echo(f'➖ Missing optional commands: {", ".join(missing_opt)}')
    click.echo('✅ Required host commands are present.')


@click.command('update')
@pass_state
def update_cmd(state: CliState):
    """Install the pspr launcher from the disk image (uses sudo)."""
    dest = self_update(state.load_store())
    click.echo(f'Updated: {dest}')
