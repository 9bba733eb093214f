"""CLI commands for the key/value settings store."""

from __future__ import annotations

import sys

import click

from ._common import CliState, log, pass_state


@click.group('config')
def config_group():
    """Read and edit the key/value settings store."""


@config_group.command('get')
@click.argument('key')
@pass_state
def config_get(state: CliState, key: str):
    """Print the value stored for KEY."""
    store = state.load_store()
    value = store.get(key)
    if value is None:
        click.echo(f'Key not found: {key}', err=True)
        sys.exit(1)
    click.echo(value)


@config_group.command(
    'set', context_settings={'ignore_unknown_options': True}
)
@click.argument('key')
@click.argument('value')
@pass_state
def config_set(state: CliState, key: str, value: str):
    """Store VALUE under KEY, keeping the key's position if it exists."""
    store = state.load_store()
    store.set(key, value)
    log.info('Set {} in {}', key, store.path)


@config_group.command('list')
@pass_state
def config_list(state: CliState):
    """Print every entry as `key: value`, sorted by key."""
    for line in state.load_store().render_list():
        click.echo(line)


@config_group.command('delete')
@click.argument('key')
@pass_state
def config_delete(state: CliState, key: str):
    """Remove KEY from the store."""
    store = state.load_store()
    if not store.delete(key):
        log.info('Key {} was not set', key)


@config_group.command('reset')
@pass_state
def config_reset(state: CliState):
    """Remove every entry, comment and blank line from the store."""
    store = state.load_store()
    store.reset()
    click.echo(f'Config reset: {store.path}')


@config_group.command('path')
@pass_state
def config_path(state: CliState):
    """Show where the settings store lives."""
    store = state.load_store()
    click.echo(str(store.path))
