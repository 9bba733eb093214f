"""CLI help and command-tree rendering utilities."""

from __future__ import annotations

import shlex
import textwrap

import click

from ..store import ConfigStore
from ..sync import DEFAULT_PROVIDER, MIRROR_FLAGS, PROGRESS_FLAGS, SYNC_KEYS
from ..util import expand_path
from ._common import CliState, highlight_code, pass_state

KEY_DESCRIPTIONS = {
    'path': 'base directory for projects (e.g. /Volumes/Projects)',
    'dmg': 'absolute path to dmg file',
    's3_bucket_name': 'S3 bucket name',
    's3_endpoint': 'Cloudflare R2 endpoint (e.g. https://xxxx.r2.cloudflarestorage.com)',
    's3_region': 'region (use "auto" for R2)',
    's3_access_key_id': 'access key id',
    's3_secret_access_key': 'secret access key',
    'rclone_config_name': 'rclone remote name (e.g. r2)',
    's3_provider': 'optional rclone S3 provider (default: Cloudflare)',
}


@click.group('help')
def help_group():
    """Help and discovery commands."""


@help_group.command('keys')
@pass_state
def help_keys(state: CliState):
    """Describe the recognized config keys and whether each is set."""
    store = state.load_store()
    width = max(len(k) for k in KEY_DESCRIPTIONS)
    click.echo(f'Config: {store.path}')
    click.echo('Format: key: value')
    click.echo('')
    for key, desc in KEY_DESCRIPTIONS.items():
        mark = 'set' if store.get(key) else 'unset'
        click.echo(f'  {key:<{width}}  [{mark:>5}]  {desc}')
    click.echo('')
    click.echo(
        textwrap.fill(
            'Required for sync/unsync: ' + ', '.join(SYNC_KEYS), width=79
        )
    )


@help_group.command('tree')
@click.pass_context
def help_tree(ctx: click.Context):
    """Print the expanded pspr command tree."""
    root = ctx.find_root().command
    click.echo(_render_command_tree(root))


def _short_help_line(cmd: click.Command) -> str:
    doc = (cmd.help or '').strip()
    if not doc:
        return ''
    return doc.splitlines()[0].strip()


def _render_command_tree(root: click.Command, prefix: str = 'pspr') -> str:
    root_help = _short_help_line(root)
    root_line = f'{prefix} - {root_help}' if root_help else prefix
    lines: list[str] = [root_line]

    def walk(group: click.Group, parent: str, indent: str) -> None:
        members = sorted(group.commands.items())
        for idx, (name, sub) in enumerate(members):
            last = idx == len(members) - 1
            branch = '└── ' if last else '├── '
            path = f'{parent} {name}'
            help_line = _short_help_line(sub)
            if help_line:
                lines.append(f'{indent}{branch}{path} - {help_line}')
            else:
                lines.append(f'{indent}{branch}{path}')
            if isinstance(sub, click.Group):
                walk(sub, path, indent + ('    ' if last else '│   '))

    if isinstance(root, click.Group):
        walk(root, prefix, '')
    return '\n'.join(lines)


def _setting(store: ConfigStore, key: str, placeholder: str) -> str:
    value = store.get(key)
    if not value:
        return placeholder
    if key in ('path', 'dmg'):
        value = expand_path(value)
    return shlex.quote(value)


@help_group.command('raw')
@pass_state
def help_raw(state: CliState):
    """Print the hdiutil/rclone commands pspr runs for the current settings."""
    store = state.load_store()
    dmg = _setting(store, 'dmg', '<dmg>')
    base = _setting(store, 'path', '<path>')
    remote = _setting(store, 'rclone_config_name', '<remote>')
    bucket = _setting(store, 's3_bucket_name', '<bucket>')
    provider = _setting(store, 's3_provider', DEFAULT_PROVIDER)
    env_name = (store.get('rclone_config_name') or '<REMOTE>').upper()
    mirror_flags = ' '.join(MIRROR_FLAGS)
    progress_flags = ' '.join(PROGRESS_FLAGS)
    lines = textwrap.dedent(
        f"""
        # pspr help raw
        # Direct tool commands for the current settings.
        # Config: {store.path}

        # Attached images and their mount points (maps to: pspr open / close)
        hdiutil info

        # Mount the disk image (maps to: pspr open)
        hdiutil attach {dmg}

        # Unmount; <device> is the /dev/diskN line of the image in hdiutil info
        hdiutil detach <device>
        hdiutil detach -force <device>

        # rclone reads the remote definition from the environment:
        # RCLONE_CONFIG_{env_name}_TYPE=s3, _PROVIDER, _ACCESS_KEY_ID,
        # _SECRET_ACCESS_KEY, _REGION, _ENDPOINT

        # Mirror a folder (maps to: pspr sync <folder>)
        rclone sync {mirror_flags} --s3-no-check-bucket --s3-provider {provider} {progress_flags} {base}/<folder> {remote}:{bucket}/<folder>

        # Remove a folder from the bucket (maps to: pspr unsync <folder>)
        rclone purge --s3-no-check-bucket --s3-provider {provider} {remote}:{bucket}/<folder>

        # What is in the bucket
        rclone lsd {remote}:{bucket}
        """
    ).strip()
    click.echo(highlight_code(lines, lexer_name='bash'))
