"""Mirror project folders to, and purge them from, an S3 bucket via rclone."""

from __future__ import annotations

import os
from dataclasses import dataclass

from loguru import logger

from .errors import (
    DirectoryNotFoundError,
    InvalidArgumentError,
    MissingConfigError,
)
from .host import require_command
from .store import ConfigStore
from .util import expand_path, run_cmd

log = logger

RCLONE = 'rclone'
DEFAULT_PROVIDER = 'Cloudflare'

BASE_PATH_KEY = 'path'
SYNC_KEYS = (
    's3_bucket_name',
    's3_endpoint',
    's3_region',
    's3_access_key_id',
    's3_secret_access_key',
    'rclone_config_name',
)

# Change detection by content hash, links followed, deletions only after
# the copy phase, renames moved server-side instead of re-uploaded.
MIRROR_FLAGS = (
    '--fast-list',
    '--checksum',
    '--copy-links',
    '--delete-after',
    '--track-renames',
    '--track-renames-strategy',
    'hash',
)
QUIET_FLAGS = ('--stats-one-line', '--stats', '1m', '--log-level', 'NOTICE')
PROGRESS_FLAGS = ('--progress', '--stats-one-line', '--stats', '10s')


@dataclass(frozen=True)
class SyncSettings:
    bucket: str
    endpoint: str
    region: str
    access_key_id: str
    secret_access_key: str
    remote_name: str
    provider: str = DEFAULT_PROVIDER

    @property
    def env_prefix(self) -> str:
        return f'RCLONE_CONFIG_{self.remote_name.upper()}_'

    def env_overlay(self) -> dict[str, str]:
        """Remote definition for rclone, scoped to the child process."""
        p = self.env_prefix
        return {
            f'{p}TYPE': 's3',
            f'{p}PROVIDER': self.provider,
            f'{p}ACCESS_KEY_ID': self.access_key_id,
            f'{p}SECRET_ACCESS_KEY': self.secret_access_key,
            f'{p}REGION': self.region,
            f'{p}ENDPOINT': self.endpoint,
        }

    def provider_flags(self) -> list[str]:
        return ['--s3-no-check-bucket', '--s3-provider', self.provider]


@dataclass(frozen=True)
class SyncTarget:
    folder: str
    local_folder: str
    remote_address: str


@dataclass(frozen=True)
class SyncRun:
    target: SyncTarget
    command: list[str]
    dry_run: bool = False


def load_base_path(store: ConfigStore) -> str:
    raw = store.get(BASE_PATH_KEY)
    if not raw:
        raise MissingConfigError([BASE_PATH_KEY])
    base = expand_path(raw)
    if not os.path.isdir(base):
        raise DirectoryNotFoundError(f'Base path not found: {base}')
    return base


def validate_folder_arg(folder: str, base: str) -> str:
    if not folder:
        raise InvalidArgumentError('Missing <foldername>.')
    if folder.startswith('/') or folder.startswith('~'):
        raise InvalidArgumentError(
            f'foldername should be relative to config path ({base}), '
            f'not absolute: {folder}'
        )
    return folder


def load_sync_settings(store: ConfigStore) -> SyncSettings:
    values = {key: store.get(key) or '' for key in SYNC_KEYS}
    missing = [key for key, val in values.items() if not val]
    if missing:
        raise MissingConfigError(missing)
    return SyncSettings(
        bucket=values['s3_bucket_name'],
        endpoint=values['s3_endpoint'],
        region=values['s3_region'],
        access_key_id=values['s3_access_key_id'],
        secret_access_key=values['s3_secret_access_key'],
        remote_name=values['rclone_config_name'],
        provider=store.get('s3_provider') or DEFAULT_PROVIDER,
    )


def remote_address(settings: SyncSettings, folder: str) -> str:
    return f'{settings.remote_name}:{settings.bucket}/{folder}'


def sync_command(
    target: SyncTarget, settings: SyncSettings, *, quiet: bool = False
) -> list[str]:
    return [
        RCLONE,
        'sync',
        *MIRROR_FLAGS,
        *settings.provider_flags(),
        *(QUIET_FLAGS if quiet else PROGRESS_FLAGS),
        target.local_folder,
        target.remote_address,
    ]


def purge_command(target: SyncTarget, settings: SyncSettings) -> list[str]:
    return [RCLONE, 'purge', *settings.provider_flags(), target.remote_address]


def _execute(run: SyncRun, settings: SyncSettings) -> SyncRun:
    if run.dry_run:
        log.info('DRYRUN: {}', ' '.join(run.command))
        return run
    run_cmd(
        run.command,
        check=True,
        capture=False,
        env_overlay=settings.env_overlay(),
    )
    return run


def mirror(
    store: ConfigStore,
    folder: str,
    *,
    quiet: bool = False,
    dry_run: bool = False,
) -> SyncRun:
    """Make ``remote:bucket/folder`` an exact copy of ``base/folder``."""
    base = load_base_path(store)
    validate_folder_arg(folder, base)
    local = f'{base}/{folder}'
    if not os.path.isdir(local):
        raise DirectoryNotFoundError(f'Folder not found: {local}')
    if not dry_run:
        require_command(RCLONE)
    settings = load_sync_settings(store)
    target = SyncTarget(folder, local, remote_address(settings, folder))
    log.debug('Mirroring {} -> {}', target.local_folder, target.remote_address)
    run = SyncRun(target, sync_command(target, settings, quiet=quiet), dry_run)
    return _execute(run, settings)


def unsync(
    store: ConfigStore, folder: str, *, dry_run: bool = False
) -> SyncRun:
    """Recursively delete ``remote:bucket/folder``. Local files are untouched."""
    base = load_base_path(store)
    validate_folder_arg(folder, base)
    if not dry_run:
        require_command(RCLONE)
    settings = load_sync_settings(store)
    target = SyncTarget(
        folder, f'{base}/{folder}', remote_address(settings, folder)
    )
    log.debug('Purging remote prefix {}', target.remote_address)
    run = SyncRun(target, purge_command(target, settings), dry_run)
    return _execute(run, settings)
