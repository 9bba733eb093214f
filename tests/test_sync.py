"""Tests for rclone mirror/purge command construction and validation order."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pspr.errors import (
    DirectoryNotFoundError,
    InvalidArgumentError,
    MissingConfigError,
    MissingDependencyError,
)
from pspr.store import ConfigStore, load_store
from pspr.sync import SYNC_KEYS, SyncSettings, mirror, unsync
from pspr.util import CmdResult

CREDENTIALS = {
    's3_bucket_name': 'projects',
    's3_endpoint': 'https://abc123.r2.cloudflarestorage.com',
    's3_region': 'auto',
    's3_access_key_id': 'AKIDEXAMPLE',
    's3_secret_access_key': 'very-secret-value',
    'rclone_config_name': 'r2',
}


@pytest.fixture
def base(tmp_path: Path) -> Path:
    root = tmp_path / 'Projects'
    (root / 'site').mkdir(parents=True)
    return root


def _store(tmp_path: Path, base: Path, **values: str) -> ConfigStore:
    store = load_store(tmp_path / 'config')
    store.set('path', str(base))
    for key, val in values.items():
        store.set(key, val)
    return store


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((list(cmd), kwargs))
        return CmdResult(0, '', '')


def _forbid(*args, **kwargs):
    raise AssertionError('must not be reached')


@pytest.mark.parametrize('folder', ['/etc', '~/Documents', '~'])
def test_absolute_folder_rejected_before_credentials(tmp_path, base, monkeypatch, folder) -> None:
    store = _store(tmp_path, base, **CREDENTIALS)
    read = []
    real_get = store.get

    def spy_get(key):
        read.append(key)
        return real_get(key)

    monkeypatch.setattr(store, 'get', spy_get)
    monkeypatch.setattr('pspr.sync.run_cmd', _forbid)
    monkeypatch.setattr('pspr.sync.require_command', _forbid)

    with pytest.raises(InvalidArgumentError, match='should be relative to config path'):
        mirror(store, folder)
    with pytest.raises(InvalidArgumentError, match='not absolute'):
        unsync(store, folder)
    assert read == ['path', 'path']


def test_empty_folder_rejected(tmp_path, base) -> None:
    store = _store(tmp_path, base)
    with pytest.raises(InvalidArgumentError, match='Missing <foldername>'):
        mirror(store, '')


def test_missing_base_path(tmp_path) -> None:
    store = load_store(tmp_path / 'config')
    with pytest.raises(MissingConfigError) as ex:
        mirror(store, 'site')
    assert ex.value.keys == ['path']


def test_base_path_must_exist(tmp_path) -> None:
    store = load_store(tmp_path / 'config')
    store.set('path', str(tmp_path / 'gone'))
    with pytest.raises(DirectoryNotFoundError, match='Base path not found'):
        unsync(store, 'site')


def test_local_folder_must_exist_for_mirror(tmp_path, base, monkeypatch) -> None:
    store = _store(tmp_path, base, **CREDENTIALS)
    monkeypatch.setattr('pspr.sync.run_cmd', _forbid)
    with pytest.raises(DirectoryNotFoundError, match='Folder not found'):
        mirror(store, 'nope')


def test_all_missing_credentials_reported_together(tmp_path, base, monkeypatch) -> None:
    store = _store(tmp_path, base)
    monkeypatch.setattr('pspr.sync.require_command', lambda cmd: cmd)
    monkeypatch.setattr('pspr.sync.run_cmd', _forbid)
    with pytest.raises(MissingConfigError) as ex:
        mirror(store, 'site')
    assert ex.value.keys == list(SYNC_KEYS)
    assert 'Set them with: pspr config set <key> <value>' in str(ex.value)


def test_partial_credentials_list_only_missing(tmp_path, base, monkeypatch) -> None:
    partial = dict(CREDENTIALS)
    del partial['s3_region']
    del partial['rclone_config_name']
    store = _store(tmp_path, base, **partial)
    monkeypatch.setattr('pspr.sync.require_command', lambda cmd: cmd)
    with pytest.raises(MissingConfigError) as ex:
        unsync(store, 'site')
    assert ex.value.keys == ['s3_region', 'rclone_config_name']


def test_rclone_missing(tmp_path, base, monkeypatch) -> None:
    store = _store(tmp_path, base, **CREDENTIALS)
    monkeypatch.setattr('pspr.host.which', lambda cmd: None)
    with pytest.raises(MissingDependencyError, match='rclone not found'):
        mirror(store, 'site')


def test_env_overlay_contents() -> None:
    settings = SyncSettings(
        bucket='projects',
        endpoint='https://e',
        region='auto',
        access_key_id='id',
        secret_access_key='secret',
        remote_name='r2',
    )
    assert settings.env_overlay() == {
        'RCLONE_CONFIG_R2_TYPE': 's3',
        'RCLONE_CONFIG_R2_PROVIDER': 'Cloudflare',
        'RCLONE_CONFIG_R2_ACCESS_KEY_ID': 'id',
        'RCLONE_CONFIG_R2_SECRET_ACCESS_KEY': 'secret',
        'RCLONE_CONFIG_R2_REGION': 'auto',
        'RCLONE_CONFIG_R2_ENDPOINT': 'https://e',
    }


@pytest.mark.parametrize(
    'quiet, tail',
    [
        (False, ['--progress', '--stats-one-line', '--stats', '10s']),
        (True, ['--stats-one-line', '--stats', '1m', '--log-level', 'NOTICE']),
    ],
)
def test_mirror_command(tmp_path, base, monkeypatch, quiet, tail) -> None:
    store = _store(tmp_path, base, **CREDENTIALS)
    rec = Recorder()
    monkeypatch.setattr('pspr.sync.require_command', lambda cmd: cmd)
    monkeypatch.setattr('pspr.sync.run_cmd', rec)

    run = mirror(store, 'site', quiet=quiet)

    assert len(rec.calls) == 1
    cmd, kwargs = rec.calls[0]
    assert cmd == [
        'rclone',
        'sync',
        '--fast-list',
        '--checksum',
        '--copy-links',
        '--delete-after',
        '--track-renames',
        '--track-renames-strategy',
        'hash',
        '--s3-no-check-bucket',
        '--s3-provider',
        'Cloudflare',
        *tail,
        f'{base}/site',
        'r2:projects/site',
    ]
    assert run.command == cmd
    assert kwargs['env_overlay']['RCLONE_CONFIG_R2_SECRET_ACCESS_KEY'] == (
        'very-secret-value'
    )
    assert kwargs['capture'] is False
    assert not any('very-secret-value' in arg for arg in cmd)
    assert not any('AKIDEXAMPLE' in arg for arg in cmd)
    assert 'RCLONE_CONFIG_R2_SECRET_ACCESS_KEY' not in os.environ


def test_unsync_command_ignores_local_folder(tmp_path, base, monkeypatch) -> None:
    store = _store(tmp_path, base, **CREDENTIALS)
    rec = Recorder()
    monkeypatch.setattr('pspr.sync.require_command', lambda cmd: cmd)
    monkeypatch.setattr('pspr.sync.run_cmd', rec)

    run = unsync(store, 'deleted-locally')

    cmd, kwargs = rec.calls[0]
    assert cmd == [
        'rclone',
        'purge',
        '--s3-no-check-bucket',
        '--s3-provider',
        'Cloudflare',
        'r2:projects/deleted-locally',
    ]
    assert run.target.remote_address == 'r2:projects/deleted-locally'
    assert set(kwargs['env_overlay']) == {
        f'RCLONE_CONFIG_R2_{k}'
        for k in ['TYPE', 'PROVIDER', 'ACCESS_KEY_ID', 'SECRET_ACCESS_KEY', 'REGION', 'ENDPOINT']
    }


def test_provider_override(tmp_path, base, monkeypatch) -> None:
    store = _store(tmp_path, base, s3_provider='AWS', **CREDENTIALS)
    rec = Recorder()
    monkeypatch.setattr('pspr.sync.require_command', lambda cmd: cmd)
    monkeypatch.setattr('pspr.sync.run_cmd', rec)
    unsync(store, 'site')
    cmd, kwargs = rec.calls[0]
    assert cmd[2:5] == ['--s3-no-check-bucket', '--s3-provider', 'AWS']
    assert kwargs['env_overlay']['RCLONE_CONFIG_R2_PROVIDER'] == 'AWS'


def test_dry_run_executes_nothing(tmp_path, base, monkeypatch) -> None:
    store = _store(tmp_path, base, **CREDENTIALS)
    monkeypatch.setattr('pspr.sync.require_command', _forbid)
    monkeypatch.setattr('pspr.sync.run_cmd', _forbid)
    run = mirror(store, 'site', dry_run=True)
    assert run.dry_run
    assert run.command[:2] == ['rclone', 'sync']
    run = unsync(store, 'site', dry_run=True)
    assert run.command[:2] == ['rclone', 'purge']
