from __future__ import annotations

import os

import pytest

from pspr.util import CmdError, expand_path, run_cmd, shell_join


def test_shell_join_quotes_arguments() -> None:
    assert shell_join(['rclone', 'sync', '/Volumes/My Projects/site']) == (
        "rclone sync '/Volumes/My Projects/site'"
    )


def test_run_cmd_success_and_failure() -> None:
    ok = run_cmd(['sh', '-c', 'printf hi'], check=True, capture=True)
    assert ok.code == 0
    assert ok.stdout == 'hi'

    with pytest.raises(CmdError) as ex:
        run_cmd(['sh', '-c', 'echo nope >&2; exit 3'], check=True, capture=True)
    assert ex.value.result.code == 3
    assert 'nope' in str(ex.value)

    res = run_cmd(['sh', '-c', 'exit 2'], check=False, capture=True)
    assert res.code == 2


def test_env_overlay_reaches_child_only(monkeypatch) -> None:
    monkeypatch.delenv('PSPR_TEST_SECRET', raising=False)
    res = run_cmd(
        ['sh', '-c', 'printf %s "$PSPR_TEST_SECRET"'],
        env_overlay={'PSPR_TEST_SECRET': 's3cr3t'},
    )
    assert res.stdout == 's3cr3t'
    assert 'PSPR_TEST_SECRET' not in os.environ


def test_expand_path(monkeypatch) -> None:
    monkeypatch.setenv('HOME', '/home/me')
    assert expand_path('~') == '/home/me'
    assert expand_path('~/Projects/') == '/home/me/Projects'
    assert expand_path('/Volumes/Projects/') == '/Volumes/Projects'
    assert expand_path('/a/b//') == '/a/b/'
    assert expand_path('rel/dir/') == 'rel/dir'
    assert expand_path('/a/../b') == '/a/../b'
    assert expand_path('/') == '/'


def test_run_cmd_keyword_surface() -> None:
    import inspect

    params = inspect.signature(run_cmd).parameters
    assert list(params) == ['cmd', 'check', 'capture', 'env_overlay']
