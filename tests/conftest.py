from __future__ import annotations

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    # CLI entry points install a stderr sink bound to whatever stream the
    # test had captured; remove it before that stream is closed.
    yield
    logger.remove()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    fpath = tmp_path / 'pspr' / 'config'
    monkeypatch.setenv('PSPR_CONFIG', str(fpath))
    return fpath
