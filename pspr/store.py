"""Plain-text key/value config store with order-preserving atomic rewrites.

The store file holds one ``key: value`` entry per line. Blank lines,
``#`` comments and lines that do not parse as entries are kept verbatim
through every rewrite. The whole file is loaded into an ordered list of
:class:`ConfigLine` records, edited in memory, and written back as a
complete replacement (temp file in the same directory, fsync, rename), so
a reader never observes a half-written store.
"""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .errors import InvalidKeyError, InvalidValueError
from .util import ensure_dir, expand_path

log = logger

CONFIG_ENV_VAR = 'PSPR_CONFIG'
DEFAULT_CONFIG_PATH = '~/.pspr/config'

KEY_PATTERN = re.compile(r'[A-Za-z0-9_]+')


@dataclass
class ConfigLine:
    """One physical line of the store.

    ``key`` is empty for blank, comment and malformed lines; those are
    only ever written back through ``raw``.
    """

    raw: str
    key: str = ''
    value: str = ''

    @property
    def is_entry(self) -> bool:
        return bool(self.key)


def parse_line(raw: str) -> ConfigLine:
    stripped = raw.strip()
    if not stripped or stripped.startswith('#'):
        return ConfigLine(raw)
    if ':' not in raw:
        return ConfigLine(raw)
    head, _, rest = raw.partition(':')
    key = head.strip()
    if not key:
        return ConfigLine(raw)
    return ConfigLine(raw, key=key, value=rest.lstrip())


def format_entry(key: str, value: str) -> str:
    return f'{key}: {value}'


def validate_key(key: str) -> str:
    if not isinstance(key, str) or not KEY_PATTERN.fullmatch(key):
        raise InvalidKeyError(
            f'Invalid key: {key} (allowed: letters, numbers, _)'
        )
    return key


def validate_value(value: str) -> str:
    if '\n' in value or '\r' in value:
        raise InvalidValueError('Config values cannot contain line breaks.')
    # The line grammar eats whitespace after the colon, so a value with
    # leading whitespace would not read back unchanged.
    if value[:1].isspace():
        raise InvalidValueError(
            'Config values cannot start with whitespace.'
        )
    return value


def store_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR, '').strip()
    raw = override or DEFAULT_CONFIG_PATH
    return Path(expand_path(raw))


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    parts = text.split('\n')
    if parts[-1] == '':
        parts.pop()
    return parts


def _atomic_write_text(fpath: Path, text: str) -> None:
    ensure_dir(fpath.parent)
    tmp = tempfile.NamedTemporaryFile(
        'w',
        encoding='utf-8',
        dir=fpath.parent,
        prefix=f'.{fpath.name}.',
        suffix='.tmp',
        delete=False,
    )
    try:
        with tmp as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp.name, fpath)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise


class ConfigStore:
    """Ordered key/value settings backed by a single text file."""

    def __init__(self, path: Path, lines: list[ConfigLine] | None = None):
        self.path = Path(path)
        self.lines: list[ConfigLine] = list(lines or [])

    @classmethod
    def load(cls, path: Path | None = None) -> 'ConfigStore':
        """Read the store, creating an empty file on first use."""
        fpath = Path(path) if path is not None else store_path()
        if not fpath.exists():
            ensure_dir(fpath.parent)
            fpath.touch()
            log.debug('Created empty config store at {}', fpath)
        text = fpath.read_text(encoding='utf-8')
        return cls(fpath, [parse_line(raw) for raw in _split_lines(text)])

    def get(self, key: str) -> str | None:
        validate_key(key)
        for line in self.lines:
            if line.key == key:
                return line.value
        return None

    def set(self, key: str, value: str) -> None:
        """Insert or update ``key`` in place and persist.

        The first line for ``key`` keeps its position; any later duplicate
        lines for the same key are dropped so the key is unique afterwards.
        """
        validate_key(key)
        validate_value(value)
        updated = False
        new_lines: list[ConfigLine] = []
        for line in self.lines:
            if line.key == key:
                if updated:
                    log.debug('Dropping duplicate config line for {}', key)
                    continue
                line = ConfigLine(format_entry(key, value), key, value)
                updated = True
            new_lines.append(line)
        if not updated:
            new_lines.append(ConfigLine(format_entry(key, value), key, value))
        self.lines = new_lines
        self.save()

    def delete(self, key: str) -> bool:
        """Drop every line for ``key`` and persist. Returns True if any matched."""
        validate_key(key)
        kept = [line for line in self.lines if line.key != key]
        removed = len(kept) != len(self.lines)
        self.lines = kept
        self.save()
        return removed

    def list(self) -> list[tuple[str, str]]:
        """Entries sorted case-insensitively by key."""
        entries = [(line.key, line.value) for line in self.lines if line.is_entry]
        return sorted(entries, key=lambda kv: (kv[0].lower(), kv[0], kv[1]))

    def render_list(self) -> list[str]:
        return [format_entry(k, v) for k, v in self.list()]

    def reset(self) -> None:
        self.lines = []
        self.save()

    def dumps(self) -> str:
        if not self.lines:
            return ''
        return '\n'.join(line.raw for line in self.lines) + '\n'

    def save(self) -> Path:
        _atomic_write_text(self.path, self.dumps())
        log.debug('Saved config store {} ({} lines)', self.path, len(self.lines))
        return self.path


def load_store(path: Path | None = None) -> ConfigStore:
    return ConfigStore.load(path)
