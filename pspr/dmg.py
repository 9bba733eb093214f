"""Disk image attach/detach through ``hdiutil``.

Nothing here is cached: every call re-reads ``hdiutil info`` so that the
answers stay correct when the volume is ejected behind our back (Finder,
another shell, a sleeping laptop).

``hdiutil info`` prints one section per attached image, separated by rules
of ``=`` characters::

    ================================================
    image-path      : /Users/me/Projects.dmg
    ...
    /dev/disk4	GUID_partition_scheme
    /dev/disk4s1	Apple_HFS	/Volumes/Projects

The mount point of a freshly attached image is not reliably present in any
single place, so it is recovered by an ordered list of detection
strategies, see :data:`MOUNT_POINT_STRATEGIES`.
"""

from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

from .errors import DiskImageError, DiskImageNotFoundError
from .util import run_cmd

log = logger

HDIUTIL = 'hdiutil'
MOUNT_ROOT = '/Volumes'

_RULE_RE = re.compile(r'^=+\s*$')
_FIELD_RE = re.compile(r'^([A-Za-z][A-Za-z0-9 _-]*?)\s*:\s?(.*)$')
_PARENT_DEVICE_RE = re.compile(r'^/dev/disk[0-9]+$')
_MISSING_DEVICE_NOISE = re.compile(
    r'No such file or directory|Bestand of directory bestaat niet'
)


@dataclass(frozen=True)
class DeviceEntry:
    device: str
    hint: str = ''
    mount_point: str = ''


@dataclass
class ImageInfo:
    """One image section of ``hdiutil info`` output."""

    fields: dict[str, str] = field(default_factory=dict)
    devices: list[DeviceEntry] = field(default_factory=list)

    @property
    def image_path(self) -> str:
        return self.fields.get('image-path', '')

    def matches(self, path: str) -> bool:
        # Substring containment tolerates driver output variance (aliases,
        # firmlinked prefixes such as /System/Volumes/Data).
        ipath = self.image_path
        if not ipath or not path:
            return False
        return ipath == path or path in ipath

    @property
    def parent_device(self) -> str | None:
        for dev in self.devices:
            if _PARENT_DEVICE_RE.match(dev.device):
                return dev.device
        return None

    @property
    def mount_point(self) -> str | None:
        mp = self.fields.get('mount-point', '').strip()
        if mp:
            return mp
        for dev in self.devices:
            if dev.mount_point:
                return dev.mount_point
        return None


def _parse_device_line(line: str) -> DeviceEntry:
    if '\t' in line:
        parts = [p.strip() for p in line.split('\t')]
    else:
        parts = line.split(None, 2)
    while len(parts) < 3:
        parts.append('')
    device, hint, mount_point = parts[0], parts[1], parts[2]
    if hint.startswith('/') and not mount_point:
        hint, mount_point = '', hint
    return DeviceEntry(device, hint, mount_point.strip())


def parse_hdiutil_info(text: str) -> list[ImageInfo]:
    """Split ``hdiutil info`` output into per-image sections.

    The preamble before the first rule (framework/driver versions) is
    returned as a section too; it has no ``image-path`` so it never matches.

    Example:
        >>> text = chr(10).join([
        ...     'framework       : 671',
        ...     '================================================',
        ...     'image-path      : /tmp/x.dmg',
        ...     '/dev/disk4' + chr(9) + 'GUID_partition_scheme' + chr(9),
        ...     '/dev/disk4s1' + chr(9) + 'Apple_HFS' + chr(9) + '/Volumes/X',
        ... ])
        >>> images = parse_hdiutil_info(text)
        >>> images[-1].image_path, images[-1].parent_device, images[-1].mount_point
        ('/tmp/x.dmg', '/dev/disk4', '/Volumes/X')
    """
    sections: list[ImageInfo] = []
    current = ImageInfo()
    for raw in (text or '').splitlines():
        line = raw.rstrip()
        if not line.strip():
            continue
        if _RULE_RE.match(line.strip()):
            if current.fields or current.devices:
                sections.append(current)
            current = ImageInfo()
            continue
        if line.lstrip().startswith('/dev/'):
            current.devices.append(_parse_device_line(line.strip()))
            continue
        m = _FIELD_RE.match(line.strip())
        if m:
            current.fields[m.group(1).strip()] = m.group(2).strip()
    if current.fields or current.devices:
        sections.append(current)
    return sections


def find_image(images: Sequence[ImageInfo], path: str) -> ImageInfo | None:
    for img in images:
        if img.matches(path):
            return img
    return None


def hdiutil_info(*, check: bool = True) -> str:
    return run_cmd([HDIUTIL, 'info'], check=check, capture=True).stdout


def is_attached(path: str) -> bool:
    return find_image(parse_hdiutil_info(hdiutil_info()), path) is not None


def _recheck_attached(path: str) -> bool:
    """Like :func:`is_attached`, but an unreadable status counts as attached."""
    res = run_cmd([HDIUTIL, 'info'], check=False, capture=True)
    if res.code != 0:
        log.debug('hdiutil info failed mid-detach: {}', res.stderr.strip())
        return True
    return find_image(parse_hdiutil_info(res.stdout), path) is not None


# --- mount point discovery -------------------------------------------------


@dataclass(frozen=True)
class MountEvidence:
    """Snapshot of everything the mount point strategies may look at."""

    image_path: str
    attach_output: str = ''
    info_output: str = ''
    mount_root: str = MOUNT_ROOT
    volumes: tuple[tuple[str, float], ...] = ()


MountStrategy = Callable[[MountEvidence], Optional[str]]


def from_attach_output(evidence: MountEvidence) -> str | None:
    """First path under the mount root printed by ``hdiutil attach``."""
    marker = evidence.mount_root.rstrip('/') + '/'
    for line in (evidence.attach_output or '').splitlines():
        idx = line.find(marker)
        if idx >= 0:
            candidate = line[idx:].strip()
            if candidate:
                return candidate
    return None


def from_status_listing(evidence: MountEvidence) -> str | None:
    """Mount point recorded for the image in ``hdiutil info``."""
    img = find_image(
        parse_hdiutil_info(evidence.info_output), evidence.image_path
    )
    if img is None:
        return None
    return img.mount_point


def from_newest_volume(evidence: MountEvidence) -> str | None:
    """Most recently modified directory directly under the mount root."""
    if not evidence.volumes:
        return None
    path, _ = max(evidence.volumes, key=lambda item: item[1])
    return path


MOUNT_POINT_STRATEGIES: tuple[MountStrategy, ...] = (
    from_attach_output,
    from_status_listing,
    from_newest_volume,
)


def discover_mount_point(
    evidence: MountEvidence,
    *,
    strategies: Sequence[MountStrategy] = MOUNT_POINT_STRATEGIES,
    is_dir: Callable[[str], bool] = os.path.isdir,
) -> str | None:
    """Return the first strategy result that is an existing directory."""
    for strategy in strategies:
        candidate = strategy(evidence)
        if candidate and is_dir(candidate):
            log.debug(
                'Mount point for {} found by {}: {}',
                evidence.image_path,
                strategy.__name__,
                candidate,
            )
            return candidate
        log.debug(
            'Mount point strategy {} gave no usable directory (candidate={})',
            strategy.__name__,
            candidate,
        )
    return None


def list_volumes(mount_root: str = MOUNT_ROOT) -> tuple[tuple[str, float], ...]:
    found: list[tuple[str, float]] = []
    try:
        with os.scandir(mount_root) as it:
            for entry in it:
                if entry.is_dir(follow_symlinks=False):
                    found.append(
                        (entry.path, entry.stat(follow_symlinks=False).st_mtime)
                    )
    except OSError as ex:
        log.debug('Cannot list {}: {}', mount_root, ex)
    return tuple(found)


# --- attach ----------------------------------------------------------------


@dataclass(frozen=True)
class AttachResult:
    image_path: str
    mount_point: str | None
    already_attached: bool = False


def attach(path: str, *, mount_root: str = MOUNT_ROOT) -> AttachResult:
    """Attach the image unless it already is, and locate its mount point.

    A ``None`` mount point means the image is attached but none of the
    strategies found where; callers report that instead of failing.
    """
    if not Path(path).is_file():
        raise DiskImageNotFoundError(f'DMG not found: {path}')

    info_text = hdiutil_info()
    if find_image(parse_hdiutil_info(info_text), path) is not None:
        log.info('Disk image already attached: {}', path)
        mp = discover_mount_point(
            MountEvidence(path, info_output=info_text, mount_root=mount_root),
            strategies=(from_status_listing,),
        )
        return AttachResult(path, mp, already_attached=True)

    # No -nobrowse: the volume must show up in the Finder sidebar.
    res = run_cmd([HDIUTIL, 'attach', path], check=False, capture=True)
    if res.code != 0:
        raise DiskImageError(
            f'Failed to mount DMG: {path}\n{res.stderr.strip()}'.strip()
        )
    evidence = MountEvidence(
        image_path=path,
        attach_output=res.stdout,
        info_output=hdiutil_info(check=False),
        mount_root=mount_root,
        volumes=list_volumes(mount_root),
    )
    mp = discover_mount_point(evidence)
    if mp is None:
        log.warning('Attached {} but could not determine its mount point', path)
    return AttachResult(path, mp)


# --- detach ----------------------------------------------------------------


class DetachState(enum.Enum):
    ATTACHED = 'attached'
    DETACHING = 'detaching'
    DETACHED = 'detached'
    FAILED = 'failed'


@dataclass
class DetachOutcome:
    image_path: str
    state: DetachState = DetachState.ATTACHED
    forced: bool = False
    already_detached: bool = False
    overridden: bool = False
    attempted: list[str] = field(default_factory=list)
    failed_devices: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is DetachState.DETACHED


def _run_detach(device: str, *, force: bool, outcome: DetachOutcome) -> bool:
    cmd = [HDIUTIL, 'detach', *(['-force'] if force else []), device]
    outcome.attempted.append(' '.join(cmd[1:]))
    res = run_cmd(cmd, check=False, capture=True)
    if res.code == 0:
        return True
    err = res.stderr.strip()
    if _MISSING_DEVICE_NOISE.search(err):
        log.debug('detach {} (force={}): {}', device, force, err)
    else:
        log.warning('detach {} (force={}) failed: {}', device, force, err)
    return False


def _device_listed(device: str) -> bool:
    images = parse_hdiutil_info(hdiutil_info(check=False))
    return any(dev.device == device for img in images for dev in img.devices)


def _detach_member(device: str, outcome: DetachOutcome) -> bool:
    if _run_detach(device, force=False, outcome=outcome):
        return True
    if _run_detach(device, force=True, outcome=outcome):
        outcome.forced = True
        return True
    if not _device_listed(device):
        log.debug('{} is already gone', device)
        return True
    return False


def detach(path: str) -> DetachOutcome:
    """Detach the image, escalating to ``-force`` once per device.

    States: ATTACHED -> DETACHING -> DETACHED | FAILED.

    The final state is decided by re-checking :func:`is_attached` after all
    attempts, not by the exit codes of the individual detach commands:
    when the image is gone the outcome is DETACHED even if some steps
    failed, and ``overridden`` is set to record that. The volume can be
    ejected concurrently by Finder, so per-command failures are expected.
    """
    outcome = DetachOutcome(path)
    img = find_image(parse_hdiutil_info(hdiutil_info()), path)
    if img is None:
        outcome.state = DetachState.DETACHED
        outcome.already_detached = True
        return outcome

    outcome.state = DetachState.DETACHING
    parent = img.parent_device
    if parent is not None:
        if _run_detach(parent, force=False, outcome=outcome):
            outcome.state = DetachState.DETACHED
            return outcome
        if not _recheck_attached(path):
            outcome.state = DetachState.DETACHED
            return outcome
        if _run_detach(parent, force=True, outcome=outcome):
            outcome.forced = True
            outcome.state = DetachState.DETACHED
            return outcome
        outcome.failed_devices.append(parent)
    else:
        for dev in img.devices:
            if not _detach_member(dev.device, outcome):
                outcome.failed_devices.append(dev.device)

    if is_attached(path):
        outcome.state = DetachState.FAILED
        return outcome
    if outcome.failed_devices:
        outcome.overridden = True
        log.warning(
            'Detach failed for {} but {} is no longer attached; treating as detached',
            ', '.join(outcome.failed_devices),
            path,
        )
    outcome.state = DetachState.DETACHED
    return outcome
