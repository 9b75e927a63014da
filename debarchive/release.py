"""
Release manifest for one suite

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import email.utils
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from debian.deb822 import Deb822

from .constants import RELEASE_HASH_FIELDS
from .errors import DurationError
from .hashing import FileHash

# Durations are counted in int64 nanoseconds, about 2562047h
MAX_DURATION_SECONDS = (2 ** 63 - 1) / 1e9

_DURATION_PART_RE = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')
_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1,
    'm': 60,
    'h': 3600,
}


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as '168h', '1h30m' or '90s'

    Raises:
        DurationError: If the text is not a duration
    """
    value = str(text).strip()
    if value in ('0', '+0', '-0'):
        return timedelta(0)

    sign = 1
    if value[:1] in ('+', '-'):
        sign = -1 if value[0] == '-' else 1
        value = value[1:]
    if not value:
        raise DurationError(f"Invalid duration: {text!r}", context={'duration': text})

    seconds = 0.0
    pos = 0
    while pos < len(value):
        match = _DURATION_PART_RE.match(value, pos)
        if not match:
            raise DurationError(f"Invalid duration: {text!r}", context={'duration': text})
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if seconds > MAX_DURATION_SECONDS:
        raise DurationError(f"Duration out of range: {text!r}", context={'duration': text})
    try:
        return timedelta(seconds=sign * seconds)
    except OverflowError as e:
        raise DurationError(f"Duration out of range: {text!r}", context={'duration': text}) from e


def format_date(when: datetime) -> str:
    """RFC 1123 date in UTC, independent of the process locale"""
    return email.utils.format_datetime(when.astimezone(timezone.utc))


class Release:
    """Snapshot of a suite: descriptive fields plus every index digest

    Built fresh by each Engross and not changed once signed.
    """

    def __init__(self, suite: str, description: str = '', origin: str = '', label: str = '',
                 version: str = '', date: Optional[datetime] = None,
                 valid_until: Optional[datetime] = None):
        self.suite = suite
        self.description = description
        self.origin = origin
        self.label = label
        self.version = version
        self.date = date or datetime.now(timezone.utc)
        self.valid_until = valid_until
        self.architectures = []
        self.components = []
        self.hashes = {algo: [] for algo in RELEASE_HASH_FIELDS}

    @classmethod
    def from_suite(cls, suite, now: Optional[datetime] = None) -> 'Release':
        """Start an empty Release for a suite, stamped with the current time"""
        when = now or datetime.now(timezone.utc)
        valid_until = None
        if suite.valid_for is not None:
            valid_until = when + suite.valid_for

        return cls(
            suite=suite.name,
            description=suite.description,
            origin=suite.origin,
            label=suite.label,
            version=suite.version,
            date=when,
            valid_until=valid_until,
        )

    def add_architecture(self, arch: str) -> None:
        if arch not in self.architectures:
            self.architectures.append(arch)

    def add_component(self, name: str) -> None:
        if name not in self.components:
            self.components.append(name)

    def add_hash(self, file_hash: FileHash) -> None:
        self.hashes[file_hash.algorithm].append(file_hash)

    def to_paragraph(self) -> Deb822:
        paragraph = Deb822()
        paragraph['Suite'] = self.suite
        for field, value in (('Description', self.description),
                             ('Origin', self.origin),
                             ('Label', self.label),
                             ('Version', self.version)):
            if value:
                paragraph[field] = value
        paragraph['Date'] = format_date(self.date)
        if self.valid_until is not None:
            paragraph['Valid-Until'] = format_date(self.valid_until)
        paragraph['Architectures'] = ' '.join(sorted(self.architectures))
        paragraph['Components'] = ' '.join(sorted(self.components))

        for algo, field in RELEASE_HASH_FIELDS.items():
            entries = sorted(self.hashes[algo], key=lambda h: h.path)
            if entries:
                lines = [f' {h.digest} {h.size} {h.path}' for h in entries]
                paragraph[field] = '\n' + '\n'.join(lines)

        return paragraph

    def dump(self) -> bytes:
        return self.to_paragraph().dump().encode('utf-8')

    def __repr__(self) -> str:
        return (f"Release({self.suite}, architectures={sorted(self.architectures)}, "
                f"components={sorted(self.components)})")
