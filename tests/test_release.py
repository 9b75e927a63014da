#!/usr/bin/env python3
"""
Test validity durations and Release manifest encoding
"""

import io
import locale
import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest  # noqa: E402
from debian.deb822 import Deb822  # noqa: E402

from debarchive.errors import DurationError  # noqa: E402
from debarchive.hashing import FileHash  # noqa: E402
from debarchive.release import Release, format_date, parse_duration  # noqa: E402

NOW = datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone.utc)


def test_parse_duration():
    assert parse_duration('168h') == timedelta(hours=168)
    assert parse_duration('1h30m') == timedelta(minutes=90)
    assert parse_duration('1.5h') == timedelta(minutes=90)
    assert parse_duration('90s') == timedelta(seconds=90)
    assert parse_duration('250ms') == timedelta(milliseconds=250)
    assert parse_duration('0') == timedelta(0)
    assert parse_duration('-2h') == timedelta(hours=-2)
    assert parse_duration('2562047h') == timedelta(hours=2562047)
    print("✓ Durations parsed")

    for bad in ('', '168', 'h', '7d', '1 h', 'soon', '-'):
        with pytest.raises(DurationError):
            parse_duration(bad)
    print("✓ Malformed durations rejected")

    for huge in ('99999999999h', '876000000h', '2562048h', '-2562048h'):
        with pytest.raises(DurationError):
            parse_duration(huge)
    print("✓ Durations past the nanosecond range rejected")


def test_format_date():
    assert format_date(NOW) == 'Fri, 01 Mar 2024 12:30:00 +0000'

    eastern = timezone(timedelta(hours=-5))
    assert format_date(datetime(2024, 3, 1, 7, 30, tzinfo=eastern)) == 'Fri, 01 Mar 2024 12:30:00 +0000'
    print("✓ Dates written in UTC with numeric zone")


def test_format_date_ignores_locale():
    saved = locale.setlocale(locale.LC_TIME)
    for name in ('de_DE.UTF-8', 'fr_FR.UTF-8', 'C.UTF-8'):
        try:
            locale.setlocale(locale.LC_TIME, name)
            break
        except locale.Error:
            continue
    try:
        assert format_date(NOW) == 'Fri, 01 Mar 2024 12:30:00 +0000'
        print(f"✓ English day and month names under LC_TIME={locale.setlocale(locale.LC_TIME)}")
    finally:
        locale.setlocale(locale.LC_TIME, saved)


def make_suite(**overrides):
    suite = SimpleNamespace(
        name='stable',
        description='Stable packages',
        origin='debarchive',
        label='debarchive',
        version='',
        valid_for=timedelta(hours=168),
    )
    for key, value in overrides.items():
        setattr(suite, key, value)
    return suite


def test_release_from_suite():
    release = Release.from_suite(make_suite(), now=NOW)
    assert release.suite == 'stable'
    assert release.date == NOW
    assert release.valid_until == NOW + timedelta(days=7)
    assert release.architectures == [] and release.components == []

    no_expiry = Release.from_suite(make_suite(valid_for=None), now=NOW)
    assert no_expiry.valid_until is None
    assert 'Valid-Until' not in no_expiry.to_paragraph()
    print("✓ Valid-Until follows the suite duration")


def test_release_paragraph():
    """Field order, sorting and digest layout"""
    print()
    print("=" * 60)
    print("Test: Release paragraph")
    print("=" * 60)

    release = Release.from_suite(make_suite(), now=NOW)
    for arch in ('arm64', 'amd64', 'arm64'):
        release.add_architecture(arch)
    for component in ('main', 'contrib', 'main'):
        release.add_component(component)
    release.add_hash(FileHash('sha256', 'b' * 64, 20, 'main/binary-arm64/Packages'))
    release.add_hash(FileHash('sha256', 'a' * 64, 10, 'contrib/binary-amd64/Packages'))
    release.add_hash(FileHash('sha1', 'c' * 40, 10, 'contrib/binary-amd64/Packages'))

    paragraph = release.to_paragraph()
    assert list(paragraph.keys()) == [
        'Suite', 'Description', 'Origin', 'Label', 'Date', 'Valid-Until',
        'Architectures', 'Components', 'SHA1', 'SHA256',
    ]
    assert paragraph['Architectures'] == 'amd64 arm64'
    assert paragraph['Components'] == 'contrib main'
    print("✓ Fields ordered, lists sorted and deduplicated")

    text = release.dump().decode('utf-8')
    assert 'MD5Sum' not in text
    assert (
        "SHA256:\n"
        f" {'a' * 64} 10 contrib/binary-amd64/Packages\n"
        f" {'b' * 64} 20 main/binary-arm64/Packages\n"
    ) in text
    assert 'Date: Fri, 01 Mar 2024 12:30:00 +0000\n' in text
    assert 'Valid-Until: Fri, 08 Mar 2024 12:30:00 +0000\n' in text
    print("✓ Digest lines sorted by path")

    parsed = Deb822(io.BytesIO(release.dump()))
    assert parsed['Suite'] == 'stable'
    assert len(parsed['SHA256'].strip().splitlines()) == 2
    print("✓ Output parses as a control paragraph")


if __name__ == '__main__':
    test_parse_duration()
    test_format_date()
    test_format_date_ignores_locale()
    test_release_from_suite()
    test_release_paragraph()
    print()
    print("All release tests passed")
