"""
Binary package records and the Packages index reader

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import os
import re
from typing import BinaryIO, List, Optional

from debian.arfile import ArError
from debian.deb822 import Deb822, PkgRelation
from debian.debfile import DebError, DebFile
from debian.debian_support import Version

from .constants import PACKAGE_HASH_FIELDS
from .errors import DependencyParseError, PackageDecodeError
from .hashing import TeeWriter, new_hashers

# Package names as they appear inside relation fields, with an optional
# ':any' style qualifier when the parser leaves it attached
_RELATION_NAME_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9+.\-]*(:[A-Za-z0-9\-]+)?$')

# 'Field: value' opening a field inside a Packages record
_FIELD_LINE_RE = re.compile(r'^[^\s#:-][^\s:]*\s*:')


class Package:
    """Binary .deb entry as it appears in a Packages index

    The named attributes are parsed from the record; the complete
    paragraph, including fields this class does not know about, is kept
    as-is so the record is written back field-for-field and in order.
    """

    REQUIRED_FIELDS = (
        'Package',
        'Version',
        'Architecture',
        'Maintainer',
        'Description',
        'Filename',
        'Size',
    )

    def __init__(self, paragraph):
        fields = Deb822()
        for key, value in paragraph.items():
            fields[key] = value

        missing = [name for name in self.REQUIRED_FIELDS
                   if not str(fields.get(name, '')).strip()]
        if missing:
            raise PackageDecodeError(
                f"Package record missing required field(s): {', '.join(missing)}",
                context={'package': fields.get('Package'), 'missing': missing},
            )

        try:
            version = Version(fields['Version'])
        except ValueError as e:
            raise PackageDecodeError(
                f"Invalid Version for {fields['Package']}: {e}",
                context={'package': fields['Package']},
            ) from e

        self._fields = fields
        self.package = fields['Package']
        self.version = version
        self.architecture = fields['Architecture']
        self.maintainer = fields['Maintainer']
        self.description = fields['Description']
        self.filename = fields['Filename']
        self.size = self._int_field('Size')
        self.installed_size = self._int_field('Installed-Size')

        self.source = fields.get('Source')
        self.section = fields.get('Section')
        self.priority = fields.get('Priority')
        self.homepage = fields.get('Homepage')
        self.md5sum = fields.get('MD5sum')
        self.sha1 = fields.get('SHA1')
        self.sha256 = fields.get('SHA256')
        self.sha512 = fields.get('SHA512')

    def _int_field(self, name: str) -> Optional[int]:
        value = self._fields.get(name)
        if value is None:
            return None
        try:
            number = int(value)
        except ValueError:
            number = -1
        if number < 0:
            raise PackageDecodeError(
                f"Invalid {name} for {self._fields['Package']}: {value!r}",
                context={'package': self._fields['Package'], 'field': name},
            )
        return number

    @classmethod
    def from_deb(cls, path: str, filename: Optional[str] = None, tap=None) -> 'Package':
        return package_from_deb(path, filename=filename, tap=tap)

    def get(self, field: str, default=None):
        """Raw value of any field, known or not"""
        return self._fields.get(field, default)

    def __getitem__(self, field: str) -> str:
        return self._fields[field]

    def __contains__(self, field: str) -> bool:
        return field in self._fields

    def to_paragraph(self) -> Deb822:
        """A copy of the full record, ready to dump"""
        paragraph = Deb822()
        for key, value in self._fields.items():
            paragraph[key] = value
        return paragraph

    # Relation fields are parsed only when asked for

    def _relation(self, field: str) -> List[list]:
        raw = self._fields.get(field)
        if raw is None or not raw.strip():
            return []

        relations = PkgRelation.parse_relations(raw)
        for alternatives in relations:
            for rel in alternatives:
                if not _RELATION_NAME_RE.match(rel.get('name') or ''):
                    raise DependencyParseError(
                        f"Cannot parse {field} of {self.package}: {raw!r}",
                        context={'package': self.package, 'field': field},
                    )
                if rel.get('version'):
                    try:
                        Version(rel['version'][1])
                    except ValueError as e:
                        raise DependencyParseError(
                            f"Invalid version in {field} of {self.package}: {e}",
                            context={'package': self.package, 'field': field},
                        ) from e
        return relations

    def depends(self) -> List[list]:
        return self._relation('Depends')

    def suggests(self) -> List[list]:
        return self._relation('Suggests')

    def built_using(self) -> List[list]:
        return self._relation('Built-Using')

    def breaks(self) -> List[list]:
        return self._relation('Breaks')

    def replaces(self) -> List[list]:
        return self._relation('Replaces')

    def pre_depends(self) -> List[list]:
        return self._relation('Pre-Depends')

    def __eq__(self, other):
        if not isinstance(other, Package):
            return NotImplemented
        return list(self._fields.items()) == list(other._fields.items())

    def __repr__(self) -> str:
        return f"Package({self.package} {self.version} {self.architecture})"


def package_from_deb(path: str, filename: Optional[str] = None, tap=None) -> Package:
    """Build a Package entry from a .deb file

    Copies the control paragraph out of the .deb, then reads the file once,
    feeding MD5, SHA1 and SHA256 accumulators (and ``tap``, if given) from
    the same chunks.

    Args:
        path: Path to the .deb file
        filename: Value for the Filename field (defaults to path)
        tap: Optional extra sink that receives the file bytes

    Raises:
        OSError: If the file cannot be read
        PackageDecodeError: If it is not a .deb or lacks required fields
    """
    try:
        deb = DebFile(path)
    except (DebError, ArError) as e:
        raise PackageDecodeError(f"Not a valid .deb: {path}: {e}", context={'path': path}) from e
    try:
        control = deb.debcontrol()
    finally:
        deb.close()

    hashers = new_hashers(PACKAGE_HASH_FIELDS)
    with open(path, 'rb') as f:
        size = TeeWriter(*hashers, tap).copy_from(f)

    paragraph = Deb822()
    for key, value in control.items():
        paragraph[key] = value
    paragraph['Filename'] = filename or path
    paragraph['Size'] = str(size)
    for hasher in hashers:
        paragraph[PACKAGE_HASH_FIELDS[hasher.algorithm]] = hasher.hexdigest()

    return Package(paragraph)


class PackagesReader:
    """Iterator over the entries of a Packages index

    Yields one Package per paragraph and stops with StopIteration at the
    end of the data. Only the current paragraph is held in memory.

    Note that a Packages file is not signed: verify it against the Release
    digests before trusting anything read from it.
    """

    def __init__(self, stream: BinaryIO, owns_stream: bool = False):
        self._stream = stream
        self._owns_stream = owns_stream
        self._line_number = 0

    def __iter__(self):
        return self

    def __next__(self) -> Package:
        lines = []
        for raw in self._stream:
            self._line_number += 1
            try:
                line = raw.decode('utf-8')
            except UnicodeDecodeError as e:
                raise PackageDecodeError(
                    f"Packages line {self._line_number} is not valid UTF-8",
                    context={'line': self._line_number},
                ) from e

            if not line.strip():
                if lines:
                    break
                continue
            if line.startswith('#'):
                continue
            if line[0] in ' \t':
                if not lines:
                    raise PackageDecodeError(
                        f"Packages line {self._line_number} continues a field that was never started",
                        context={'line': self._line_number},
                    )
            elif not _FIELD_LINE_RE.match(line):
                raise PackageDecodeError(
                    f"Packages line {self._line_number} is not a field: {line.rstrip()!r}",
                    context={'line': self._line_number},
                )
            lines.append(line)

        if not lines:
            raise StopIteration
        return Package(Deb822(lines))

    def close(self) -> None:
        if self._owns_stream:
            self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


def load_packages(stream: BinaryIO) -> PackagesReader:
    """Read Packages entries from an open binary stream"""
    return PackagesReader(stream)


def load_packages_file(path: str) -> PackagesReader:
    """Read Packages entries from a file on disk"""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Packages file not found: {path}")
    return PackagesReader(open(path, 'rb'), owns_stream=True)
