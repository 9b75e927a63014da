import os
from enum import Enum

class ArchiveConfigFiles(Enum):
    SYSTEM = "/etc/debarchive.conf"
    LOCAL = "./debarchive.conf"
    USER = os.path.expanduser("~/.debarchive.conf")

AVAIL_BACKEND_TYPES = [
    "s3",
    "local"
]

DEFAULTS = {
    'backend.type': 'local',
    'backend.local.path': './archive',
    # Suite defaults, overridable per suite with suite.<name>.<key>
    'suite.hashes': 'sha256 sha1 sha512',
    'suite.valid_for': '168h',
    'suite.origin': 'debarchive',
    'suite.label': 'debarchive',
    'suite.default_component': 'main',
    # Shared behavior defaults
    'behavior.confirm': True,
}

# Release field name for each digest algorithm, in the order the fields
# are written out.
RELEASE_HASH_FIELDS = {
    'md5': 'MD5Sum',
    'sha1': 'SHA1',
    'sha256': 'SHA256',
    'sha512': 'SHA512',
}

# Digests recorded on every Package synthesized from a .deb
PACKAGE_HASH_FIELDS = {
    'md5': 'MD5sum',
    'sha1': 'SHA1',
    'sha256': 'SHA256',
}

BLOB_DIR = '.blobs'
CHUNK_SIZE = 65536
