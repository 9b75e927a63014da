"""
Digest accumulators and the fan-out writer feeding them

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import hashlib
from collections import namedtuple
from typing import Iterable, List

from .constants import CHUNK_SIZE, RELEASE_HASH_FIELDS

# One Release entry: digest of a single file under one algorithm
FileHash = namedtuple('FileHash', ['algorithm', 'digest', 'size', 'path'])

ALGORITHMS = {
    'md5': hashlib.md5,
    'sha1': hashlib.sha1,
    'sha256': hashlib.sha256,
    'sha512': hashlib.sha512,
}

# Release and Packages spell the same algorithms several ways
_ALIASES = {
    'md5sum': 'md5',
    'sha-1': 'sha1',
    'sha-256': 'sha256',
    'sha-512': 'sha512',
}


def canonical_algorithm(name: str) -> str:
    """Map 'SHA256', 'MD5Sum', 'sha-1' ... to the lowercase hashlib name"""
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    if key not in ALGORITHMS:
        raise ValueError(
            f"Unsupported digest algorithm: {name} "
            f"(expected one of {', '.join(ALGORITHMS)})"
        )
    return key


def check_algorithms(names: Iterable[str]) -> List[str]:
    """Canonicalize a list of algorithm names, dropping duplicates"""
    result = []
    for name in names:
        algo = canonical_algorithm(name)
        if algo not in result:
            result.append(algo)
    if not result:
        raise ValueError("At least one digest algorithm is required")
    return result


class Hasher:
    """A digest accumulator that also counts the bytes it has seen"""

    def __init__(self, algorithm: str):
        self.algorithm = canonical_algorithm(algorithm)
        self._hash = ALGORITHMS[self.algorithm]()
        self.size = 0

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        self.size += len(data)
        return len(data)

    def hexdigest(self) -> str:
        return self._hash.hexdigest()

    @property
    def release_field(self) -> str:
        return RELEASE_HASH_FIELDS[self.algorithm]

    def file_hash(self, path: str) -> FileHash:
        return FileHash(self.algorithm, self.hexdigest(), self.size, path)

    def __repr__(self) -> str:
        return f"Hasher({self.algorithm}, size={self.size})"


def new_hashers(algorithms: Iterable[str]) -> List[Hasher]:
    return [Hasher(algo) for algo in check_algorithms(algorithms)]


class TeeWriter:
    """Write every chunk to each sink, in the order the sinks were given

    Sinks only need a ``write(bytes)`` method: Hashers, blob store
    writers, signing streams or plain files.
    """

    def __init__(self, *sinks):
        self.sinks = [sink for sink in sinks if sink is not None]

    def write(self, data: bytes) -> int:
        if isinstance(data, str):
            data = data.encode('utf-8')
        for sink in self.sinks:
            sink.write(data)
        return len(data)

    def copy_from(self, fileobj, chunk_size: int = CHUNK_SIZE) -> int:
        """Stream a whole file object through the sinks"""
        total = 0
        for chunk in iter(lambda: fileobj.read(chunk_size), b''):
            total += self.write(chunk)
        return total
