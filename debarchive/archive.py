"""
Archive, Suite and Component: building dists/ trees in the object store

An Archive turns Suites into an ArchiveState (repository path -> committed
object) without touching the live tree; link() then publishes that state
path by path.

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

from typing import Dict, List, Optional, Tuple

from .blobstore import BlobObject, BlobStore, create_blob_store
from .constants import DEFAULTS
from .errors import ArchiveError, SigningError
from .hashing import FileHash, TeeWriter, check_algorithms, new_hashers
from .packages import Package
from .release import Release, parse_duration
from .signing import SigningKey

# Files a client fetches first; linked after everything they point at
MANIFEST_NAMES = ('Release', 'Release.gpg', 'InRelease')


class ArchiveState(dict):
    """Repository path -> BlobObject, ready to be linked"""

    def __repr__(self) -> str:
        return f"ArchiveState({len(self)} paths)"


class IndexWriter:
    """Packages index for one component/architecture pair

    Every record goes through a fan-out: the suite's hashers first, then
    the object store handle, so the digests and size describe exactly the
    bytes that get committed.
    """

    def __init__(self, suite: 'Suite'):
        self.store = suite.archive.store
        self.hashers = new_hashers(suite.hashes)
        self.handle = self.store.create()
        self._stream = TeeWriter(*self.hashers, self.handle)
        self.count = 0
        self.obj = None

    def add(self, package: Package) -> None:
        self.handle.check_open()
        if self.count:
            self._stream.write(b'\n')
        self._stream.write(package.to_paragraph().dump().encode('utf-8'))
        self.count += 1

    def commit(self) -> BlobObject:
        if self.obj is None:
            self.obj = self.store.commit(self.handle)
        return self.obj

    def abort(self) -> None:
        self.handle.abort()

    def file_hashes(self, path: str) -> List[FileHash]:
        return [hasher.file_hash(path) for hasher in self.hashers]

    def __repr__(self) -> str:
        return f"IndexWriter({self.count} packages)"


class Component:
    def __init__(self, suite: 'Suite', name: str):
        self.suite = suite
        self.name = name
        self._writers = {}

    def _get_writer(self, arch: str) -> IndexWriter:
        writer = self._writers.get(arch)
        if writer is None:
            writer = IndexWriter(self.suite)
            self._writers[arch] = writer
        return writer

    def add_package(self, package: Package) -> None:
        """Append a package to the index for its architecture

        Packages are written in the order they are added. Nothing here
        deduplicates or validates uniqueness.
        """
        self._get_writer(package.architecture).add(package)

    def architectures(self) -> List[str]:
        return list(self._writers)

    def writers(self) -> List[Tuple[str, IndexWriter]]:
        return list(self._writers.items())

    def abort(self) -> None:
        for writer in self._writers.values():
            writer.abort()

    def __repr__(self) -> str:
        return f"Component({self.name}, architectures={self.architectures()})"


class Suite:
    """A named distribution (stable, bookworm, ...) within an Archive

    Args:
        archive: Archive the suite is built in
        name: Suite name, used as dists/<name>
        hashes: Digest algorithms listed in the Release, as a list or a
            space separated string
        valid_for: Validity duration such as '168h'; empty for no Valid-Until

    Raises:
        ValueError: If a digest algorithm is unknown
        DurationError: If valid_for is not a duration
    """

    def __init__(self, archive: 'Archive', name: str, description: str = '', origin: str = '',
                 label: str = '', version: str = '', hashes=DEFAULTS['suite.hashes'],
                 valid_for: str = DEFAULTS['suite.valid_for']):
        if not name:
            raise ValueError("Suite name is required")
        self.archive = archive
        self.name = name
        self.description = description or ''
        self.origin = origin or ''
        self.label = label or ''
        self.version = version or ''
        self._components = {}
        self.hashes = hashes
        self.duration = valid_for

    @property
    def hashes(self) -> List[str]:
        return list(self._hashes)

    @hashes.setter
    def hashes(self, algorithms) -> None:
        if any(component.writers() for component in self._components.values()):
            raise ArchiveError(f"Cannot change digests of suite {self.name} after adding packages")
        if isinstance(algorithms, str):
            algorithms = algorithms.split()
        self._hashes = check_algorithms(algorithms)

    @property
    def duration(self) -> str:
        return self._duration

    @duration.setter
    def duration(self, value: Optional[str]) -> None:
        value = str(value).strip() if value else ''
        self.valid_for = parse_duration(value) if value else None
        self._duration = value

    def component(self, name: str) -> Component:
        """Get or create a component"""
        component = self._components.get(name)
        if component is None:
            component = Component(self, name)
            self._components[name] = component
        return component

    def components(self) -> List[Tuple[str, Component]]:
        return list(self._components.items())

    def abort(self) -> None:
        for component in self._components.values():
            component.abort()

    def __repr__(self) -> str:
        return f"Suite({self.name}, components={[name for name, _ in self.components()]})"


class Archive:
    """Debian archive built in an object store

    Args:
        store: Object store holding every file of the archive
        signing_key: Key for Release.gpg and InRelease (None: unsigned only)
        config: Configuration supplying suite defaults
        debug: Print what is committed and linked
    """

    def __init__(self, store: BlobStore, signing_key: Optional[SigningKey] = None,
                 config=None, debug: bool = False):
        self.store = store
        self.signing_key = signing_key
        self.config = config
        self.debug = debug

    def verbose(self, output):
        if self.debug:
            print(f" - [debug] {output}")

    def get_url(self) -> str:
        return self.store.get_url()

    def _suite_default(self, key: str, suite: str):
        base_key = f"suite.{key}"
        if self.config is not None:
            return self.config.get_for_suite(base_key, suite, DEFAULTS.get(base_key, ''))
        return DEFAULTS.get(base_key, '')

    def suite(self, name: str, **metadata) -> Suite:
        """New, empty suite

        Metadata not passed (description, origin, label, version, hashes,
        valid_for) comes from the configuration, suite.<name>.<key> first.
        """
        for key in ('description', 'origin', 'label', 'version', 'hashes', 'valid_for'):
            if key not in metadata:
                metadata[key] = self._suite_default(key, name)
        return Suite(self, name, **metadata)

    def engross(self, suite: Suite, signed: bool = True) -> ArchiveState:
        """Commit every index of a suite and build its Release

        Nothing is linked: the returned state is handed to link() to
        publish it. With signed=False only the indices and Release are
        produced.

        Raises:
            SigningError: If signed and there is no key, or gpg fails
        """
        if signed and self.signing_key is None:
            raise SigningError("No signing key loaded")

        release = Release.from_suite(suite)
        state = ArchiveState()
        dists = f"dists/{suite.name}"

        for name, component in suite.components():
            for arch, writer in component.writers():
                index_path = f"{name}/binary-{arch}/Packages"
                obj = writer.commit()
                for file_hash in writer.file_hashes(index_path):
                    release.add_hash(file_hash)
                release.add_component(name)
                release.add_architecture(arch)
                state[f"{dists}/{index_path}"] = obj
                self.verbose(f"{index_path}: {writer.count} packages")

        if signed:
            release_obj, signature = self.encode_signed(release)
            state[f"{dists}/Release"] = release_obj
            state[f"{dists}/Release.gpg"] = signature
            state[f"{dists}/InRelease"] = self.encode_clearsigned(release)
        else:
            state[f"{dists}/Release"] = self.encode(release)

        return state

    def encode(self, release: Release, tap=None) -> BlobObject:
        """Write the Release to a new object, copying the bytes to tap"""
        with self.store.create() as handle:
            TeeWriter(handle, tap).write(release.dump())
            return self.store.commit(handle)

    def encode_signed(self, release: Release) -> Tuple[BlobObject, BlobObject]:
        """Write the Release and its detached signature

        Returns:
            (Release object, Release.gpg object)
        """
        if self.signing_key is None:
            raise SigningError("No signing key loaded")

        with self.store.create() as signature:
            with self.signing_key.detached(signature) as signer:
                release_obj = self.encode(release, tap=signer)
            return release_obj, self.store.commit(signature)

    def encode_clearsigned(self, release: Release) -> BlobObject:
        """Write the Release wrapped in a clearsign envelope (InRelease)"""
        if self.signing_key is None:
            raise SigningError("No signing key loaded")

        with self.store.create() as handle:
            with self.signing_key.clearsign(handle) as signer:
                signer.write(release.dump())
            return self.store.commit(handle)

    def link(self, state: Dict[str, BlobObject]) -> None:
        """Publish every path of a state

        Each path is replaced atomically on its own. Manifests go last so
        a client never sees a Release naming indices not yet in place.
        """
        def order(path):
            return (path.rsplit('/', 1)[-1] in MANIFEST_NAMES, path)

        for path in sorted(state, key=order):
            self.store.link(state[path], path)

    def gc(self) -> int:
        """Remove objects no longer linked anywhere

        Must not run while another engross/link on this store is in flight.
        """
        removed = self.store.gc()
        self.verbose(f"gc removed {removed} objects")
        return removed

    def __repr__(self) -> str:
        return f"Archive({self.get_url()})"


def create_archive(config) -> Archive:
    """Archive backed by the configured store and signing key"""
    store = create_blob_store(config)
    return Archive(store, SigningKey.from_config(config), config=config, debug=store.debug)
