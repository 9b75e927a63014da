"""
Content-addressed object store for debarchive

Objects are written through a BlobWriter, committed under the SHA-256 of
their content, and only become visible at a repository path once they are
linked there. Anything no longer linked can be garbage collected.

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import hashlib
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .constants import BLOB_DIR
from .errors import ArchiveError


class BlobObject:
    """Handle to a committed, immutable object"""

    def __init__(self, blob_id: str, size: Optional[int] = None):
        self.id = blob_id
        self.size = size

    def __eq__(self, other):
        return isinstance(other, BlobObject) and other.id == self.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self) -> str:
        return f"BlobObject({self.id[:12]}, size={self.size})"


class BlobWriter:
    """In-flight object. Every write is hashed so the commit knows its id.

    Use as a context manager: a writer left uncommitted when the block
    exits is aborted.
    """

    OPEN = 'open'
    COMMITTED = 'committed'
    ABORTED = 'aborted'

    def __init__(self, store: 'BlobStore', fileobj: BinaryIO, name: Optional[str] = None):
        self.store = store
        self.fileobj = fileobj
        self.name = name
        self.size = 0
        self.state = self.OPEN
        self._hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self.check_open()
        self.fileobj.write(data)
        self._hash.update(data)
        self.size += len(data)
        return len(data)

    @property
    def blob_id(self) -> str:
        return self._hash.hexdigest()

    def check_open(self) -> None:
        if self.state != self.OPEN:
            raise ArchiveError(
                f"Blob writer is already {self.state}",
                context={'writer': self.name},
            )

    def abort(self) -> None:
        if self.state == self.OPEN:
            self.store.abort(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.abort()
        return False


class BlobStore(ABC):
    def __init__(self, debug: bool = False):
        self.debug = debug

    def verbose(self, output):
        if self.debug:
            print(f" - [debug] {output}")

    @abstractmethod
    def create(self) -> BlobWriter:
        """Open a new write handle"""
        pass

    @abstractmethod
    def commit(self, writer: BlobWriter) -> BlobObject:
        """Close the handle and store its content as an immutable object

        Raises:
            ArchiveError: If the handle was already committed or aborted
        """
        pass

    @abstractmethod
    def abort(self, writer: BlobWriter) -> None:
        """Discard an uncommitted handle"""
        pass

    @abstractmethod
    def link(self, obj: BlobObject, path: str) -> None:
        """Create or replace the repository path as a reference to obj

        Replacing a single path is atomic; nothing is promised across paths.
        """
        pass

    @abstractmethod
    def open(self, obj: BlobObject) -> BinaryIO:
        """Open a committed object for reading"""
        pass

    @abstractmethod
    def open_path(self, path: str) -> BinaryIO:
        """Open whatever is currently linked at a repository path"""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if a repository path is linked"""
        pass

    @abstractmethod
    def gc(self) -> int:
        """Remove every object not referenced by a linked path

        Returns:
            Number of objects removed
        """
        pass

    @abstractmethod
    def get_url(self) -> str:
        """Get human-readable URL for display purposes"""
        pass

    @abstractmethod
    def get_info(self) -> dict:
        """Get backend information for display

        Returns:
            Dictionary with display name as key and value as value
            Example: {"Storage": "file:///path/to/storage"}
        """
        pass


def create_blob_store(config) -> BlobStore:
    """Create blob store from configuration"""
    storage_type = config.get('backend.type', 'local')
    debug = str(config.get('backend.debug', False)).lower() in ('1', 'true', 'yes')

    if storage_type == 's3':
        return S3BlobStore(
            bucket_name=config.get('backend.s3.bucket'),
            prefix=config.get('backend.s3.prefix', ''),
            endpoint_url=config.get('backend.s3.endpoint'),
            aws_profile=config.get('backend.s3.profile'),
            aws_region=config.get('backend.s3.region'),
            debug=debug,
        )
    elif storage_type == 'local':
        return LocalBlobStore(config.get('backend.local.path'), debug=debug)
    else:
        raise ValueError(f"Unknown storage type: {storage_type}")


class LocalBlobStore(BlobStore):
    """Filesystem blob store

    Objects live in <root>/.blobs/<aa>/<rest>, handles are written under
    <root>/.blobs/tmp, and linked paths are relative symlinks into .blobs.
    """

    def __init__(self, root: str, debug: bool = False):
        """
        Raises:
            ValueError: If root is not provided or is empty
        """
        super().__init__(debug)
        if not root:
            raise ValueError("root is required for LocalBlobStore")

        self.root = os.path.abspath(os.path.expanduser(root))
        self.blob_dir = os.path.join(self.root, BLOB_DIR)
        self.tmp_dir = os.path.join(self.blob_dir, 'tmp')
        os.makedirs(self.tmp_dir, exist_ok=True)

    def _get_full_path(self, path: str) -> str:
        """Convert repository path to full path, refusing anything outside the tree"""
        full_path = os.path.normpath(os.path.join(self.root, path.lstrip('/')))
        if not full_path.startswith(self.root + os.sep):
            raise ValueError(f"Path escapes archive root: {path}")
        if os.path.relpath(full_path, self.root).split(os.sep)[0] == BLOB_DIR:
            raise ValueError(f"Path is inside the object store: {path}")
        return full_path

    def _blob_path(self, blob_id: str) -> str:
        return os.path.join(self.blob_dir, blob_id[:2], blob_id[2:])

    def create(self) -> BlobWriter:
        fd, name = tempfile.mkstemp(dir=self.tmp_dir, prefix='blob-')
        return BlobWriter(self, os.fdopen(fd, 'wb'), name)

    def commit(self, writer: BlobWriter) -> BlobObject:
        writer.check_open()
        try:
            writer.fileobj.close()
            blob_id = writer.blob_id
            target = self._blob_path(blob_id)
            if os.path.exists(target):
                os.remove(writer.name)
            else:
                os.makedirs(os.path.dirname(target), exist_ok=True)
                os.chmod(writer.name, 0o644)
                os.replace(writer.name, target)
        except BaseException:
            self.abort(writer)
            raise

        writer.state = BlobWriter.COMMITTED
        self.verbose(f"commit {blob_id} ({writer.size} bytes)")
        return BlobObject(blob_id, writer.size)

    def abort(self, writer: BlobWriter) -> None:
        writer.state = BlobWriter.ABORTED
        writer.fileobj.close()
        if writer.name and os.path.exists(writer.name):
            os.remove(writer.name)
        self.verbose(f"abort {writer.name}")

    def link(self, obj: BlobObject, path: str) -> None:
        target = self._get_full_path(path)
        blob = self._blob_path(obj.id)
        if not os.path.exists(blob):
            raise FileNotFoundError(f"Object not committed: {obj.id}")

        target_dir = os.path.dirname(target)
        os.makedirs(target_dir, exist_ok=True)

        # Build the new link beside the old one, then swap it in
        staging = os.path.join(target_dir, f".{os.path.basename(target)}.{uuid.uuid4().hex}")
        os.symlink(os.path.relpath(blob, target_dir), staging)
        try:
            os.replace(staging, target)
        except OSError:
            os.remove(staging)
            raise
        self.verbose(f"link {path} -> {obj.id}")

    def open(self, obj: BlobObject) -> BinaryIO:
        return open(self._blob_path(obj.id), 'rb')

    def open_path(self, path: str) -> BinaryIO:
        return open(self._get_full_path(path), 'rb')

    def exists(self, path: str) -> bool:
        return os.path.exists(self._get_full_path(path))

    def gc(self) -> int:
        blob_root = os.path.realpath(self.blob_dir) + os.sep
        referenced = set()

        for root, dirs, files in os.walk(self.root):
            if root == self.root and BLOB_DIR in dirs:
                dirs.remove(BLOB_DIR)
            for name in files:
                full_path = os.path.join(root, name)
                if not os.path.islink(full_path):
                    continue
                dest = os.path.realpath(full_path)
                if dest.startswith(blob_root):
                    referenced.add(dest[len(blob_root):].replace(os.sep, ''))

        removed = 0
        for entry in sorted(os.listdir(self.blob_dir)):
            bucket = os.path.join(self.blob_dir, entry)
            if entry == 'tmp' or not os.path.isdir(bucket):
                continue
            for name in sorted(os.listdir(bucket)):
                blob_id = entry + name
                if blob_id not in referenced:
                    os.remove(os.path.join(bucket, name))
                    removed += 1
                    self.verbose(f"gc {blob_id}")
            if not os.listdir(bucket):
                os.rmdir(bucket)

        return removed

    def get_url(self) -> str:
        """Get file:// URL for display"""
        return f"file://{self.root}"

    def get_info(self) -> dict:
        return {
            'Storage': self.get_url()
        }


class S3BlobStore(BlobStore):
    """S3 blob store

    Objects live at <prefix>.blobs/<id>. Linking is a server-side copy
    onto the repository key carrying the object id in its metadata, which
    is what the garbage collector follows.
    """

    def __init__(self, bucket_name: str, prefix: str = '', endpoint_url: Optional[str] = None,
                 aws_profile: Optional[str] = None, aws_region: Optional[str] = None,
                 debug: bool = False):
        """
        Raises:
            ValueError: If bucket_name is not provided
        """
        super().__init__(debug)

        if not bucket_name:
            raise ValueError("backend.s3.bucket is required for S3BlobStore")

        self.bucket_name = bucket_name
        self.prefix = prefix.strip('/') + '/' if prefix and prefix.strip('/') else ''
        self.endpoint_url = endpoint_url

        # Determine which profile/region to use:
        # 1. Explicit profile (if not 'default')
        # 2. AWS_PROFILE environment variable
        # 3. Default credentials chain (when profile_name=None)
        self.aws_profile_src = None
        if aws_profile and aws_profile != 'default':
            self.aws_profile = aws_profile
            self.aws_profile_src = "config"
        elif os.environ.get('AWS_PROFILE'):
            self.aws_profile = os.environ.get('AWS_PROFILE')
            self.aws_profile_src = "AWS_PROFILE"
        else:
            self.aws_profile = None

        self.aws_region_src = None
        if aws_region:
            self.aws_region = aws_region
            self.aws_region_src = "config"
        elif os.environ.get('AWS_REGION'):
            self.aws_region = os.environ.get('AWS_REGION')
            self.aws_region_src = "AWS_REGION"
        else:
            self.aws_region = None

        session = boto3.Session(
            profile_name=self.aws_profile,
            region_name=self.aws_region
        )
        s3_config = {}
        if self.endpoint_url:
            s3_config['endpoint_url'] = self.endpoint_url

        self.s3_client = session.client('s3', **s3_config)

    def _key(self, path: str) -> str:
        key = path.lstrip('/')
        if key.split('/')[0] == BLOB_DIR:
            raise ValueError(f"Path is inside the object store: {path}")
        return f"{self.prefix}{key}"

    def _blob_key(self, blob_id: str) -> str:
        return f"{self.prefix}{BLOB_DIR}/{blob_id}"

    def _key_exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise

    def _download(self, key: str) -> BinaryIO:
        fileobj = tempfile.TemporaryFile()
        self.s3_client.download_fileobj(self.bucket_name, key, fileobj)
        fileobj.seek(0)
        return fileobj

    def create(self) -> BlobWriter:
        return BlobWriter(self, tempfile.TemporaryFile())

    def commit(self, writer: BlobWriter) -> BlobObject:
        writer.check_open()
        blob_id = writer.blob_id
        key = self._blob_key(blob_id)
        try:
            if not self._key_exists(key):
                writer.fileobj.seek(0)
                self.s3_client.upload_fileobj(writer.fileobj, self.bucket_name, key)
            writer.fileobj.close()
        except BaseException:
            self.abort(writer)
            raise

        writer.state = BlobWriter.COMMITTED
        self.verbose(f"commit {blob_id} ({writer.size} bytes)")
        return BlobObject(blob_id, writer.size)

    def abort(self, writer: BlobWriter) -> None:
        writer.state = BlobWriter.ABORTED
        writer.fileobj.close()

    def link(self, obj: BlobObject, path: str) -> None:
        self.verbose(f"link {path} -> {obj.id}")
        self.s3_client.copy_object(
            Bucket=self.bucket_name,
            CopySource={'Bucket': self.bucket_name, 'Key': self._blob_key(obj.id)},
            Key=self._key(path),
            Metadata={'blob': obj.id},
            MetadataDirective='REPLACE',
        )

    def open(self, obj: BlobObject) -> BinaryIO:
        return self._download(self._blob_key(obj.id))

    def open_path(self, path: str) -> BinaryIO:
        return self._download(self._key(path))

    def exists(self, path: str) -> bool:
        return self._key_exists(self._key(path))

    def gc(self) -> int:
        blob_prefix = f"{self.prefix}{BLOB_DIR}/"
        blobs = {}
        referenced = set()

        paginator = self.s3_client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=self.prefix):
            for obj in page.get('Contents', []):
                key = obj['Key']
                if key.startswith(blob_prefix):
                    blobs[key[len(blob_prefix):]] = key
                    continue
                head = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
                blob_id = head.get('Metadata', {}).get('blob')
                if blob_id:
                    referenced.add(blob_id)

        removed = 0
        for blob_id, key in sorted(blobs.items()):
            if blob_id not in referenced:
                self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
                removed += 1
                self.verbose(f"gc {blob_id}")

        return removed

    def get_url(self) -> str:
        """Get S3 URL for display"""
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket_name}/{self.prefix}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{self.prefix}"

    def get_info(self) -> dict:
        """Get S3 backend information for display"""
        info = {}

        try:
            sts_client = boto3.client('sts')
            identity = sts_client.get_caller_identity()
            info['AWS Account'] = identity['Account']
        except (BotoCoreError, ClientError):
            info['AWS Account'] = "Unable to determine"

        info['AWS Region'] = f"{self.aws_region} (from {self.aws_region_src})"
        info['AWS Profile'] = f"{self.aws_profile} (from {self.aws_profile_src})"
        info['S3 URL'] = self.get_url()

        return info
