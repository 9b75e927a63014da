#!/usr/bin/env python3
"""
Test pooling .deb payloads into the object store
"""

import hashlib
import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import pytest  # noqa: E402

from debarchive.archive import Archive  # noqa: E402
from debarchive.blobstore import LocalBlobStore  # noqa: E402
from debarchive.pool import Pool, pool_path  # noqa: E402
from helpers import build_deb  # noqa: E402


def test_pool_path():
    assert pool_path('myapp', 'myapp_1.0_amd64.deb') == 'pool/main/m/myapp/myapp_1.0_amd64.deb'
    assert pool_path('libssl3', 'libssl3_3.0_amd64.deb', 'security') == 'pool/security/libs/libssl3/libssl3_3.0_amd64.deb'
    assert pool_path('lib', 'lib_1_all.deb') == 'pool/main/lib/lib/lib_1_all.deb'
    assert pool_path('Zed', 'Zed_1_all.deb') == 'pool/main/z/Zed/Zed_1_all.deb'
    print("✓ Pool prefixes follow the lib* rule")


def test_include():
    """The pooled object and the Package entry describe the same bytes"""
    print()
    print("=" * 60)
    print("Test: Pool include")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmpdir:
        store = LocalBlobStore(os.path.join(tmpdir, 'archive'))
        pool = Pool(Archive(store))
        deb = build_deb(tmpdir, 'libfoo1', '1.2-1', 'arm64')
        with open(deb, 'rb') as f:
            data = f.read()

        package, state = pool.include(deb, component='contrib')

        expected_path = 'pool/contrib/libf/libfoo1/libfoo1_1.2-1_arm64.deb'
        assert package.filename == expected_path
        assert list(state) == [expected_path]
        assert state[expected_path].id == hashlib.sha256(data).hexdigest()
        assert package.sha256 == state[expected_path].id
        assert package.size == len(data)
        with store.open(state[expected_path]) as f:
            assert f.read() == data
        print("✓ .deb stored once, entry points at its pool path")

        assert not store.exists(expected_path)
        print("✓ Nothing linked until the state is published")

        with pytest.raises(FileNotFoundError):
            pool.include(os.path.join(tmpdir, 'missing.deb'))
        assert os.listdir(store.tmp_dir) == []


if __name__ == '__main__':
    test_pool_path()
    test_include()
    print()
    print("All pool tests passed")
