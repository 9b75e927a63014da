"""
Pool area for .deb payloads

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import os
from typing import Tuple

from .archive import ArchiveState
from .packages import Package, package_from_deb


def pool_path(package_name: str, deb_basename: str, component: str = 'main') -> str:
    """Calculate pool path for a .deb file

    Returns:
        str: Pool path (e.g., 'pool/main/m/myapp/myapp_1.0.0_amd64.deb')
    """
    prefix = package_name[0].lower()

    # Special case for lib* packages
    if package_name.startswith('lib'):
        if len(package_name) > 3:
            prefix = f"lib{package_name[3]}"
        else:
            prefix = 'lib'

    return f"pool/{component}/{prefix}/{package_name}/{deb_basename}"


class Pool:
    def __init__(self, archive):
        self.archive = archive

    def include(self, deb_path: str, component: str = 'main') -> Tuple[Package, ArchiveState]:
        """Store a .deb in the pool

        The file is read once: the same chunks are hashed for the Package
        entry and written to the object store.

        Returns:
            The Package entry (Filename pointing into the pool) and the
            state holding its pool path, to be linked with the suite.

        Raises:
            FileNotFoundError: If deb_path does not exist
            PackageDecodeError: If it is not a valid .deb
        """
        if not os.path.isfile(deb_path):
            raise FileNotFoundError(f"Debian package not found: {deb_path}")

        store = self.archive.store
        with store.create() as handle:
            package = package_from_deb(deb_path, tap=handle)
            path = pool_path(package.package, os.path.basename(deb_path), component)
            obj = store.commit(handle)

        paragraph = package.to_paragraph()
        paragraph['Filename'] = path
        return Package(paragraph), ArchiveState({path: obj})
