"""
Exceptions raised while assembling and publishing an archive

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

from typing import Any, Dict, Optional


class ArchiveError(Exception):
    """Base class for archive assembly failures.

    Attributes:
        context: Dictionary with details useful for debugging, such as
                 the suite, path or field involved.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class PackageDecodeError(ArchiveError, ValueError):
    """A package record is malformed or lacks a required field"""


class DependencyParseError(ArchiveError, ValueError):
    """A relation field (Depends, Breaks, ...) could not be parsed"""


class DurationError(ArchiveError, ValueError):
    """A suite validity duration could not be parsed"""


class SigningError(ArchiveError):
    """Signing failed, or no signing key is configured"""
