"""
Configuration management for debarchive

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import os
import json
from typing import Any, Dict, List, Optional
from .constants import (
    AVAIL_BACKEND_TYPES,
    DEFAULTS,
    ArchiveConfigFiles
)
from .hashing import check_algorithms
from .release import parse_duration


def find_config_file(args=None) -> str:
    """Pick the config file named by CLI flags, or the first one that exists

    Search order without flags: ./debarchive.conf, ~/.debarchive.conf,
    /etc/debarchive.conf. Falls back to the user file when none exist.
    """
    if args is not None and getattr(args, 'file', None):
        return args.file
    if args is not None and getattr(args, 'system', False):
        return ArchiveConfigFiles.SYSTEM.value
    if args is not None and getattr(args, 'local', False):
        return ArchiveConfigFiles.LOCAL.value
    if args is not None and getattr(args, 'global_config', False):
        return ArchiveConfigFiles.USER.value

    locations = [
        ArchiveConfigFiles.LOCAL,
        ArchiveConfigFiles.USER,
        ArchiveConfigFiles.SYSTEM
    ]
    for location in locations:
        if os.path.exists(location.value):
            return location.value
    return ArchiveConfigFiles.USER.value


def load_config(args=None) -> 'ArchiveConfig':
    return ArchiveConfig(find_config_file(args))


class ArchiveConfig:
    """Git-style configuration manager with dot notation

    Supports flat JSON structure with dot-notated keys for hierarchical organization.
    Example:
        {
            "backend.type": "s3",
            "backend.s3.bucket": "my-bucket",
            "signing.key_id": "0xDEADBEEF",
            "suite.stable.valid_for": "336h"
        }
    """

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration

        Args:
            config_file: Path to config file (if None, searches standard locations)
        """
        self.config_file = config_file or find_config_file()
        self.data = self._load()
        self.track_defaults = []

        for k, v in DEFAULTS.items():
            if not self.has(k):
                self.set(k, v)
                self.track_defaults.append(k)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-notated key

        Args:
            key: Dot-notated key (e.g., 'backend.s3.bucket')
            default: Default value if key not found

        Returns:
            Config value or default
        """
        if key in self.data:
            return self.data[key]

        return default

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-notated key"""
        self.data[key] = value
        if key in self.track_defaults:
            self.track_defaults.remove(key)

    def unset(self, key: str) -> bool:
        """Remove a config key

        Returns:
            True if key was removed, False if it didn't exist
        """
        if key in self.data:
            del self.data[key]
            return True
        return False

    def has(self, key: str) -> bool:
        return key in self.data

    def list(self) -> Dict[str, Any]:
        """All keys, defaults included"""
        return dict(self.data)

    def get_section(self, prefix: str) -> Dict[str, Any]:
        """Get all keys under a prefix

        Args:
            prefix: Key prefix (e.g., 'backend.s3')

        Returns:
            Dictionary of matching keys and values
        """
        prefix_dot = prefix + '.'
        result = {}

        for key, value in self.data.items():
            if key.startswith(prefix_dot) or key == prefix:
                result[key] = value

        return result

    def get_for_suite(self, base_key: str, suite: str, default: Any = None) -> Any:
        """Get a config value with suite-specific fallback

        Lookup order:
        1. Suite-specific key (e.g., 'suite.stable.valid_for')
        2. Shared key (e.g., 'suite.valid_for')
        3. Default value

        Example:
            # For the 'stable' suite, checks 'suite.stable.origin' then 'suite.origin'
            origin = config.get_for_suite('suite.origin', 'stable')
        """
        parts = base_key.split('.')
        if len(parts) >= 2:
            # Insert suite after first component: suite.origin -> suite.stable.origin
            suite_key = f"{parts[0]}.{suite}.{'.'.join(parts[1:])}"
        else:
            suite_key = f"{suite}.{base_key}"

        value = self.get(suite_key)
        if value is not None:
            return value

        value = self.get(base_key)
        if value is not None:
            return value

        return default

    def validate(self) -> List[str]:
        """Check the configuration for problems

        Returns:
            List of error messages (empty when valid)
        """
        errors = []

        backend_type = self.get('backend.type')
        if backend_type not in AVAIL_BACKEND_TYPES:
            errors.append(
                f"backend.type must be one of {', '.join(AVAIL_BACKEND_TYPES)}, got {backend_type!r}"
            )
        elif backend_type == 's3' and not self.get('backend.s3.bucket'):
            errors.append("backend.s3.bucket is required when backend.type is s3")
        elif backend_type == 'local' and not self.get('backend.local.path'):
            errors.append("backend.local.path is required when backend.type is local")

        for key, value in sorted(self.data.items()):
            if key.startswith('suite.') and key.endswith('.hashes'):
                try:
                    check_algorithms(str(value).split())
                except ValueError as e:
                    errors.append(f"{key}: {e}")
            elif key.startswith('suite.') and key.endswith('.valid_for') and value:
                try:
                    parse_duration(str(value))
                except ValueError as e:
                    errors.append(f"{key}: {e}")

        return errors

    def save(self, config_file: Optional[str] = None) -> None:
        """Save configuration to file, leaving out untouched defaults"""
        target_file = config_file or self.config_file

        config_dir = os.path.dirname(target_file)
        if config_dir and not os.path.exists(config_dir):
            os.makedirs(config_dir, exist_ok=True)

        data = {k: v for k, v in self.data.items() if k not in self.track_defaults}

        # Write sorted JSON for readability
        with open(target_file, 'w') as f:
            json.dump(data, f, indent=2, sort_keys=True)

    def _load(self) -> dict:
        """Load configuration from file"""
        if not os.path.exists(self.config_file):
            # No config file, use defaults
            return {}

        try:
            with open(self.config_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ValueError(f"Failed to load config from {self.config_file}: {e}")

    def __repr__(self) -> str:
        return f"ArchiveConfig(file={self.config_file}, keys={len(self.data)})"

    def __str__(self) -> str:
        lines = [f"Config file: {self.config_file}"]
        for key, value in sorted(self.data.items()):
            lines.append(f"  {key} = {value}")
        return '\n'.join(lines)
