"""
Command line interface for debarchive

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import argparse
import os
import sys

from debian.deb822 import Deb822

from . import Colors
from .archive import ArchiveState, create_archive
from .config import ArchiveConfig, find_config_file, load_config
from .errors import ArchiveError
from .packages import load_packages
from .pool import Pool


def config_command(args):
    """Handle config subcommand"""
    config_file = find_config_file(args)
    config = ArchiveConfig(config_file)

    if args.list:
        print(f"Reading {config_file}")
        print("="*40)
        for key, value in sorted(config.list().items()):
            print(f"{key}={value}{'*' if key in config.track_defaults else ''}")
        return 0

    elif args.unset:
        if config.unset(args.unset):
            config.save()
            print(f"Unset {args.unset}")
        else:
            print(f"Key not found: {args.unset}")
            return 1
        return 0

    elif args.validate_config:
        errors = config.validate()
        if errors:
            print("Configuration errors:")
            for error in errors:
                print(f"  - {error}")
            return 1
        else:
            print("Configuration is valid")
        return 0

    elif args.key:
        if args.value:
            config.set(args.key, args.value)
            config.save()
            print(f"Set {args.key} = {args.value}")
        else:
            value = config.get(args.key)
            if value is not None:
                print(value)
            else:
                print(f"Key not found: {args.key}")
                return 1
        return 0

    else:
        print(f"Config file: {config.config_file}")
        print(f"Keys: {len(config.data)}")
        return 0


def _index_path(suite, component, arch):
    return f"dists/{suite}/{component}/binary-{arch}/Packages"


def published_packages(archive, suite_name):
    """Entries currently published in a suite, as (component, Package) pairs

    The component/architecture pairs come from the live Release; a suite
    that was never published yields nothing.
    """
    release_path = f"dists/{suite_name}/Release"
    if not archive.store.exists(release_path):
        return

    with archive.store.open_path(release_path) as f:
        release = Deb822(f)
    components = release.get('Components', '').split()
    architectures = release.get('Architectures', '').split()

    for component in components:
        for arch in architectures:
            path = _index_path(suite_name, component, arch)
            if not archive.store.exists(path):
                continue
            with archive.store.open_path(path) as f:
                for package in load_packages(f):
                    yield component, package


def publish_command(archive, config, args):
    """Pool the given .deb files and republish the suite

    Entries already published in the suite are carried over unless
    --replace is given; an entry with the same name, version and
    architecture as a new package is superseded by it.
    """
    component_name = args.component or config.get_for_suite(
        'suite.default_component', args.suite, 'main'
    )
    suite = archive.suite(args.suite)
    pool = Pool(archive)
    state = ArchiveState()

    try:
        print("Adding packages to pool...")
        added = []
        for deb_file in args.deb_files:
            package, pooled = pool.include(deb_file, component_name)
            state.update(pooled)
            added.append(package)
            print(f"  • {os.path.basename(deb_file)} → {package.filename}")

        new_keys = {
            (component_name, p.package, str(p.version), p.architecture) for p in added
        }
        if not args.replace:
            kept = 0
            for component, package in published_packages(archive, args.suite):
                key = (component, package.package, str(package.version), package.architecture)
                if key in new_keys:
                    print(Colors.warning(f"  ↻ Replacing {package.package} {package.version} ({package.architecture})"))
                    continue
                suite.component(component).add_package(package)
                kept += 1
            if kept:
                print(f"  Carried over {kept} published package(s)")

        component = suite.component(component_name)
        for package in added:
            component.add_package(package)

        print("Building indices and Release...")
        state.update(archive.engross(suite, signed=not args.no_sign))
    except BaseException:
        suite.abort()
        raise

    print("Publishing...")
    archive.link(state)

    if args.gc:
        removed = archive.gc()
        print(f"  Removed {removed} unreferenced object(s)")

    print(Colors.success(
        f"✓ Published {len(added)} package(s) to {archive.get_url()}/dists/{args.suite}"
    ))
    return 0


def list_command(archive, args):
    path = _index_path(args.suite, args.component, args.architecture)
    if not archive.store.exists(path):
        print(Colors.error(f"✗ Error: No index at {path}"))
        return 1

    count = 0
    with archive.store.open_path(path) as f:
        for package in load_packages(f):
            print(f"{package.package:<30} {str(package.version):<20} {package.filename}")
            count += 1
    print(Colors.info(f"{count} package(s) in {args.suite}/{args.component}/{args.architecture}"))
    return 0


def create_parser():
    parser = argparse.ArgumentParser(
        description='Build, sign and publish Debian archives in a content-addressed store',
    )

    # Global options
    parser.add_argument('--config', help='Path to config file')
    parser.add_argument('--root', help='Local archive directory (overrides config file)')
    parser.add_argument('-b', '--bucket', help='S3 bucket name (overrides config file)')
    parser.add_argument('--s3-endpoint-url', help='Custom S3 endpoint URL for S3-compatible services (overrides config file)')
    parser.add_argument('--profile', help='AWS profile to use (overrides config file and AWS_PROFILE env var)')
    parser.add_argument('--key', help='OpenPGP key used for signing (overrides config file)')
    parser.add_argument('--gnupg-home', help='GnuPG home directory holding the signing key')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute', required=True)

    # Publish subcommand
    publish_parser = subparsers.add_parser('publish', help='Add packages to a suite and publish it')
    publish_parser.add_argument('suite', help='Suite name (e.g., stable)')
    publish_parser.add_argument('deb_files', nargs='+', help='Debian package file(s) to add')
    publish_parser.add_argument('--component', help='Component name (default: suite.default_component)')
    publish_parser.add_argument('--replace', action='store_true', help='Drop packages already published in the suite')
    publish_parser.add_argument('--no-sign', action='store_true', help='Publish Release without Release.gpg and InRelease')
    publish_parser.add_argument('--gc', action='store_true', help='Remove unreferenced objects after publishing')
    publish_parser.add_argument('-y', '--yes', action='store_true', help='Skip confirmation prompt (for CI/CD)')

    # List subcommand
    list_parser = subparsers.add_parser('list', help='List packages in a published index')
    list_parser.add_argument('suite', help='Suite name (e.g., stable)')
    list_parser.add_argument('component', help='Component name (e.g., main)')
    list_parser.add_argument('architecture', help='Architecture (e.g., amd64)')

    # GC subcommand
    gc_parser = subparsers.add_parser('gc', help='Remove objects no longer linked anywhere')
    gc_parser.add_argument('-y', '--yes', action='store_true', help='Skip confirmation prompt (for CI/CD)')

    # Config subcommand
    config_parser = subparsers.add_parser('config', help='Manage configuration')
    config_parser.add_argument('key', nargs='?', help='Config key (dot notation)')
    config_parser.add_argument('value', nargs='?', help='Config value (if setting)')
    config_parser.add_argument('--list', action='store_true', help='List all config values')
    config_parser.add_argument('--unset', metavar='KEY', help='Remove a config key')
    config_parser.add_argument('--validate', dest='validate_config', action='store_true', help='Validate configuration')
    config_parser.add_argument('--file', help='Use specific config file')
    config_parser.add_argument('--global', dest='global_config', action='store_true', help='Use global config (~/.debarchive.conf)')
    config_parser.add_argument('--local', action='store_true', help='Use local config (./debarchive.conf)')
    config_parser.add_argument('--system', action='store_true', help='Use system config (/etc/debarchive.conf)')

    return parser


def apply_overrides(config, args):
    """Apply CLI argument overrides"""
    if args.root:
        config.set('backend.type', 'local')
        config.set('backend.local.path', args.root)
    if args.bucket:
        config.set('backend.type', 's3')
        config.set('backend.s3.bucket', args.bucket)
    if args.s3_endpoint_url:
        config.set('backend.s3.endpoint', args.s3_endpoint_url)
    if args.profile:
        config.set('backend.s3.profile', args.profile)
    if args.key:
        config.set('signing.key_id', args.key)
    if args.gnupg_home:
        config.set('signing.gnupg_home', args.gnupg_home)


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    # Handle config command
    if args.command == 'config':
        return config_command(args)

    try:
        config = ArchiveConfig(args.config) if args.config else load_config()
        apply_overrides(config, args)

        errors = config.validate()
        if errors:
            for error in errors:
                print(Colors.error(f"✗ Error: {error}"))
            return 1

        archive = create_archive(config)

        if args.command == 'list':
            return list_command(archive, args)

        if args.command == 'publish' and not args.no_sign:
            if archive.signing_key is None:
                print(Colors.error("✗ Error: No signing key configured (set signing.key_id, pass --key, or use --no-sign)"))
                return 1
            archive.signing_key.fingerprint()

        # Show confirmation
        print()
        print(Colors.bold("Configuration:"))

        for key, value in archive.store.get_info().items():
            print(f"  {key:<13}: {value}")

        print(f"  Action:       {Colors.bold(args.command.upper())}")
        if args.command == 'publish':
            print(f"  Suite:        {args.suite}")
            if archive.signing_key is not None and not args.no_sign:
                print(f"  Signing key:  {archive.signing_key.key_id}")
            print(f"  Packages:     {len(args.deb_files)}")
            for f in args.deb_files:
                print(f"    • {os.path.basename(f)}")
        print()

        # Confirm operation
        confirm = str(config.get('behavior.confirm', True)).lower() in ('1', 'true', 'yes')
        if not args.yes and confirm:
            response = input(Colors.bold("Continue? (yes/no): "))
            if response.lower() != "yes":
                print(Colors.warning("Cancelled"))
                return 0

        if args.command == 'publish':
            return publish_command(archive, config, args)
        elif args.command == 'gc':
            removed = archive.gc()
            print(Colors.success(f"✓ Removed {removed} unreferenced object(s)"))

        return 0

    except (ArchiveError, ValueError, FileNotFoundError) as e:
        print(Colors.error(f"✗ Error: {e}"))
        return 1
    except KeyboardInterrupt:
        print(Colors.warning("\n✗ Cancelled"))
        return 130
    except Exception as e:
        print(Colors.error(f"✗ Unexpected error: {e}"))
        import traceback
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
