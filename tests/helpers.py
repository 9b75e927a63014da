"""
Shared helpers for the debarchive tests: .deb synthesis and a throwaway
GnuPG keyring.
"""

import io
import os
import shutil
import subprocess
import tarfile
import tempfile

AR_MAGIC = b'!<arch>\n'

TEST_KEY_EMAIL = 'archive-test@example.com'


def print_pass(msg):
    print(f"✓ {msg}")


def print_fail(msg):
    print(f"✗ {msg}")


def _ar_member(name, data):
    header = (
        f"{name:<16}"
        f"{0:<12}"      # mtime
        f"{0:<6}"       # uid
        f"{0:<6}"       # gid
        f"{'100644':<8}"
        f"{len(data):<10}"
        "`\n"
    ).encode('ascii')
    if len(data) % 2:
        data += b'\n'
    return header + data


def _tar_gz(members):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w:gz') as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def control_text(name, version, arch, extra=None):
    fields = [
        ('Package', name),
        ('Version', version),
        ('Architecture', arch),
        ('Maintainer', 'Archive Test <archive-test@example.com>'),
        ('Installed-Size', '12'),
        ('Section', 'utils'),
        ('Priority', 'optional'),
    ]
    fields += list((extra or {}).items())
    fields.append(('Description', f'test package {name}\n small package built by the tests'))
    return ''.join(f"{key}: {value}\n" for key, value in fields)


def build_deb(directory, name, version='1.0', arch='amd64', extra=None, payload=None):
    """Write a minimal but valid .deb and return its path"""
    control = control_text(name, version, arch, extra).encode('utf-8')
    payload = payload if payload is not None else f"{name} {version}\n".encode('utf-8')

    path = os.path.join(directory, f"{name}_{version}_{arch}.deb")
    with open(path, 'wb') as f:
        f.write(AR_MAGIC)
        f.write(_ar_member('debian-binary', b'2.0\n'))
        f.write(_ar_member('control.tar.gz', _tar_gz({'./control': control})))
        f.write(_ar_member('data.tar.gz', _tar_gz({f'./usr/share/doc/{name}/README': payload})))
    return path


def package_paragraph(name, version='1.0', arch='amd64', **extra):
    """A complete Packages record as a plain dict"""
    paragraph = {
        'Package': name,
        'Version': version,
        'Architecture': arch,
        'Maintainer': 'Archive Test <archive-test@example.com>',
        'Description': f'test package {name}',
        'Filename': f'pool/main/{name[0]}/{name}/{name}_{version}_{arch}.deb',
        'Size': '1024',
    }
    paragraph.update(extra)
    return paragraph


def gpg_available():
    return shutil.which('gpg') is not None


def create_gnupg_home():
    """Generate an unprotected RSA signing key in a fresh GnuPG home

    Returns:
        Path to the GnuPG home directory
    """
    home = tempfile.mkdtemp(prefix='gpg-')
    os.chmod(home, 0o700)
    params = (
        "%no-protection\n"
        "Key-Type: RSA\n"
        "Key-Length: 2048\n"
        "Key-Usage: sign\n"
        "Name-Real: debarchive test\n"
        f"Name-Email: {TEST_KEY_EMAIL}\n"
        "Expire-Date: 0\n"
        "%commit\n"
    )
    subprocess.run(
        ['gpg', '--batch', '--homedir', home, '--gen-key'],
        input=params, capture_output=True, text=True, check=True,
    )
    return home


def remove_gnupg_home(home):
    if shutil.which('gpgconf'):
        subprocess.run(['gpgconf', '--homedir', home, '--kill', 'gpg-agent'], capture_output=True)
    shutil.rmtree(home, ignore_errors=True)


def gpg_verify(home, *files):
    """Run gpg --verify; returns the CompletedProcess"""
    return subprocess.run(
        ['gpg', '--batch', '--homedir', home, '--verify'] + list(files),
        capture_output=True, text=True,
    )
