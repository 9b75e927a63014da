"""
OpenPGP signing through GnuPG

Both encodings stream: bytes written to a SignatureStream go to gpg's
stdin while a helper thread copies gpg's output into the sink, so the
manifest is never held in memory and a large input cannot deadlock
against gpg's output pipe.

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""

import subprocess
import tempfile
import threading
from typing import List, Optional

from .constants import CHUNK_SIZE
from .errors import SigningError

# Signatures always use SHA-512, whatever digests the manifest lists
SIGNATURE_DIGEST = 'SHA512'


class SignatureStream:
    """Pipe bytes through one gpg invocation, writing its output to sink

    Use as a context manager: a clean exit waits for gpg and checks its
    exit status, an exception kills the process.
    """

    def __init__(self, command: List[str], sink):
        self.command = command
        self.sink = sink
        self.closed = False
        self._error = None
        self._stderr = tempfile.TemporaryFile()
        try:
            self._proc = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
            )
        except OSError as e:
            self._stderr.close()
            raise SigningError(f"Cannot run {command[0]}: {e}", context={'command': command}) from e

        self._pump = threading.Thread(target=self._copy_output, daemon=True)
        self._pump.start()

    def _copy_output(self):
        stdout = self._proc.stdout
        try:
            for chunk in iter(lambda: stdout.read1(CHUNK_SIZE), b''):
                self.sink.write(chunk)
        except Exception as e:  # handed to close()
            self._error = e
            # keep draining so gpg can exit
            for _ in iter(lambda: stdout.read1(CHUNK_SIZE), b''):
                pass

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed signature stream")
        try:
            self._proc.stdin.write(data)
        except BrokenPipeError:
            self.close()
            raise SigningError("gpg exited before reading all input", context={'command': self.command})
        return len(data)

    def _finish(self) -> int:
        try:
            self._proc.stdin.close()
        except BrokenPipeError:
            pass
        self._pump.join()
        returncode = self._proc.wait()
        self._proc.stdout.close()
        return returncode

    def _stderr_text(self) -> str:
        self._stderr.seek(0)
        text = self._stderr.read().decode('utf-8', 'replace').strip()
        self._stderr.close()
        return text

    def close(self) -> None:
        """Finish the input and wait for gpg

        Raises:
            SigningError: If gpg exits non-zero
        """
        if self.closed:
            return
        self.closed = True

        returncode = self._finish()
        stderr = self._stderr_text()
        if returncode != 0:
            raise SigningError(
                f"gpg failed with exit code {returncode}: {stderr}",
                context={'command': self.command, 'stderr': stderr},
            )
        if self._error is not None:
            raise self._error

    def kill(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._proc.kill()
        self._finish()
        self._stderr.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None:
            self.kill()
        else:
            self.close()
        return False


class SigningKey:
    """An OpenPGP secret key held in a GnuPG keyring

    Args:
        key_id: Key id, fingerprint or user id understood by --local-user
        gnupg_home: Keyring directory (default: gpg's own default)
        passphrase_file: File holding the key passphrase, for protected keys
        gpg_binary: gpg executable to run
    """

    def __init__(self, key_id: str, gnupg_home: Optional[str] = None,
                 passphrase_file: Optional[str] = None, gpg_binary: str = 'gpg'):
        if not key_id:
            raise SigningError("A key id is required for signing")
        self.key_id = key_id
        self.gnupg_home = gnupg_home
        self.passphrase_file = passphrase_file
        self.gpg_binary = gpg_binary

    @classmethod
    def from_config(cls, config) -> Optional['SigningKey']:
        """Signing key named by signing.key_id, or None when unset"""
        key_id = config.get('signing.key_id')
        if not key_id:
            return None
        return cls(
            key_id,
            gnupg_home=config.get('signing.gnupg_home'),
            passphrase_file=config.get('signing.passphrase_file'),
            gpg_binary=config.get('signing.gpg_binary', 'gpg'),
        )

    def _base_command(self) -> List[str]:
        command = [self.gpg_binary, '--batch', '--yes', '--no-tty']
        if self.gnupg_home:
            command += ['--homedir', self.gnupg_home]
        return command

    def _sign_command(self, *args) -> List[str]:
        command = self._base_command()
        if self.passphrase_file:
            command += ['--pinentry-mode', 'loopback', '--passphrase-file', self.passphrase_file]
        command += [
            '--local-user', self.key_id,
            '--digest-algo', SIGNATURE_DIGEST,
            '--personal-digest-preferences', SIGNATURE_DIGEST,
        ]
        return command + list(args)

    def fingerprint(self) -> str:
        """Resolve the key in the keyring

        Raises:
            SigningError: If no matching secret key exists
        """
        command = self._base_command() + ['--with-colons', '--list-secret-keys', self.key_id]
        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except OSError as e:
            raise SigningError(f"Cannot run {self.gpg_binary}: {e}") from e

        if result.returncode == 0:
            for line in result.stdout.splitlines():
                if line.startswith('fpr:'):
                    return line.split(':')[9]
        raise SigningError(
            f"Secret key not found: {self.key_id}",
            context={'stderr': result.stderr.strip()},
        )

    def detached(self, sink) -> SignatureStream:
        """Binary detached signature of everything written, output to sink"""
        return SignatureStream(self._sign_command('--detach-sign'), sink)

    def clearsign(self, sink) -> SignatureStream:
        """Clearsign envelope around everything written, output to sink"""
        return SignatureStream(self._sign_command('--clearsign'), sink)

    def __repr__(self) -> str:
        return f"SigningKey({self.key_id})"
