"""
GPG Handler - signing support for package files

Signing is strict: a missing key, a missing gpg binary or a failed gpg run
raise SigningError, so a repository never ends up with a half written
signature. The key comes from the GPGKEY environment variable or from the
GPGKEY setting of the repository's makepkg.conf.
"""

import os
import re
import logging
from pathlib import Path
from typing import Optional

from repman.common.errors import SigningError, SigningKeyMissing
from repman.common.shell_executor import ShellExecutor

logger = logging.getLogger(__name__)

GPGKEY_RE = re.compile(r"""^[ \t]*GPGKEY[ \t]*=[ \t]*['"]?([^'"\s#]*)['"]?""", re.MULTILINE)


class GPGHandler:
    def __init__(self, shell_executor: Optional[ShellExecutor] = None):
        self.shell = shell_executor or ShellExecutor()

    @staticmethod
    def resolve_key(makepkg_conf: Optional[Path] = None) -> Optional[str]:
        """
        Determine the signing key

        Resolution order:
        1. GPGKEY environment variable
        2. uncommented GPGKEY=... line of makepkg_conf

        Returns:
            Key id / fingerprint or None if no key is configured
        """
        key = os.environ.get("GPGKEY", "").strip()
        if key:
            return key

        if makepkg_conf is None:
            return None
        try:
            content = Path(makepkg_conf).read_text()
        except OSError as e:
            logger.warning(f"⚠️ Cannot read {makepkg_conf} to look up GPGKEY: {e}")
            return None

        match = GPGKEY_RE.search(content)
        if match and match.group(1):
            return match.group(1)
        return None

    def sign_file(self, file_path: Path, key: Optional[str]) -> Path:
        """Create detached signature (file.sig) for file_path."""
        if not key:
            raise SigningKeyMissing(f"Cannot sign {Path(file_path).name}: no GPG key configured")
        if not self.shell.is_available("gpg"):
            raise SigningError("gpg is required for signing but it is not installed")

        file_path = Path(file_path)
        if not file_path.exists():
            raise SigningError(f"Cannot sign missing file: {file_path}")

        sig_path = Path(str(file_path) + ".sig")
        cmd = [
            "gpg",
            "--yes",
            "-u", key,
            "--output", str(sig_path),
            "--detach-sign",
            "--pinentry-mode=loopback",
            str(file_path),
        ]

        proc = self.shell.run_command(cmd, capture=True, check=False)
        if proc.returncode != 0:
            raise SigningError(
                f"GPG signing failed for {file_path.name}: {(proc.stderr or '').strip()[:300]}"
            )

        # Basic sanity: signature file exists and non-empty
        if not sig_path.exists() or sig_path.stat().st_size == 0:
            raise SigningError(f"GPG signing produced no signature for {file_path.name}")

        logger.info(f"✅ Signed {file_path.name}")
        return sig_path
