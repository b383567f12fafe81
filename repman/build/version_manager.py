"""
Version Manager Module - Compares package versions with pacman's vercmp
"""

import logging
from typing import Optional

from repman.common.errors import VersionComparisonError
from repman.common.shell_executor import ShellExecutor

logger = logging.getLogger(__name__)


class VersionManager:
    """Compares [epoch:]pkgver[-pkgrel] versions the way pacman does"""

    def __init__(self, shell_executor: Optional[ShellExecutor] = None):
        self.shell = shell_executor or ShellExecutor()

    def compare(self, v1: str, v2: str) -> int:
        """
        Compare two version strings using vercmp.
        Returns negative if v1 < v2, zero if v1 == v2, positive if v1 > v2.

        Args:
            v1: First version string
            v2: Second version string

        Raises:
            VersionComparisonError: vercmp is missing or gave no result
        """
        if v1 == v2:
            return 0

        try:
            result = self.shell.run_command(["vercmp", v1, v2], capture=True, check=False)
        except OSError as e:
            raise VersionComparisonError(f"Cannot run vercmp for {v1} and {v2}") from e

        if result.returncode != 0:
            raise VersionComparisonError(
                f"vercmp {v1} {v2} failed: {(result.stderr or '').strip()}",
                {"exit_code": result.returncode}
            )
        try:
            return int(result.stdout.strip())
        except ValueError:
            raise VersionComparisonError(f"vercmp {v1} {v2} returned {result.stdout!r}") from None

    def is_newer(self, candidate: str, current: str) -> bool:
        """True if candidate is strictly newer than current"""
        newer = self.compare(current, candidate) < 0
        logger.debug(f"{candidate} {'is' if newer else 'is not'} newer than {current}")
        return newer
