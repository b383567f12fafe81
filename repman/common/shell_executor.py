"""
Shell Executor Module - Runs external tools with consistent logging
"""

import os
import shutil
import subprocess
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Command = List[Union[str, Path]]


class ShellExecutor:
    """Runs external commands (repo-add, rsync, makepkg, gpg, ...) without a shell"""

    def __init__(self, debug_mode: bool = False):
        self.debug_mode = debug_mode

    @staticmethod
    def is_available(tool: str) -> bool:
        """Check whether an executable is on PATH"""
        return shutil.which(tool) is not None

    def run_command(self, cmd: Command, cwd: Optional[Path] = None, capture: bool = True,
                    check: bool = False, log_cmd: bool = False, timeout: Optional[float] = None,
                    extra_env: Optional[Dict[str, str]] = None) -> subprocess.CompletedProcess:
        """
        Run a command and return the completed process

        Args:
            cmd: Argument list, the first element is the executable
            cwd: Working directory (defaults to the current one)
            capture: Capture stdout/stderr as text; otherwise output goes to the terminal
            check: Raise CalledProcessError on a non-zero exit code
            log_cmd: Log the command at INFO instead of DEBUG
            timeout: Seconds before the command is killed, None waits forever
            extra_env: Variables added to a copy of the current environment

        Returns:
            subprocess.CompletedProcess
        """
        args = [str(part) for part in cmd]
        if log_cmd:
            logger.info(f"RUNNING COMMAND: {' '.join(args)}")
        else:
            logger.debug(f"RUNNING COMMAND: {' '.join(args)}")

        env = os.environ.copy()
        env['LC_ALL'] = 'C'
        if extra_env:
            env.update(extra_env)

        try:
            result = subprocess.run(
                args,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=capture,
                text=True,
                check=check,
                env=env,
                timeout=timeout
            )
        except subprocess.TimeoutExpired:
            logger.error(f"⚠️ Command timed out after {timeout} seconds: {args[0]}")
            raise
        except subprocess.CalledProcessError as e:
            logger.debug(f"Command failed with exit code {e.returncode}: {args[0]}")
            raise

        if capture and (self.debug_mode or logger.isEnabledFor(logging.DEBUG)):
            if result.stdout:
                logger.debug(f"STDOUT: {result.stdout[:2000]}")
            if result.stderr:
                logger.debug(f"STDERR: {result.stderr[:2000]}")
            logger.debug(f"EXIT CODE: {result.returncode}")

        return result
