"""
Common modules: configuration, paths, logging, shell execution and errors
"""

from .config_loader import ConfigLoader, RepoConfig
from .logging_utils import setup_logging
from .paths import RepmanPaths, ensure_dir
from .shell_executor import ShellExecutor

__all__ = [
    'ConfigLoader',
    'RepoConfig',
    'setup_logging',
    'RepmanPaths',
    'ensure_dir',
    'ShellExecutor',
]
