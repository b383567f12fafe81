"""
Repository management modules package
"""

from .cleanup_manager import CleanupManager, CleanupReport
from .database_manager import DatabaseManager
from .db_reader import DatabaseEntry, read_database
from .dependency_index import DependencyIndex
from .lock_manager import LockManager
from .repository import Repository, RepositoryListing
from .transaction import repository_transaction, temporary_workspace

__all__ = [
    'CleanupManager',
    'CleanupReport',
    'DatabaseManager',
    'DatabaseEntry',
    'read_database',
    'DependencyIndex',
    'LockManager',
    'Repository',
    'RepositoryListing',
    'repository_transaction',
    'temporary_workspace'
]
