"""
Remote synchronization backends
"""

from .backends import (
    GCSBackend,
    LocalBackend,
    RemoteBackend,
    RsyncBackend,
    S3Backend,
    create_backend,
    local_dir_for,
)

__all__ = [
    'GCSBackend',
    'LocalBackend',
    'RemoteBackend',
    'RsyncBackend',
    'S3Backend',
    'create_backend',
    'local_dir_for',
]
