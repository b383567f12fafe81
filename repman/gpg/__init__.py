"""
GPG signing module
"""

from .gpg_handler import GPGHandler

__all__ = ['GPGHandler']
