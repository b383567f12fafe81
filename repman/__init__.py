"""
repman - manage custom Arch Linux package repositories
"""

__version__ = "0.1.0"
