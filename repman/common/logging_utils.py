"""
Logging utilities for repman
"""

import logging
from pathlib import Path
from typing import Optional, Union


def setup_logging(debug_mode: bool = False, log_file: Optional[Union[str, Path]] = None):
    """Setup logging configuration"""
    level = logging.DEBUG if debug_mode else logging.INFO

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(str(log_file)))

    logging.basicConfig(
        level=level,
        format='[%(asctime)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers
    )

    return logging.getLogger(__name__)
