"""
remote-sandbox utilities

Logging and polling helpers.
"""

from remote_sandbox.utils.logger import (
    get_logger,
    configure_logging,
    DEFAULT_FORMAT,
)
from remote_sandbox.utils.polling import poll_until

__all__ = [
    "get_logger",
    "configure_logging",
    "DEFAULT_FORMAT",
    "poll_until",
]
