"""
HTTP transport for the sandbox API.
"""

from remote_sandbox.api.client import APIClient, error_from_response

__all__ = [
    "APIClient",
    "error_from_response",
]
