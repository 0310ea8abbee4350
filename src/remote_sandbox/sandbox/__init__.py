"""
Sandbox handles and the per-sandbox process, filesystem and preview proxies.
"""

from remote_sandbox.sandbox.files import FileSystem
from remote_sandbox.sandbox.process import Processes, ProcessHandle
from remote_sandbox.sandbox.preview import Preview, Previews, PreviewTokens
from remote_sandbox.sandbox.watch import WatchSubscription
from remote_sandbox.sandbox.sandbox import SandboxHandle, Sandboxes, validate_ports

__all__ = [
    "FileSystem",
    "WatchSubscription",
    "Processes", "ProcessHandle",
    "Preview", "Previews", "PreviewTokens",
    "SandboxHandle", "Sandboxes", "validate_ports",
]
