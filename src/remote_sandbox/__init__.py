"""
remote-sandbox: client for hosted compute sandboxes

Manage sandboxes and volumes of a workspace, run processes and work with
files inside a sandbox, expose its ports as previews, and drive batch job
executions.
"""

__version__ = "0.1.0"

from remote_sandbox.client import SandboxClient
from remote_sandbox.config import SandboxConfig
from remote_sandbox.auth import Credential, CredentialResolver
from remote_sandbox.types import (
    Port,
    VolumeAttachment,
    SandboxSpec,
    SandboxRecord,
    VolumeSpec,
    VolumeRecord,
    ProcessStatus,
    ExecRequest,
    ProcessRecord,
    ProcessLogs,
    Directory,
    GrepMatch,
    FindMatch,
    FileEvent,
    PreviewSpec,
    PreviewToken,
    JobExecution,
    JobExecutionStatus,
)
from remote_sandbox.sandbox import (
    SandboxHandle,
    ProcessHandle,
    Preview,
    WatchSubscription,
)
from remote_sandbox.storage import VolumeHandle
from remote_sandbox.jobs import JobExecutions

from remote_sandbox.errors import (
    SandboxError,
    AuthenticationError,
    NotFoundError,
    InvalidPortError,
    SandboxTimeoutError,
    ProvisioningError,
    ConflictError,
    ProcessExitedError,
    InvalidRequestError,
    APIError,
)

__all__ = [
    "SandboxClient",
    "SandboxConfig",
    "Credential",
    "CredentialResolver",
    # Specs and records
    "Port",
    "VolumeAttachment",
    "SandboxSpec",
    "SandboxRecord",
    "VolumeSpec",
    "VolumeRecord",
    "ProcessStatus",
    "ExecRequest",
    "ProcessRecord",
    "ProcessLogs",
    "Directory",
    "GrepMatch",
    "FindMatch",
    "FileEvent",
    "PreviewSpec",
    "PreviewToken",
    "JobExecution",
    "JobExecutionStatus",
    # Handles
    "SandboxHandle",
    "ProcessHandle",
    "Preview",
    "WatchSubscription",
    "VolumeHandle",
    "JobExecutions",
    # Exception classes
    "SandboxError",
    "AuthenticationError",
    "NotFoundError",
    "InvalidPortError",
    "SandboxTimeoutError",
    "ProvisioningError",
    "ConflictError",
    "ProcessExitedError",
    "InvalidRequestError",
    "APIError",
]
