"""
remote-sandbox type definitions

Wire records and option maps exchanged with the sandbox API.
Field names are snake_case; the wire uses camelCase aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "RESERVED_PORTS",
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
    "FileEntry",
    "SubdirectoryEntry",
    "Directory",
    "GrepMatch",
    "FindMatch",
    "FileEvent",
    "PreviewSpec",
    "PreviewRecord",
    "PreviewToken",
    "JobExecutionStatus",
    "JobExecution",
]

# Ports the platform keeps for its own ingress
RESERVED_PORTS = frozenset({80, 443, 8080})


class WireModel(BaseModel):
    """Base for models serialized with camelCase keys"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Sandboxes and volumes
# =============================================================================

class Port(WireModel):
    """Port declared on a sandbox at creation time"""

    target: int = Field(..., description="Port number inside the sandbox")

    protocol: Literal["HTTP", "TCP", "UDP"] = Field(default="HTTP", description="Protocol")

    name: Optional[str] = Field(None, description="Optional port label")


class VolumeAttachment(WireModel):
    """Volume mounted into a sandbox; only settable at sandbox creation"""

    name: str = Field(..., description="Volume name")

    mount_path: str = Field(..., description="Absolute mount path in the sandbox")

    read_only: bool = Field(default=False, description="Mount read-only")


class SandboxSpec(WireModel):
    """Desired sandbox configuration"""

    name: str = Field(..., min_length=1, max_length=63, description="Unique per workspace")

    image: str = Field(default="base", description="Image reference")

    memory: Optional[int] = Field(None, ge=128, description="Memory in MB")

    region: Optional[str] = Field(None, description="Deployment region")

    ports: List[Port] = Field(default_factory=list, description="Declared ports")

    labels: Dict[str, str] = Field(default_factory=dict, description="Label set")

    ttl: Optional[str] = Field(None, description="Time-to-live, e.g. '24h'")

    envs: Dict[str, str] = Field(default_factory=dict, description="Environment variables")

    volumes: List[VolumeAttachment] = Field(default_factory=list, description="Volume mounts")


class SandboxRecord(SandboxSpec):
    """Sandbox as reported by the API"""

    status: Literal["pending", "provisioning", "ready", "failed", "terminated"] = Field(
        default="pending",
        description="Lifecycle status"
    )

    url: Optional[str] = Field(None, description="Sandbox base URL")

    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    reason: Optional[str] = Field(None, description="Failure reason, if any")


class VolumeSpec(WireModel):
    """Desired volume configuration"""

    name: str = Field(..., min_length=1, max_length=63, description="Unique per workspace")

    size: int = Field(default=1024, ge=1, description="Size in MB")

    region: Optional[str] = Field(None, description="Region")

    labels: Dict[str, str] = Field(default_factory=dict, description="Label set")


class VolumeRecord(VolumeSpec):
    """Volume as reported by the API"""

    status: Literal["pending", "provisioning", "ready", "failed", "terminated"] = Field(
        default="pending",
        description="Lifecycle status"
    )

    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    reason: Optional[str] = Field(None, description="Failure reason, if any")


# =============================================================================
# Processes
# =============================================================================

class ProcessStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessStatus.COMPLETED, ProcessStatus.FAILED, ProcessStatus.KILLED)


class ExecRequest(WireModel):
    """
    Options for running a command in a sandbox.

    Exactly one wait policy applies: ``wait_for_completion``,
    ``wait_for_ports``, or neither (return as soon as the process is
    accepted). ``timeout`` bounds whichever wait is chosen.
    """

    command: str = Field(..., min_length=1, description="Command line")

    name: Optional[str] = Field(None, description="Unique process name; generated if omitted")

    working_dir: Optional[str] = Field(None, description="Working directory")

    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment")

    wait_for_completion: bool = Field(default=False, description="Block until terminal")

    wait_for_ports: List[int] = Field(default_factory=list, description="Block until listening")

    timeout: Optional[float] = Field(None, gt=0, description="Wait bound in seconds")

    restart_on_failure: bool = Field(default=False, description="Relaunch on non-zero exit")

    max_restarts: int = Field(default=0, ge=0, le=100, description="Cumulative restart cap")


class ProcessRecord(WireModel):
    """Process as reported by the sandbox"""

    name: str = Field(..., description="Process name")

    pid: Optional[int] = Field(None, description="Process id")

    command: str = Field(default="", description="Command line")

    working_dir: Optional[str] = Field(None, description="Working directory")

    status: ProcessStatus = Field(default=ProcessStatus.PENDING, description="Process status")

    exit_code: Optional[int] = Field(None, description="Exit code once terminal")

    started_at: Optional[datetime] = Field(None, description="Start timestamp")

    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")


class ProcessLogs(WireModel):
    """Captured output of a process"""

    stdout: str = Field(default="", description="Standard output")

    stderr: str = Field(default="", description="Standard error")

    logs: str = Field(default="", description="Interleaved output")


# =============================================================================
# Filesystem
# =============================================================================

class FileEntry(WireModel):
    name: str
    path: str
    size: int = 0


class SubdirectoryEntry(WireModel):
    name: str
    path: str


class Directory(WireModel):
    """Listing of a directory: subdirectories and files, each in order"""

    path: str = Field(..., description="Listed directory")

    subdirectories: List[SubdirectoryEntry] = Field(default_factory=list)

    files: List[FileEntry] = Field(default_factory=list)

    @property
    def subdirectory_names(self) -> List[str]:
        return [d.name for d in self.subdirectories]

    @property
    def file_names(self) -> List[str]:
        return [f.name for f in self.files]


class GrepMatch(WireModel):
    """One line matched by a content search"""

    path: str = Field(..., description="File containing the match")

    line: int = Field(..., ge=1, description="1-based line number")

    text: str = Field(..., description="Matched line")

    context: List[str] = Field(default_factory=list, description="Surrounding lines")


class FindMatch(WireModel):
    path: str
    type: Literal["file", "directory"]


class FileEvent(WireModel):
    """Filesystem change delivered by a watch subscription"""

    op: Literal["created", "modified", "deleted"] = Field(..., description="Change kind")

    path: str = Field(..., description="Absolute path of the changed entry")

    name: Optional[str] = Field(None, description="Entry name")

    content: Optional[str] = Field(None, description="File content when requested")


# =============================================================================
# Previews
# =============================================================================

class PreviewSpec(WireModel):
    """Network ingress binding for a declared sandbox port"""

    name: str = Field(..., min_length=1, description="Preview name")

    port: int = Field(..., description="Target port; must be declared on the sandbox")

    public: bool = Field(default=True, description="Public previews never require a token")

    prefix_url: Optional[str] = Field(None, description="Optional URL prefix")


class PreviewRecord(PreviewSpec):
    url: str = Field(default="", description="Resulting preview URL")


class PreviewToken(WireModel):
    value: str = Field(..., description="Token value")

    expires_at: datetime = Field(..., description="Expiry timestamp")


# =============================================================================
# Jobs
# =============================================================================

class JobExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobExecutionStatus.COMPLETED, JobExecutionStatus.FAILED)


class JobExecution(WireModel):
    """One invocation of a batch job"""

    id: str = Field(..., description="Execution id")

    job_name: Optional[str] = Field(None, description="Owning job")

    status: JobExecutionStatus = Field(default=JobExecutionStatus.PENDING)

    tasks: List[Dict[str, Any]] = Field(default_factory=list, description="Task parameters, in order")

    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: Optional[datetime] = Field(None)

    completed_at: Optional[datetime] = Field(None)
