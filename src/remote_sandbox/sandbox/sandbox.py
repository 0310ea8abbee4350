"""
Sandbox resource handle.

Usage:
    >>> from remote_sandbox import SandboxClient, SandboxSpec, Port
    >>>
    >>> async with SandboxClient() as client:
    ...     sandbox = await client.sandboxes.create_if_not_exists(
    ...         SandboxSpec(name="my-sandbox", ports=[Port(target=3000)])
    ...     )
    ...     await sandbox.fs.write("/app/hello.txt", "hi")
    ...     proc = await sandbox.process.exec(command="cat /app/hello.txt", wait_for_completion=True)
    ...     print(proc.output.stdout)
"""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from remote_sandbox.config import SandboxConfig
from remote_sandbox.errors import InvalidPortError
from remote_sandbox.resources import ResourceCollection
from remote_sandbox.types import RESERVED_PORTS, Port, SandboxRecord, SandboxSpec

from remote_sandbox.sandbox.files import FileSystem
from remote_sandbox.sandbox.preview import Previews
from remote_sandbox.sandbox.process import Processes

logger = logging.getLogger(__name__)


def validate_ports(ports: Iterable[Port], resource: Optional[str] = None) -> None:
    """
    Reject reserved, out-of-range and duplicate ports.

    Raises:
        InvalidPortError: On the first offending port
    """
    seen = set()
    for port in ports:
        if not 1 <= port.target <= 65535:
            raise InvalidPortError(port.target, "must be between 1 and 65535", resource)
        if port.target in RESERVED_PORTS:
            raise InvalidPortError(
                port.target,
                f"ports {sorted(RESERVED_PORTS)} are reserved by the platform",
                resource,
            )
        if port.target in seen:
            raise InvalidPortError(port.target, "declared more than once", resource)
        seen.add(port.target)


class SandboxHandle:
    """
    Reference to a remote sandbox bound to its name.

    The declared port set is fixed when the sandbox is created; this handle
    exposes it read-only.
    """

    def __init__(self, record: SandboxRecord, api: Any, config: SandboxConfig):
        self._record = record
        self._api = api
        self.config = config
        self._process = Processes(self)
        self._fs = FileSystem(self)
        self._previews = Previews(self)

    def __repr__(self) -> str:
        return f"SandboxHandle(name={self.name!r}, status={self.status!r})"

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def label(self) -> str:
        return f"sandbox '{self.name}'"

    @property
    def record(self) -> SandboxRecord:
        return self._record

    @property
    def status(self) -> str:
        return self._record.status

    @property
    def url(self) -> Optional[str]:
        return self._record.url

    @property
    def ports(self) -> Tuple[int, ...]:
        return tuple(p.target for p in self._record.ports)

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self._record.labels)

    @property
    def process(self) -> Processes:
        """Process execution in this sandbox."""
        return self._process

    @property
    def fs(self) -> FileSystem:
        """File operations in this sandbox."""
        return self._fs

    @property
    def previews(self) -> Previews:
        """Network previews of this sandbox's ports."""
        return self._previews

    def path(self, *parts: str) -> str:
        """API path under this sandbox."""
        return "/".join([f"/sandboxes/{self.name}", *parts])

    async def refresh(self) -> "SandboxHandle":
        data = await self._api.request("GET", self.path(), resource=self.label)
        self._record = SandboxRecord(**data)
        return self

    async def delete(self, strict: bool = False) -> None:
        await Sandboxes(self._api, self.config).delete(self.name, strict=strict)

    async def __aenter__(self) -> "SandboxHandle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.delete()


class Sandboxes(ResourceCollection[SandboxRecord, SandboxHandle]):
    """Sandboxes of the workspace."""

    kind = "sandbox"
    base_path = "/sandboxes"
    record_type = SandboxRecord

    def _handle(self, record: SandboxRecord) -> SandboxHandle:
        return SandboxHandle(record, self._api, self.config)

    def _prepare(self, spec: SandboxSpec) -> SandboxSpec:
        validate_ports(spec.ports, self._label(spec.name))
        updates = {}
        if spec.memory is None:
            updates["memory"] = self.config.default_memory_mb
        if spec.region is None and self.config.default_region:
            updates["region"] = self.config.default_region
        return spec.model_copy(update=updates) if updates else spec

    async def create_if_not_exists(self, spec: Optional[SandboxSpec] = None, **options: Any) -> SandboxHandle:
        """
        Return the sandbox named ``spec.name``, creating it if absent.

        An existing sandbox is returned unconditionally, even when its
        configuration differs from ``spec``.

        Raises:
            InvalidPortError: If a declared port is reserved or invalid
            ProvisioningError: If the sandbox fails to start
            SandboxTimeoutError: If it is not ready within provisioning_timeout_sec
        """
        if spec is None:
            spec = SandboxSpec(**options)
        return await super().create_if_not_exists(spec)
