"""
Persistent volumes.

Volumes live independently of sandboxes. They are attached only when a
sandbox is created, through ``SandboxSpec.volumes``:

    >>> volume = await client.volumes.create_if_not_exists(VolumeSpec(name="cache", size=2048))
    >>> sandbox = await client.sandboxes.create_if_not_exists(
    ...     SandboxSpec(
    ...         name="builder",
    ...         volumes=[VolumeAttachment(name="cache", mount_path="/cache")],
    ...     )
    ... )
"""

import logging
from typing import Any, Dict, Optional

from remote_sandbox.config import SandboxConfig
from remote_sandbox.resources import ResourceCollection
from remote_sandbox.types import VolumeAttachment, VolumeRecord, VolumeSpec

logger = logging.getLogger(__name__)


class VolumeHandle:
    """Reference to a remote volume bound to its name."""

    def __init__(self, record: VolumeRecord, api: Any, config: SandboxConfig):
        self._record = record
        self._api = api
        self.config = config

    def __repr__(self) -> str:
        return f"VolumeHandle(name={self.name!r}, size={self.size}, status={self.status!r})"

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def size(self) -> int:
        return self._record.size

    @property
    def region(self) -> Optional[str]:
        return self._record.region

    @property
    def status(self) -> str:
        return self._record.status

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self._record.labels)

    @property
    def record(self) -> VolumeRecord:
        return self._record

    def attachment(self, mount_path: str, read_only: bool = False) -> VolumeAttachment:
        """Attachment entry for a new sandbox's spec."""
        return VolumeAttachment(name=self.name, mount_path=mount_path, read_only=read_only)

    async def refresh(self) -> "VolumeHandle":
        data = await self._api.request("GET", f"/volumes/{self.name}", resource=f"volume '{self.name}'")
        self._record = VolumeRecord(**data)
        return self

    async def delete(self, strict: bool = False) -> None:
        await Volumes(self._api, self.config).delete(self.name, strict=strict)


class Volumes(ResourceCollection[VolumeRecord, VolumeHandle]):
    """Volumes of the workspace."""

    kind = "volume"
    base_path = "/volumes"
    record_type = VolumeRecord

    def _handle(self, record: VolumeRecord) -> VolumeHandle:
        return VolumeHandle(record, self._api, self.config)

    def _prepare(self, spec: VolumeSpec) -> VolumeSpec:
        if spec.region is None and self.config.default_region:
            return spec.model_copy(update={"region": self.config.default_region})
        return spec

    async def create_if_not_exists(self, spec: Optional[VolumeSpec] = None, **options: Any) -> VolumeHandle:
        """
        Return the volume named ``spec.name``, creating it if absent.

        An existing volume is returned as-is, whatever its size or region.
        """
        if spec is None:
            spec = VolumeSpec(**options)
        return await super().create_if_not_exists(spec)
