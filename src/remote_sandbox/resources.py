"""
Named workspace resources (sandboxes, volumes).

A resource is keyed by its name. ``create_if_not_exists`` treats the name as
the identity: if a resource of that name already exists it is returned as-is,
without comparing its configuration to the requested spec.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from remote_sandbox.config import SandboxConfig
from remote_sandbox.errors import ConflictError, NotFoundError, ProvisioningError
from remote_sandbox.types import WireModel
from remote_sandbox.utils.polling import poll_until

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=WireModel)
H = TypeVar("H")

READY = "ready"
FAILED_STATES = ("failed", "terminated")


class ResourceCollection(Generic[R, H]):
    """CRUD over one kind of named resource."""

    kind = "resource"
    base_path = ""
    record_type: Type[R]

    def __init__(self, api: Any, config: SandboxConfig):
        self._api = api
        self.config = config

    def _label(self, name: str) -> str:
        return f"{self.kind} '{name}'"

    def _path(self, name: Optional[str] = None) -> str:
        return self.base_path if name is None else f"{self.base_path}/{name}"

    def _handle(self, record: R) -> H:
        raise NotImplementedError

    def _prepare(self, spec: Any) -> Any:
        """Validate and fill defaults before the spec is sent."""
        return spec

    async def _get_record(self, name: str) -> R:
        data = await self._api.request("GET", self._path(name), resource=self._label(name))
        return self.record_type(**data)

    async def create_if_not_exists(self, spec: Any) -> H:
        """
        Return the resource named ``spec.name``, creating it if absent.

        A newly created resource is awaited until it reports ready.

        Raises:
            ProvisioningError: If the remote create ends in a failed state
            SandboxTimeoutError: If it is not ready within provisioning_timeout_sec
        """
        spec = self._prepare(spec)
        label = self._label(spec.name)

        try:
            data = await self._api.request("POST", self._path(), json=spec.to_wire(), resource=label)
        except ConflictError:
            logger.info(f"{label} already exists, reusing it")
            return await self.get(spec.name)

        logger.info(f"Created {label}")
        record = self.record_type(**data)
        if record.status != READY:
            record = await self._wait_ready(spec.name)
        return self._handle(record)

    async def _wait_ready(self, name: str) -> R:
        label = self._label(name)
        record = await poll_until(
            lambda: self._get_record(name),
            lambda r: r.status == READY or r.status in FAILED_STATES,
            timeout=self.config.provisioning_timeout_sec,
            interval=self.config.poll_interval_sec,
            what=f"{label} to become ready",
            resource=label,
        )
        if record.status in FAILED_STATES:
            raise ProvisioningError(label, record.status, getattr(record, "reason", None))
        logger.info(f"{label} is ready")
        return record

    async def get(self, name: str) -> H:
        """
        Raises:
            NotFoundError: If no resource of that name exists
        """
        return self._handle(await self._get_record(name))

    async def list(self, labels: Optional[Dict[str, str]] = None) -> List[H]:
        params = {}
        if labels:
            params["labels"] = [f"{k}={v}" for k, v in sorted(labels.items())]
        data = await self._api.request("GET", self._path(), params=params, resource=f"{self.kind} list")
        return [self._handle(self.record_type(**item)) for item in data]

    async def delete(self, target: Union[str, Any], strict: bool = False) -> None:
        """
        Delete a resource by name or handle.

        Deleting an absent resource succeeds unless ``strict`` is set.

        Raises:
            NotFoundError: Only when strict and the resource is absent
        """
        name = target if isinstance(target, str) else target.name
        label = self._label(name)
        try:
            await self._api.request("DELETE", self._path(name), resource=label)
        except NotFoundError:
            if strict:
                raise
            logger.warning(f"{label} was already gone")
            return
        logger.info(f"Deleted {label}")
