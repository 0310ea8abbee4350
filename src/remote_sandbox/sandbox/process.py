"""
Process execution inside a sandbox.

A process moves through ``pending -> running -> completed | failed | killed``.
With ``restart_on_failure`` the proxy relaunches a failed run under the same
name, at most ``max_restarts`` times in total for the handle. Restarts apply
under every wait policy: while waiting for completion, while waiting for
ports, and in a background supervisor once ``exec`` has returned.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, List, Optional, Set, Tuple

from remote_sandbox.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    ProcessExitedError,
    SandboxError,
    SandboxTimeoutError,
)
from remote_sandbox.types import ExecRequest, ProcessLogs, ProcessRecord, ProcessStatus
from remote_sandbox.utils.polling import poll_until

if TYPE_CHECKING:
    from remote_sandbox.sandbox.sandbox import SandboxHandle

logger = logging.getLogger(__name__)

# Fields the proxy handles itself instead of sending to the sandbox
_CLIENT_SIDE_FIELDS = {
    "wait_for_completion",
    "wait_for_ports",
    "restart_on_failure",
    "max_restarts",
}


class ProcessHandle:
    """A command started in a sandbox."""

    def __init__(
        self,
        processes: "Processes",
        record: ProcessRecord,
        request: Optional[ExecRequest] = None,
    ):
        self._processes = processes
        self._record = record
        self.request = request
        self.restart_count = 0
        self.output: Optional[ProcessLogs] = None
        self._supervisor: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"ProcessHandle(name={self.name!r}, status={self.status.value!r})"

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def pid(self) -> Optional[int]:
        return self._record.pid

    @property
    def status(self) -> ProcessStatus:
        return self._record.status

    @property
    def exit_code(self) -> Optional[int]:
        return self._record.exit_code

    @property
    def record(self) -> ProcessRecord:
        return self._record

    @property
    def supervised(self) -> bool:
        """True while a background supervisor is applying the restart policy."""
        return self._supervisor is not None and not self._supervisor.done()

    async def refresh(self) -> "ProcessHandle":
        """Fetch the current status from the sandbox."""
        self._record = await self._processes._get_record(self.name)
        return self

    async def logs(self) -> ProcessLogs:
        self.output = await self._processes.logs(self.name)
        return self.output

    async def kill(self) -> None:
        """Stop supervising and signal the process to terminate."""
        await self.stop_supervising()
        await self._processes.kill(self.name)

    async def stop_supervising(self) -> None:
        """Cancel the background supervisor; the process itself keeps running."""
        if self.supervised:
            self._supervisor.cancel()
            await asyncio.gather(self._supervisor, return_exceptions=True)

    async def wait(self, timeout: Optional[float] = None) -> "ProcessHandle":
        """
        Wait for the process to finish, applying its restart policy.

        A running background supervisor is taken over; the restart count
        carries on from where it left off.

        Raises:
            SandboxTimeoutError: If it is still running after ``timeout``
        """
        await self.stop_supervising()
        return await self._processes._supervise(self, timeout)


class Processes:
    """Process execution handler for one sandbox."""

    def __init__(self, sandbox: "SandboxHandle"):
        self._sandbox = sandbox

    @property
    def _api(self) -> Any:
        return self._sandbox._api

    @property
    def config(self):
        return self._sandbox.config

    def _path(self, name: Optional[str] = None, action: Optional[str] = None) -> str:
        parts = ["process"]
        if name:
            parts.append(name)
        if action:
            parts.append(action)
        return self._sandbox.path(*parts)

    def _label(self, name: str) -> str:
        return f"process '{name}' in {self._sandbox.label}"

    async def _get_record(self, name: str) -> ProcessRecord:
        data = await self._api.request("GET", self._path(name), resource=self._label(name))
        return ProcessRecord(**data)

    async def exec(self, request: Optional[ExecRequest] = None, **options: Any) -> ProcessHandle:
        """
        Run a command in the sandbox.

        Args:
            request: Exec options; keyword options build or override one

        Returns:
            ProcessHandle; carries captured output when wait_for_completion

        Raises:
            ConflictError: If a process with the same name is still running
            SandboxTimeoutError: If the chosen wait exceeds its timeout
            ProcessExitedError: If the process ends before its wait_for_ports
                are listening and no restart is left
            InvalidRequestError: If both wait policies are requested
        """
        if request is None:
            request = ExecRequest(**options)
        elif options:
            request = request.model_copy(update=options)

        if request.wait_for_completion and request.wait_for_ports:
            raise InvalidRequestError(
                "wait_for_ports",
                request.wait_for_ports,
                "cannot be combined with wait_for_completion",
            )

        if request.name:
            await self._ensure_name_free(request.name)

        handle = ProcessHandle(self, await self._launch(request), request)
        logger.info(f"Started {self._label(handle.name)}: {request.command}")

        if request.wait_for_completion:
            await self._supervise(handle, request.timeout)
            return handle

        if request.wait_for_ports:
            await self._wait_for_ports(handle, request.wait_for_ports, request.timeout)
        if request.restart_on_failure and not handle.status.is_terminal:
            handle._supervisor = asyncio.create_task(self._supervise_in_background(handle))
        return handle

    async def _ensure_name_free(self, name: str) -> None:
        try:
            record = await self._get_record(name)
        except NotFoundError:
            return
        if not record.status.is_terminal:
            raise ConflictError(
                resource=self._label(name),
                operation="exec",
                message=f"{self._label(name)} is still {record.status.value}",
            )

    async def _launch(self, request: ExecRequest, name: Optional[str] = None) -> ProcessRecord:
        payload = request.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude=_CLIENT_SIDE_FIELDS,
            mode="json",
        )
        if name:
            payload["name"] = name
        data = await self._api.request(
            "POST",
            self._path(),
            json=payload,
            resource=self._label(name or request.name or request.command),
        )
        return ProcessRecord(**data)

    def _can_restart(self, handle: ProcessHandle) -> bool:
        request = handle.request
        return (
            handle.status == ProcessStatus.FAILED
            and request is not None
            and request.restart_on_failure
            and handle.restart_count < request.max_restarts
        )

    async def _restart(self, handle: ProcessHandle) -> None:
        handle.restart_count += 1
        logger.info(
            f"{self._label(handle.name)} failed with exit code {handle.exit_code}, "
            f"restarting ({handle.restart_count}/{handle.request.max_restarts})"
        )
        handle._record = await self._launch(handle.request, name=handle.name)

    async def _supervise(self, handle: ProcessHandle, timeout: Optional[float] = None) -> ProcessHandle:
        """Wait until terminal, relaunching failed runs while the policy allows."""
        request = handle.request
        if timeout is None:
            timeout = (request.timeout if request else None) or self.config.default_timeout_sec
        deadline = time.monotonic() + timeout
        label = self._label(handle.name)

        while True:
            handle._record = await poll_until(
                lambda: self._get_record(handle.name),
                lambda r: r.status.is_terminal,
                timeout=max(deadline - time.monotonic(), 0),
                interval=self.config.poll_interval_sec,
                what=f"{label} to finish",
                resource=label,
            )
            if not self._can_restart(handle):
                break
            await self._restart(handle)

        if handle.status == ProcessStatus.FAILED and request is not None and request.restart_on_failure:
            logger.warning(f"{label} failed after {handle.restart_count} restarts")

        await handle.logs()
        return handle

    async def _supervise_in_background(self, handle: ProcessHandle) -> None:
        label = self._label(handle.name)
        try:
            await self._supervise(handle)
        except SandboxTimeoutError:
            logger.debug(f"Stopped supervising {label}: still running at the timeout")
        except SandboxError as e:
            logger.warning(f"Stopped supervising {label}: {e}")

    async def _wait_for_ports(
        self,
        handle: ProcessHandle,
        ports: List[int],
        timeout: Optional[float] = None,
    ) -> ProcessHandle:
        wanted = set(ports)
        label = self._label(handle.name)
        if timeout is None:
            timeout = self.config.default_timeout_sec
        deadline = time.monotonic() + timeout

        async def fetch() -> Tuple[ProcessRecord, Set[int]]:
            record = await self._get_record(handle.name)
            if record.status.is_terminal:
                return record, set()
            data = await self._api.request("GET", self._path(handle.name, "ports"), resource=label)
            return record, set(data.get("ports", []))

        while True:
            record, listening = await poll_until(
                fetch,
                lambda r: r[0].status.is_terminal or wanted <= r[1],
                timeout=max(deadline - time.monotonic(), 0),
                interval=self.config.poll_interval_sec,
                what=f"{label} to listen on {sorted(wanted)}",
                resource=label,
            )
            handle._record = record
            if not record.status.is_terminal:
                logger.info(f"{label} is listening on {sorted(wanted)}")
                return handle
            if not self._can_restart(handle):
                break
            await self._restart(handle)

        raise ProcessExitedError(
            resource=label,
            status=record.status.value,
            missing_ports=sorted(wanted - listening),
            exit_code=record.exit_code,
            restart_count=handle.restart_count,
        )

    async def get(self, name: str) -> ProcessHandle:
        """
        Raises:
            NotFoundError: If no process of that name exists
        """
        return ProcessHandle(self, await self._get_record(name))

    async def list(self) -> List[ProcessHandle]:
        data = await self._api.request("GET", self._path(), resource=f"processes in {self._sandbox.label}")
        return [ProcessHandle(self, ProcessRecord(**item)) for item in data]

    async def logs(self, name: str) -> ProcessLogs:
        data = await self._api.request("GET", self._path(name, "logs"), resource=self._label(name))
        return ProcessLogs(**data)

    async def kill(self, name: str) -> None:
        """
        Signal a process to terminate without waiting for it to stop.

        Raises:
            NotFoundError: If no process of that name exists
        """
        await self._api.request("DELETE", self._path(name, "kill"), resource=self._label(name))
        logger.info(f"Sent kill to {self._label(name)}")
