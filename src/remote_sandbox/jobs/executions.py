"""
Batch job executions.

An execution runs a list of independent tasks in parallel on the server;
this controller only submits, inspects, waits on and cancels executions.

Example usage:
    jobs = client.jobs("resize-images")
    execution_id = await jobs.create_execution([{"image": "a.png"}, {"image": "b.png"}])
    execution = await jobs.wait_for_execution(execution_id, max_wait=600, poll_interval=5)
    print(execution.status)
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from remote_sandbox.config import SandboxConfig
from remote_sandbox.errors import APIError, InvalidRequestError, NotFoundError
from remote_sandbox.types import JobExecution, JobExecutionStatus
from remote_sandbox.utils.polling import poll_until

logger = logging.getLogger(__name__)

__all__ = ["JobExecutions"]


class JobExecutions:
    """Executions of one named job."""

    def __init__(self, job_name: str, api: Any, config: SandboxConfig):
        self.job_name = job_name
        self._api = api
        self.config = config

    def _path(self, execution_id: Optional[str] = None) -> str:
        path = f"/jobs/{self.job_name}/executions"
        return f"{path}/{execution_id}" if execution_id else path

    def _label(self, execution_id: str) -> str:
        return f"execution '{execution_id}' of job '{self.job_name}'"

    async def create_execution(self, tasks: Sequence[Mapping[str, Any]]) -> str:
        """
        Submit an execution with one task per parameter record.

        Returns:
            The execution id

        Raises:
            APIError: If the response carries no execution id
        """
        if not tasks:
            raise InvalidRequestError("tasks", tasks, "at least one task is required")

        payload = {"tasks": [dict(task) for task in tasks]}
        data = await self._api.request("POST", self._path(), json=payload, resource=f"job '{self.job_name}'")
        execution_id = data.get("executionId") or data.get("id")
        if not execution_id:
            raise APIError(
                message=f"Submitting an execution of job '{self.job_name}' returned no execution id",
                details={"operation": "create_execution", "resource": f"job '{self.job_name}'"},
            )
        logger.info(f"Submitted {self._label(execution_id)} with {len(tasks)} tasks")
        return execution_id

    async def get_execution(self, execution_id: str) -> JobExecution:
        """
        Raises:
            NotFoundError: If the execution does not exist
        """
        data = await self._api.request("GET", self._path(execution_id), resource=self._label(execution_id))
        data.setdefault("jobName", self.job_name)
        return JobExecution(**data)

    async def get_execution_status(self, execution_id: str) -> JobExecutionStatus:
        return (await self.get_execution(execution_id)).status

    async def wait_for_execution(
        self,
        execution_id: str,
        max_wait: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> JobExecution:
        """
        Poll until the execution completes or fails.

        Args:
            execution_id: Execution identifier
            max_wait: Maximum time to wait (default: default_timeout_sec)
            poll_interval: Seconds between polls (default: poll_interval_sec)

        Returns:
            The execution in its terminal state

        Raises:
            SandboxTimeoutError: If it is still pending/running after max_wait
            InvalidRequestError: If poll_interval is not positive
        """
        if max_wait is None:
            max_wait = self.config.default_timeout_sec
        if poll_interval is None:
            poll_interval = self.config.poll_interval_sec
        if poll_interval <= 0:
            raise InvalidRequestError("poll_interval", poll_interval, "must be positive")

        label = self._label(execution_id)
        execution = await poll_until(
            lambda: self.get_execution(execution_id),
            lambda e: e.status.is_terminal,
            timeout=max_wait,
            interval=poll_interval,
            what=f"{label} to finish",
            resource=label,
        )
        logger.info(f"{label} finished: {execution.status.value}")
        return execution

    async def list_executions(self) -> List[JobExecution]:
        data = await self._api.request("GET", self._path(), resource=f"job '{self.job_name}'")
        return [JobExecution(**{"jobName": self.job_name, **item}) for item in data]

    async def delete_execution(self, execution_id: str, strict: bool = False) -> None:
        """
        Cancel a running execution and delete its record.

        An absent execution is ignored unless ``strict``.
        """
        label = self._label(execution_id)
        try:
            await self._api.request("DELETE", self._path(execution_id), resource=label)
        except NotFoundError:
            if strict:
                raise
            logger.warning(f"{label} was already gone")
            return
        logger.info(f"Cancelled {label}")

    cancel_execution = delete_execution
