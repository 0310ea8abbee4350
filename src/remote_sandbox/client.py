"""
Entry point of the remote-sandbox client.

The workspace credential is resolved once, when the client is built, and
shared by reference with everything the client hands out.
"""

import logging
from typing import Any, Optional

from remote_sandbox.api.client import APIClient
from remote_sandbox.auth.credentials import Credential, CredentialResolver
from remote_sandbox.config import SandboxConfig
from remote_sandbox.jobs.executions import JobExecutions
from remote_sandbox.sandbox.sandbox import Sandboxes
from remote_sandbox.storage.volumes import Volumes
from remote_sandbox.utils.logger import configure_logging

logger = logging.getLogger(__name__)


class SandboxClient:
    """
    Client for one workspace of the sandbox platform.

    Usage:
        >>> async with SandboxClient() as client:
        ...     sandbox = await client.sandboxes.get("my-sandbox")
        ...     execution_id = await client.jobs("nightly").create_execution([{"day": 1}])
    """

    def __init__(
        self,
        credential: Optional[Credential] = None,
        config: Optional[SandboxConfig] = None,
        resolver: Optional[CredentialResolver] = None,
        api: Optional[Any] = None,
    ):
        """
        Args:
            credential: Explicit credential; resolved from local state if omitted
            config: Client configuration (default: SandboxConfig.load())
            resolver: Resolver used when no credential is given
            api: Transport to use instead of an APIClient (tests, custom sessions)

        Raises:
            AuthenticationError: If no credential is given and none resolves
        """
        self.config = config or SandboxConfig.load()
        if self.config.log_level:
            configure_logging(self.config.log_level)

        if credential is None:
            resolver = resolver or CredentialResolver(config=self.config)
            credential = resolver.resolve()
        self.credential = credential

        self._api = api or APIClient(
            self.config.api_endpoint,
            credential,
            timeout=self.config.request_timeout_sec,
        )
        self.sandboxes = Sandboxes(self._api, self.config)
        self.volumes = Volumes(self._api, self.config)

        logger.info(f"SandboxClient ready for workspace '{credential.workspace}'")

    def jobs(self, name: str) -> JobExecutions:
        """Execution controller for the job ``name``."""
        return JobExecutions(name, self._api, self.config)

    async def close(self) -> None:
        await self._api.close()

    async def __aenter__(self) -> "SandboxClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
