"""
Workspace credential resolution.

Credentials are looked up in a fixed priority order and the first source
that yields both a workspace id and an API key wins:

1. CLI login session (``~/.sandbox/config.yaml``)
2. ``.env`` file in the working directory
3. Process environment variables
4. Project config file (``sandbox.yaml``)

Sources only read local state; nothing here ever writes credentials.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field

from remote_sandbox.config import SandboxConfig
from remote_sandbox.errors import AuthenticationError

logger = logging.getLogger(__name__)

WORKSPACE_VAR = "SANDBOX_WORKSPACE"
API_KEY_VAR = "SANDBOX_API_KEY"


class Credential(BaseModel):
    """Resolved workspace identity"""

    model_config = ConfigDict(frozen=True)

    workspace: str = Field(..., min_length=1, description="Workspace id")

    api_key: str = Field(..., min_length=1, repr=False, description="Workspace API key")

    source: str = Field(default="explicit", description="Name of the source that produced it")

    rank: int = Field(default=0, ge=0, description="Priority rank of the source (0 = explicit)")


Pair = Tuple[Optional[str], Optional[str]]


class CredentialSource:
    """A place credentials may be read from"""

    name = "source"

    def read(self) -> Pair:
        """Return ``(workspace, api_key)``; either may be None."""
        raise NotImplementedError


class CliSessionSource(CredentialSource):
    """Workspace selected by the CLI login session."""

    name = "cli-session"

    def __init__(self, path: str = "~/.sandbox/config.yaml"):
        self.path = Path(path).expanduser()

    def read(self) -> Pair:
        if not self.path.is_file():
            return None, None

        with open(self.path, "r") as f:
            data = yaml.safe_load(f) or {}

        workspace = (data.get("context") or {}).get("workspace")
        if not workspace:
            return None, None

        for entry in data.get("workspaces") or []:
            if entry.get("name") == workspace:
                credentials = entry.get("credentials") or {}
                return workspace, credentials.get("apiKey") or credentials.get("api_key")
        return workspace, None


class DotenvSource(CredentialSource):
    name = "dotenv"

    def __init__(self, path: str = ".env"):
        self.path = Path(path)

    def read(self) -> Pair:
        if not self.path.is_file():
            return None, None
        values = dotenv_values(self.path)
        return values.get(WORKSPACE_VAR), values.get(API_KEY_VAR)


class EnvironmentSource(CredentialSource):
    name = "environment"

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    def read(self) -> Pair:
        environ = os.environ if self._environ is None else self._environ
        return environ.get(WORKSPACE_VAR), environ.get(API_KEY_VAR)


class ConfigFileSource(CredentialSource):
    """``workspace`` and ``api_key`` keys of the project config file."""

    name = "config-file"

    def __init__(self, path: str = "sandbox.yaml"):
        self.path = path

    def read(self) -> Pair:
        if not os.path.isfile(self.path):
            return None, None
        config = SandboxConfig.from_file(self.path)
        return config.workspace, config.api_key


def default_sources(config: Optional[SandboxConfig] = None) -> List[CredentialSource]:
    """Sources in priority order, with paths taken from ``config``."""
    config = config or SandboxConfig()
    return [
        CliSessionSource(config.session_file),
        DotenvSource(config.env_file),
        EnvironmentSource(),
        ConfigFileSource(config.config_file),
    ]


class CredentialResolver:
    """
    Resolve the workspace credential once and hand it out by reference.

    Usage:
        >>> resolver = CredentialResolver()
        >>> credential = resolver.resolve()
        >>> credential.source
        'environment'
    """

    def __init__(
        self,
        sources: Optional[Sequence[CredentialSource]] = None,
        config: Optional[SandboxConfig] = None,
    ):
        self.sources = list(sources) if sources is not None else default_sources(config)
        self._cached: Optional[Credential] = None

    def resolve(self) -> Credential:
        """
        Return the first fully populated credential.

        Raises:
            AuthenticationError: If no source yields both workspace and API key
        """
        if self._cached is not None:
            return self._cached

        tried: Dict[str, str] = {}
        for rank, source in enumerate(self.sources, start=1):
            workspace, api_key = source.read()
            if workspace and api_key:
                self._cached = Credential(
                    workspace=workspace,
                    api_key=api_key,
                    source=source.name,
                    rank=rank,
                )
                logger.info(f"Using workspace '{workspace}' from {source.name}")
                return self._cached

            if workspace or api_key:
                tried[source.name] = "incomplete"
                logger.debug(f"Skipping {source.name}: workspace or API key missing")
            else:
                tried[source.name] = "empty"

        raise AuthenticationError(
            message=(
                "No workspace credential found; log in with the CLI or set "
                f"{WORKSPACE_VAR} and {API_KEY_VAR} (tried: {', '.join(tried) or 'no sources'})"
            ),
            details={"sources": tried},
        )

    def invalidate(self) -> None:
        """Forget the cached credential so the next resolve() re-reads local state."""
        self._cached = None
