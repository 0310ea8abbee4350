import os
from typing import Optional

from pydantic import BaseModel, Field


class SandboxConfig(BaseModel):
    """
    Runtime configuration for the remote-sandbox client.

    This configuration is loaded from:
    1. Environment variables (SANDBOX_*)
    2. Configuration file (if provided)
    3. Default values (hardcoded)

    Priority: Environment variables > Config file > Defaults
    """

    # API configuration
    api_endpoint: str = Field(
        default="https://api.sandbox.dev/v0",
        description="Control plane API endpoint"
    )

    request_timeout_sec: int = Field(
        default=30,
        ge=1,
        le=3600,
        description="Timeout for a single HTTP request (seconds)"
    )

    # Waiting
    poll_interval_sec: float = Field(
        default=0.5,
        gt=0,
        le=60,
        description="Interval between status polls (seconds)"
    )

    default_timeout_sec: int = Field(
        default=3600,
        ge=1,
        le=86400,
        description="Default bound for process completion/port waits (seconds)"
    )

    provisioning_timeout_sec: int = Field(
        default=300,
        ge=1,
        le=3600,
        description="Bound for waiting on a created sandbox or volume to become ready"
    )

    # Resource defaults
    default_region: Optional[str] = Field(
        default=None,
        description="Region used when a spec does not name one"
    )

    default_memory_mb: int = Field(
        default=4096,
        ge=512,
        le=65536,
        description="Sandbox memory when a spec does not set one (MB)"
    )

    preview_token_ttl_sec: int = Field(
        default=3600,
        ge=1,
        le=30 * 86400,
        description="Lifetime of preview tokens minted without an explicit expiry"
    )

    # Credential sources
    session_file: str = Field(
        default="~/.sandbox/config.yaml",
        description="CLI login session file"
    )

    env_file: str = Field(
        default=".env",
        description="Dotenv file scanned for SANDBOX_WORKSPACE / SANDBOX_API_KEY"
    )

    config_file: str = Field(
        default="sandbox.yaml",
        description="Project config file holding workspace / api_key"
    )

    workspace: Optional[str] = Field(default=None, description="Workspace id")

    api_key: Optional[str] = Field(default=None, description="Workspace API key")

    # Logging
    log_level: Optional[str] = Field(
        default=None,
        description="Log level applied by SandboxClient (DEBUG/INFO/WARNING/ERROR)"
    )

    @classmethod
    def from_env(cls) -> "SandboxConfig":
        """
        Load configuration from environment variables.

        Environment variables (SANDBOX_*) override defaults:

        - SANDBOX_API_ENDPOINT: Control plane endpoint
        - SANDBOX_REQUEST_TIMEOUT: Per-request timeout in seconds
        - SANDBOX_POLL_INTERVAL: Poll interval in seconds
        - SANDBOX_TIMEOUT: Default wait bound in seconds
        - SANDBOX_PROVISIONING_TIMEOUT: Provisioning wait bound in seconds
        - SANDBOX_REGION: Default region
        - SANDBOX_MEMORY_MB: Default sandbox memory
        - SANDBOX_CONFIG_FILE: Project config file path
        - SANDBOX_LOG_LEVEL: Log level
        """
        kwargs = {}

        if "SANDBOX_API_ENDPOINT" in os.environ:
            kwargs["api_endpoint"] = os.environ["SANDBOX_API_ENDPOINT"]
        if "SANDBOX_REQUEST_TIMEOUT" in os.environ:
            kwargs["request_timeout_sec"] = int(os.environ["SANDBOX_REQUEST_TIMEOUT"])
        if "SANDBOX_POLL_INTERVAL" in os.environ:
            kwargs["poll_interval_sec"] = float(os.environ["SANDBOX_POLL_INTERVAL"])

        # Waits
        if "SANDBOX_TIMEOUT" in os.environ:
            kwargs["default_timeout_sec"] = int(os.environ["SANDBOX_TIMEOUT"])
        if "SANDBOX_PROVISIONING_TIMEOUT" in os.environ:
            kwargs["provisioning_timeout_sec"] = int(os.environ["SANDBOX_PROVISIONING_TIMEOUT"])

        # Resource defaults
        if "SANDBOX_REGION" in os.environ:
            kwargs["default_region"] = os.environ["SANDBOX_REGION"]
        if "SANDBOX_MEMORY_MB" in os.environ:
            kwargs["default_memory_mb"] = int(os.environ["SANDBOX_MEMORY_MB"])

        if "SANDBOX_CONFIG_FILE" in os.environ:
            kwargs["config_file"] = os.environ["SANDBOX_CONFIG_FILE"]
        if "SANDBOX_LOG_LEVEL" in os.environ:
            kwargs["log_level"] = os.environ["SANDBOX_LOG_LEVEL"]

        return cls(**kwargs)

    @classmethod
    def from_file(cls, config_path: str) -> "SandboxConfig":
        """
        Load configuration from a YAML or JSON file.

        Supported formats: .yaml, .yml, .json
        """
        import yaml

        with open(config_path, "r") as f:
            if config_path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(f)
            elif config_path.endswith(".json"):
                import json
                data = json.load(f)
            else:
                raise ValueError(f"Unsupported config format: {config_path}")

        return cls(**(data or {}))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "SandboxConfig":
        """
        Load configuration honouring the documented priority.

        Values from the config file (if it exists) are overlaid with any
        SANDBOX_* environment variables.
        """
        path = config_path or os.environ.get("SANDBOX_CONFIG_FILE")
        base = cls.from_file(path) if path and os.path.exists(path) else cls()
        overrides = cls.from_env().model_dump(exclude_unset=True)
        return base.model_copy(update=overrides)
