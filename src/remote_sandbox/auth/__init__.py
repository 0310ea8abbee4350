"""
Workspace credential resolution.
"""

from remote_sandbox.auth.credentials import (
    API_KEY_VAR,
    WORKSPACE_VAR,
    CliSessionSource,
    ConfigFileSource,
    Credential,
    CredentialResolver,
    CredentialSource,
    DotenvSource,
    EnvironmentSource,
    default_sources,
)

__all__ = [
    "API_KEY_VAR",
    "WORKSPACE_VAR",
    "Credential",
    "CredentialResolver",
    "CredentialSource",
    "CliSessionSource",
    "DotenvSource",
    "EnvironmentSource",
    "ConfigFileSource",
    "default_sources",
]
