"""
Network previews: public or token-gated ingress to a sandbox port.

The target port must be one the sandbox declared at creation. Private
previews are only reachable with a token; the URL alone is not enough,
which is why ``Preview.requires_token`` and the ``authenticated_url`` /
``auth_headers`` helpers exist. Enforcement itself happens server-side.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from remote_sandbox.errors import InvalidPortError, InvalidRequestError, NotFoundError, ConflictError
from remote_sandbox.types import PreviewRecord, PreviewSpec, PreviewToken

if TYPE_CHECKING:
    from remote_sandbox.sandbox.sandbox import SandboxHandle

logger = logging.getLogger(__name__)

TOKEN_QUERY_PARAM = "preview_token"
TOKEN_HEADER = "X-Preview-Token"


class PreviewTokens:
    """Tokens granting access to a private preview."""

    def __init__(self, preview: "Preview"):
        self._preview = preview

    def _path(self, value: Optional[str] = None) -> str:
        path = self._preview._path("tokens")
        return f"{path}/{value}" if value else path

    def _require_private(self) -> None:
        if self._preview.public:
            raise InvalidRequestError(
                "public",
                True,
                f"{self._preview.label} is public and does not use tokens",
            )

    async def create(
        self,
        expires_at: Optional[datetime] = None,
        ttl_sec: Optional[int] = None,
    ) -> PreviewToken:
        """
        Mint a token.

        Args:
            expires_at: Absolute expiry (timezone-aware)
            ttl_sec: Relative expiry; defaults to preview_token_ttl_sec

        Raises:
            InvalidRequestError: On a public preview or an expiry in the past
        """
        self._require_private()
        now = datetime.now(timezone.utc)
        if expires_at is None:
            ttl = ttl_sec if ttl_sec is not None else self._preview._sandbox.config.preview_token_ttl_sec
            expires_at = now + timedelta(seconds=ttl)
        elif expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            raise InvalidRequestError("expires_at", expires_at, "must be in the future")

        data = await self._preview._api.request(
            "POST",
            self._path(),
            json={"expiresAt": expires_at.isoformat()},
            resource=self._preview.label,
        )
        logger.info(f"Created token for {self._preview.label} expiring {expires_at.isoformat()}")
        return PreviewToken(**data)

    async def list(self) -> List[PreviewToken]:
        self._require_private()
        data = await self._preview._api.request("GET", self._path(), resource=self._preview.label)
        return [PreviewToken(**item) for item in data]

    async def delete(self, value: str) -> None:
        self._require_private()
        await self._preview._api.request("DELETE", self._path(value), resource=self._preview.label)
        logger.info(f"Revoked a token of {self._preview.label}")


class Preview:
    """A preview bound to one declared port of a sandbox."""

    def __init__(self, sandbox: "SandboxHandle", record: PreviewRecord):
        self._sandbox = sandbox
        self._record = record
        self._tokens = PreviewTokens(self)

    def __repr__(self) -> str:
        return f"Preview(name={self.name!r}, port={self.port}, public={self.public})"

    @property
    def _api(self) -> Any:
        return self._sandbox._api

    def _path(self, *parts: str) -> str:
        return self._sandbox.path("previews", self.name, *parts)

    @property
    def label(self) -> str:
        return f"preview '{self.name}' of {self._sandbox.label}"

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def port(self) -> int:
        return self._record.port

    @property
    def public(self) -> bool:
        return self._record.public

    @property
    def url(self) -> str:
        return self._record.url

    @property
    def requires_token(self) -> bool:
        return not self._record.public

    @property
    def tokens(self) -> PreviewTokens:
        return self._tokens

    def authenticated_url(self, token: Optional[PreviewToken] = None) -> str:
        """URL to hand out; private previews get the token as a query parameter."""
        if not self.requires_token:
            return self.url
        if token is None:
            raise InvalidRequestError("token", None, f"{self.label} is private and requires a token")
        scheme, netloc, path, query, fragment = urlsplit(self.url)
        extra = urlencode({TOKEN_QUERY_PARAM: token.value})
        query = f"{query}&{extra}" if query else extra
        return urlunsplit((scheme, netloc, path, query, fragment))

    def auth_headers(self, token: Optional[PreviewToken] = None) -> Dict[str, str]:
        """Headers carrying the token, for clients that cannot alter the URL."""
        if not self.requires_token:
            return {}
        if token is None:
            raise InvalidRequestError("token", None, f"{self.label} is private and requires a token")
        return {TOKEN_HEADER: token.value}

    async def delete(self, strict: bool = False) -> None:
        await self._sandbox.previews.delete(self.name, strict=strict)


class Previews:
    """Previews of one sandbox."""

    def __init__(self, sandbox: "SandboxHandle"):
        self._sandbox = sandbox

    @property
    def _api(self) -> Any:
        return self._sandbox._api

    def _path(self, name: Optional[str] = None) -> str:
        return self._sandbox.path("previews", name) if name else self._sandbox.path("previews")

    def _label(self, name: str) -> str:
        return f"preview '{name}' of {self._sandbox.label}"

    async def create_if_not_exists(self, spec: Optional[PreviewSpec] = None, **options: Any) -> Preview:
        """
        Return the preview named ``spec.name``, creating it if absent.

        Raises:
            InvalidPortError: If ``spec.port`` is not declared on the sandbox
        """
        if spec is None:
            spec = PreviewSpec(**options)

        if spec.port not in self._sandbox.ports:
            raise InvalidPortError(
                spec.port,
                f"not declared on {self._sandbox.label} (declared: {list(self._sandbox.ports)})",
                self._label(spec.name),
            )

        try:
            data = await self._api.request(
                "POST",
                self._path(),
                json=spec.to_wire(),
                resource=self._label(spec.name),
            )
        except ConflictError:
            logger.info(f"{self._label(spec.name)} already exists, reusing it")
            return await self.get(spec.name)

        preview = Preview(self._sandbox, PreviewRecord(**data))
        logger.info(
            f"Created {'public' if preview.public else 'private'} {preview.label} "
            f"on port {preview.port}: {preview.url}"
        )
        return preview

    async def get(self, name: str) -> Preview:
        data = await self._api.request("GET", self._path(name), resource=self._label(name))
        return Preview(self._sandbox, PreviewRecord(**data))

    async def list(self) -> List[Preview]:
        data = await self._api.request("GET", self._path(), resource=f"previews of {self._sandbox.label}")
        return [Preview(self._sandbox, PreviewRecord(**item)) for item in data]

    async def delete(self, name: str, strict: bool = False) -> None:
        """Delete a preview; an absent preview is ignored unless ``strict``."""
        try:
            await self._api.request("DELETE", self._path(name), resource=self._label(name))
        except NotFoundError:
            if strict:
                raise
            logger.warning(f"{self._label(name)} was already gone")
            return
        logger.info(f"Deleted {self._label(name)}")
