"""
File operations inside a sandbox.

All paths are absolute paths in the sandbox's file tree.
"""

import base64
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Sequence, Union
from urllib.parse import quote

from remote_sandbox.errors import InvalidRequestError, NotFoundError
from remote_sandbox.types import Directory, FileEvent, FindMatch, GrepMatch
from remote_sandbox.sandbox.watch import WatchSubscription

if TYPE_CHECKING:
    from remote_sandbox.sandbox.sandbox import SandboxHandle

logger = logging.getLogger(__name__)

EventHandler = Callable[[FileEvent], Union[None, Awaitable[None]]]


class FileSystem:
    """File operations handler for one sandbox."""

    def __init__(self, sandbox: "SandboxHandle"):
        self._sandbox = sandbox

    @property
    def _api(self) -> Any:
        return self._sandbox._api

    def _path(self, endpoint: str, path: str) -> str:
        if not path.startswith("/"):
            raise InvalidRequestError("path", path, "must be an absolute path")
        return self._sandbox.path(endpoint) + quote(path)

    def _label(self, path: str) -> str:
        return f"path '{path}' in {self._sandbox.label}"

    async def read(self, path: str) -> str:
        """Read a text file."""
        data = await self._api.request("GET", self._path("filesystem", path), resource=self._label(path))
        if "content" not in data:
            raise InvalidRequestError("path", path, "is a directory")
        return data["content"]

    async def read_binary(self, path: str) -> bytes:
        """Read a file as raw bytes."""
        data = await self._api.request(
            "GET",
            self._path("filesystem", path),
            params={"encoding": "base64"},
            resource=self._label(path),
        )
        if "content" not in data:
            raise InvalidRequestError("path", path, "is a directory")
        return base64.b64decode(data["content"])

    async def write(self, path: str, content: str) -> str:
        """
        Write a text file, creating parent directories as needed.

        Returns:
            The path written
        """
        await self._api.request(
            "PUT",
            self._path("filesystem", path),
            json={"content": content},
            resource=self._label(path),
        )
        logger.debug(f"Wrote {self._label(path)}")
        return path

    async def write_binary(self, path: str, data: bytes) -> str:
        await self._api.request(
            "PUT",
            self._path("filesystem", path),
            json={"content": base64.b64encode(data).decode("ascii"), "encoding": "base64"},
            resource=self._label(path),
        )
        logger.debug(f"Wrote {len(data)} bytes to {self._label(path)}")
        return path

    async def mkdir(self, path: str) -> str:
        """Create a directory (and parents)."""
        await self._api.request(
            "PUT",
            self._path("filesystem", path),
            json={"isDirectory": True},
            resource=self._label(path),
        )
        logger.debug(f"Created directory {self._label(path)}")
        return path

    async def ls(self, path: str) -> Directory:
        """
        List a directory.

        Returns:
            Directory with ordered subdirectory and file entries
        """
        data = await self._api.request("GET", self._path("filesystem", path), resource=self._label(path))
        if "content" in data:
            raise InvalidRequestError("path", path, "is a file")
        data.setdefault("path", path)
        return Directory(**data)

    async def rm(self, path: str, recursive: bool = False) -> None:
        await self._api.request(
            "DELETE",
            self._path("filesystem", path),
            params={"recursive": recursive},
            resource=self._label(path),
        )
        logger.debug(f"Removed {self._label(path)}")

    async def exists(self, path: str) -> bool:
        try:
            await self._api.request(
                "GET",
                self._path("filesystem", path),
                params={"stat": True},
                resource=self._label(path),
            )
        except NotFoundError:
            return False
        return True

    async def grep(
        self,
        pattern: str,
        path: str = "/",
        case_sensitive: bool = True,
        context_lines: int = 0,
        include: Optional[str] = None,
        exclude_dirs: Optional[Sequence[str]] = None,
        max_results: int = 100,
    ) -> List[GrepMatch]:
        """
        Search file contents recursively.

        Args:
            pattern: Text or regular expression to look for
            path: Directory to search
            case_sensitive: Match case exactly
            context_lines: Lines of context returned around each match
            include: Glob restricting which files are searched, e.g. "*.py"
            exclude_dirs: Directory names skipped entirely
            max_results: Upper bound on returned matches

        Returns:
            At most ``max_results`` matches
        """
        if max_results < 1:
            raise InvalidRequestError("max_results", max_results, "must be at least 1")
        if context_lines < 0:
            raise InvalidRequestError("context_lines", context_lines, "must not be negative")

        data = await self._api.request(
            "GET",
            self._path("filesystem-search", path),
            params={
                "pattern": pattern,
                "caseSensitive": case_sensitive,
                "contextLines": context_lines,
                "include": include,
                "excludeDirs": list(exclude_dirs) if exclude_dirs else None,
                "maxResults": max_results,
            },
            resource=self._label(path),
        )
        matches = [GrepMatch(**m) for m in data.get("matches", [])]
        return matches[:max_results]

    async def find(
        self,
        path: str,
        pattern: str = "*",
        type: Optional[str] = None,
        max_results: int = 1000,
    ) -> List[FindMatch]:
        """
        Find entries by name glob, optionally only files or only directories.

        Args:
            path: Directory to search
            pattern: Name glob, e.g. "*.json"
            type: "file", "directory", or None for both
            max_results: Upper bound on returned entries
        """
        if type not in (None, "file", "directory"):
            raise InvalidRequestError("type", type, "must be 'file' or 'directory'")
        if max_results < 1:
            raise InvalidRequestError("max_results", max_results, "must be at least 1")

        data = await self._api.request(
            "GET",
            self._path("filesystem-find", path),
            params={"patterns": pattern, "type": type, "maxResults": max_results},
            resource=self._label(path),
        )
        matches = [FindMatch(**m) for m in data.get("matches", [])]
        if type:
            matches = [m for m in matches if m.type == type]
        return matches[:max_results]

    async def watch(
        self,
        path: str,
        handler: EventHandler,
        with_content: bool = False,
        ignore: Optional[Sequence[str]] = None,
    ) -> WatchSubscription:
        """
        Subscribe to changes under ``path``.

        ``handler`` (plain function or coroutine function) is called once per
        event from a background dispatch task; this call returns immediately.

        Args:
            path: Directory to watch (recursively)
            handler: Called with each FileEvent
            with_content: Attach file content to created/modified events
            ignore: Names to ignore, e.g. ["node_modules", ".git"]

        Returns:
            Running WatchSubscription; call close() to stop it
        """
        events = self._api.stream(
            "GET",
            self._path("watch/filesystem", path),
            params={"withContent": with_content, "ignore": list(ignore) if ignore else None},
            resource=self._label(path),
        )
        subscription = WatchSubscription(events, handler, path=path)
        subscription.start()
        logger.info(f"Watching {self._label(path)}")
        return subscription

    async def upload(self, local_path: str, remote_path: str) -> str:
        """
        Upload a local file to the sandbox.

        Returns:
            The remote path where file was saved
        """
        local = Path(local_path)
        if not local.is_file():
            raise FileNotFoundError(f"Local file not found: {local_path}")
        return await self.write_binary(remote_path, local.read_bytes())

    async def download(self, remote_path: str, local_path: str) -> str:
        """
        Download a file from the sandbox.

        Returns:
            The local path where file was saved
        """
        data = await self.read_binary(remote_path)
        local = Path(local_path)
        local.parent.mkdir(parents=True, exist_ok=True)
        local.write_bytes(data)
        logger.debug(f"Downloaded {self._label(remote_path)} to {local_path}")
        return local_path
