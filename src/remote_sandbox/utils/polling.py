"""
Bounded polling shared by every wait in the client.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from remote_sandbox.errors import SandboxTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    done: Callable[[T], bool],
    timeout: float,
    interval: float,
    what: str,
    resource: Optional[str] = None,
) -> T:
    """
    Call ``fetch`` every ``interval`` seconds until ``done`` accepts its result.

    The first fetch happens immediately. Once more than ``timeout`` seconds
    have elapsed without an accepted result, SandboxTimeoutError is raised;
    the remote operation is left untouched.

    Returns:
        The first accepted result
    """
    deadline = time.monotonic() + timeout
    attempts = 0

    while True:
        result = await fetch()
        attempts += 1
        if done(result):
            return result

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"Gave up waiting for {what} after {attempts} polls")
            raise SandboxTimeoutError(what=what, timeout_sec=timeout, resource=resource)

        logger.debug(f"Waiting for {what} (poll {attempts})")
        await asyncio.sleep(min(interval, remaining))
