"""Remote fetch primitive."""
import asyncio
import aiohttp
from pydantic import BaseModel

from stage_proxy.errors import RemoteUnavailableError
from stage_proxy.logger import get_logger
from stage_proxy.settings import settings

log = get_logger("remote")


class RemoteResponse(BaseModel):
    """Body and status of a completed GET, whatever the status."""
    status: int
    body: bytes


class RemoteFetcher:
    """
    Single-shot GET against the production origin.

    Transport failures (DNS, connect, timeout) raise RemoteUnavailableError; an
    error status is returned as a normal response for the caller to judge.
    Nothing is retried.
    """

    def __init__(self, timeout: float = None):
        self.timeout = timeout if timeout is not None else settings.REMOTE_TIMEOUT

    async def get(self, url: str, timeout: float = None) -> RemoteResponse:
        client_timeout = aiohttp.ClientTimeout(total=timeout if timeout is not None else self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.get(url) as response:
                    body = await response.read()
                    return RemoteResponse(status=response.status, body=body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning(f"Fetch failed for {url}: {e!r}")
            raise RemoteUnavailableError(f"Fetch failed for {url}: {e}") from e


def get_fetcher() -> RemoteFetcher:
    """Factory for the default fetcher."""
    return RemoteFetcher()
