"""
Remote source fetching.
"""
import asyncio
from typing import Protocol, runtime_checkable

import aiohttp
from loguru import logger

from agentlet.core.errors import FetchError


@runtime_checkable
class RemoteFetcher(Protocol):
    """Fetches source text by URL."""

    async def fetch_text(self, url: str) -> str:
        ...


class AiohttpFetcher:
    """
    RemoteFetcher backed by aiohttp. One attempt per call, no retries.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def fetch_text(self, url: str) -> str:
        """
        Raises:
            FetchError: On non-2xx status, timeout or transport failure
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    if not 200 <= response.status < 300:
                        raise FetchError(url, f"HTTP {response.status}: {response.reason}")
                    text = await response.text()
        except asyncio.TimeoutError as e:
            raise FetchError(url, f"timeout after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise FetchError(url, str(e)) from e

        logger.debug(f"Fetched {len(text)} chars from {url}")
        return text
