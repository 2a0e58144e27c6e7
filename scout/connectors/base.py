"""
Shared source connector plumbing.

A connector fetches one logical source (a subreddit, a feed, a search
query, a storefront market) and never raises out of `fetch()`: failures
become an empty FetchResult carrying the error.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..config import source_context
from ..errors import SourceUnavailable
from ..signals import RawSignal, SignalFamily

logger = logging.getLogger("scout.connectors")


@dataclass
class FetchResult:
    """Signals from one source, or the reason there are none."""
    source: str
    family: SignalFamily
    signals: list[RawSignal] = field(default_factory=list)
    error: Optional[str] = None
    market: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceConnector(ABC):
    """Base class for all source connectors."""

    def __init__(self, client: httpx.AsyncClient, retries: int = 1, retry_wait: float = 3.0):
        """
        Args:
            client: Shared HTTP client (carries the timeout and User-Agent).
            retries: Total attempts per HTTP request.
            retry_wait: Seconds between attempts.
        """
        self.client = client
        self.retries = max(1, retries)
        self.retry_wait = retry_wait

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable source name, used in logs and as the signal source label."""
        pass

    @property
    @abstractmethod
    def family(self) -> SignalFamily:
        pass

    @property
    def market(self) -> Optional[str]:
        return None

    @abstractmethod
    async def _fetch(self) -> list[RawSignal]:
        """Fetch and parse the source. Raise SourceUnavailable on failure."""
        pass

    async def _get(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """GET with retries on transport errors and non-2xx responses."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_fixed(self.retry_wait),
            retry=retry_if_exception_type(httpx.HTTPError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self.client.get(url, params=params)
                response.raise_for_status()
        return response

    async def _get_json(self, url: str, params: Optional[dict] = None):
        try:
            response = await self._get(url, params=params)
            return response.json()
        except httpx.HTTPError as e:
            raise SourceUnavailable(self.name, f"request to {url} failed: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(self.name, f"invalid JSON from {url}: {e}") from e

    async def fetch(self) -> FetchResult:
        """Fetch the source. Never raises; failures yield an empty result."""
        source_context.set(self.name)
        try:
            signals = await self._fetch()
        except SourceUnavailable as e:
            logger.error(f"Source unavailable: {e}")
            return FetchResult(self.name, self.family, error=e.reason, market=self.market)
        except Exception as e:
            logger.exception(f"Unexpected error fetching {self.name}: {e}")
            return FetchResult(self.name, self.family, error=str(e), market=self.market)
        finally:
            source_context.set(None)

        logger.info(f"Fetched {len(signals)} signals from {self.name}")
        return FetchResult(self.name, self.family, signals=signals, market=self.market)
