"""
App Store top-paid rankings connector.

1. Fetch the ranked app ids from Apple's marketing RSS (JSON) feed.
2. Enrich them in batches through the iTunes Lookup API.

A failed lookup batch only loses the details of that batch; the ranking
itself is still reported.
"""

import logging
from typing import Any

import httpx

from ..errors import SourceUnavailable
from ..signals import RawSignal, SignalFamily
from .base import SourceConnector

logger = logging.getLogger("scout.connectors.storefront")

RSS_URL = "https://rss.marketingtools.apple.com/api/v2/{market}/apps/top-paid/{limit}/apps.json"
LOOKUP_URL = "https://itunes.apple.com/lookup"
LOOKUP_BATCH_SIZE = 50


class StorefrontConnector(SourceConnector):
    """Top-paid ranking of one App Store market."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        market: str,
        limit: int = 100,
        retries: int = 3,
        retry_wait: float = 3.0,
    ):
        super().__init__(client, retries=retries, retry_wait=retry_wait)
        self._market = market.lower()
        # The feed tends to fail with a 500 above 100 entries
        self.limit = limit

    @property
    def name(self) -> str:
        return f"appstore:{self._market}"

    @property
    def market(self) -> str:
        return self._market

    @property
    def family(self) -> SignalFamily:
        return SignalFamily.STOREFRONT

    async def _fetch_ranking(self) -> list[dict[str, Any]]:
        data = await self._get_json(RSS_URL.format(market=self._market, limit=self.limit))
        try:
            apps = data["feed"]["results"]
        except (KeyError, TypeError) as e:
            raise SourceUnavailable(self.name, f"unexpected feed shape: {e}") from e
        return apps or []

    async def _lookup_details(self, app_ids: list[str]) -> dict[str, dict[str, Any]]:
        details: dict[str, dict[str, Any]] = {}
        for start in range(0, len(app_ids), LOOKUP_BATCH_SIZE):
            batch = app_ids[start:start + LOOKUP_BATCH_SIZE]
            try:
                data = await self._get_json(
                    LOOKUP_URL,
                    params={"id": ",".join(batch), "country": self._market},
                )
            except SourceUnavailable as e:
                logger.error(f"Lookup failed for batch starting at index {start}: {e.reason}")
                continue

            if not isinstance(data, dict) or not isinstance(data.get("results"), list):
                logger.error(f"Lookup returned an unexpected body for batch starting at index {start}")
                continue

            for detail in data["results"]:
                if not isinstance(detail, dict):
                    continue
                track_id = detail.get("trackId")
                if track_id is not None:
                    details[str(track_id)] = detail
        return details

    async def _fetch(self) -> list[RawSignal]:
        apps = await self._fetch_ranking()
        if not apps:
            logger.warning(f"No apps found for market: {self._market}")
            return []

        app_ids = [str(app["id"]) for app in apps if app.get("id")]
        logger.info(f"Got {len(app_ids)} ids for {self._market}, fetching details...")
        details = await self._lookup_details(app_ids)

        signals = []
        for index, app in enumerate(apps):
            if not app.get("id"):
                continue
            app_id = str(app["id"])
            detail = details.get(app_id, {})
            genres = app.get("genres") or []
            category = detail.get("primaryGenreName") or (genres[0].get("name") if genres else None)

            signals.append(RawSignal(
                identifier=f"appstore:{app_id}",
                title=app.get("name") or detail.get("trackName") or app_id,
                url=app.get("url") or detail.get("trackViewUrl", ""),
                source_label=f"App Store ({self._market.upper()})",
                family=SignalFamily.STOREFRONT,
                summary=(detail.get("description") or "")[:1000],
                market=self._market,
                rank=index + 1,
                price=detail.get("price"),
                price_formatted=detail.get("formattedPrice"),
                category=category,
                rating=detail.get("averageUserRating"),
                rating_count=detail.get("userRatingCount"),
                developer=app.get("artistName") or detail.get("artistName"),
                icon_url=app.get("artworkUrl100"),
            ))
        return signals
