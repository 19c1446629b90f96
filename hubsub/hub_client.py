import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from hubsub.config import HTTP_TIMEOUT
from hubsub.errors import UpstreamFetchFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedFeed:
    content_type: Optional[str]
    body: bytes


class HubClient:
    """
    Outbound HTTP calls: (un)subscribe requests to the hub and the seed
    fetch of the feed. Every call carries a timeout; transport errors,
    timeouts and non-2xx answers all surface as UpstreamFetchFailed.
    """

    def __init__(self, timeout: float = HTTP_TIMEOUT):
        self.timeout = timeout

    async def subscribe(self, hub_url: str, topic: str, callback: str) -> int:
        return await self._send_hub_request(hub_url, "subscribe", topic, callback)

    async def unsubscribe(self, hub_url: str, topic: str, callback: str) -> int:
        return await self._send_hub_request(hub_url, "unsubscribe", topic, callback)

    async def _send_hub_request(self, hub_url: str, mode: str, topic: str, callback: str) -> int:
        data = {
            "hub.callback": callback,
            "hub.mode": mode,
            "hub.topic": topic,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(hub_url, data=data)
        except httpx.HTTPError as exc:
            raise UpstreamFetchFailed(hub_url, f"{mode} request failed: {exc!r}") from exc

        if not 200 <= resp.status_code < 300:
            raise UpstreamFetchFailed(
                hub_url,
                f"{mode} request rejected with HTTP {resp.status_code}",
                resp.status_code,
            )
        logger.info(f"[Hub] {mode} request for {topic} accepted by {hub_url} (HTTP {resp.status_code})")
        return resp.status_code

    async def fetch(self, url: str) -> FetchedFeed:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamFetchFailed(url, f"fetch failed: {exc!r}") from exc

        if not 200 <= resp.status_code < 300:
            raise UpstreamFetchFailed(url, f"HTTP {resp.status_code}", resp.status_code)
        return FetchedFeed(
            content_type=resp.headers.get("Content-Type"),
            body=resp.content,
        )
