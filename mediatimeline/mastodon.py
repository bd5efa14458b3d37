"""Minimal asynchronous client for the public Mastodon API."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from .errors import MastodonError

log = logging.getLogger(__name__)

TAG_TIMELINE_LIMIT = 40
_TIMEOUT_SECONDS = 30.0


class MastodonClient:
    """Reads public timelines and statuses from one Mastodon instance."""

    def __init__(self, base_url, user_agent=None):
        log.debug("Using the following User-Agent: %r", user_agent)
        headers = {"Accept": "application/json"}
        if user_agent is not None:
            headers["User-Agent"] = user_agent
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=_TIMEOUT_SECONDS
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def get_tag_timeline(self, hashtag, min_id=None):
        """Return up to 40 media statuses for ``hashtag`` newer than ``min_id``."""
        log.debug("Getting tag timeline for %s from %r", hashtag, min_id)
        params = {"only_media": "true", "limit": TAG_TIMELINE_LIMIT}
        if min_id is not None:
            params["min_id"] = min_id
        data = await self._get(f"/api/v1/timelines/tag/{quote(hashtag, safe='')}", params)
        if not isinstance(data, list):
            raise MastodonError("unexpected response for the tag timeline")
        return data

    async def get_status(self, status_id):
        """Return one status as a JSON mapping."""
        data = await self._get(f"/api/v1/statuses/{quote(str(status_id), safe='')}")
        if not isinstance(data, dict):
            raise MastodonError(f"unexpected response for status {status_id}")
        return data

    async def close(self):
        """Close the underlying HTTP connections."""
        await self._client.aclose()

    async def _get(self, path, params=None):
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise MastodonError(f"request to {path} failed: {exc}") from exc
        if response.is_error:
            raise MastodonError(f"request to {path} failed", status=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise MastodonError(f"invalid JSON returned by {path}") from exc