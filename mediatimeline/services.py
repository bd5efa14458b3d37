"""Hashtag and status services built on the repositories and Mastodon client."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path

from .errors import DatabaseError, MastodonError, StatusServiceError

log = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("data")


def directory_for_status(status_id, root=DEFAULT_DATA_DIR / "statuses"):
    """Return the directory holding the JSON file of ``status_id``."""
    length = len(status_id)
    first = "0" if length <= 18 else status_id[: length - 18]
    second = "0" if length <= 14 else status_id[: length - 14]
    return Path(root) / first / second


def status_id_key(status_id):
    """Sort key ordering numeric status ids by value."""
    return (len(status_id), status_id)


@contextmanager
def _database_errors():
    try:
        yield
    except DatabaseError as exc:
        raise StatusServiceError(str(exc)) from exc


class SubscribedHashtagService:
    """Lists approved hashtags and records suggestions."""

    def __init__(self, repository):
        self.repository = repository

    def list_hashtags(self):
        """Return the approved hashtags sorted by name."""
        return self.repository.list()

    async def suggest_hashtag(self, key):
        """Count one vote for ``key``; an empty key is ignored."""
        if key:
            self.repository.increment_vote(key)
            log.debug("Hashtag suggested: %s", key)


class StatusService:
    """Fetches statuses from Mastodon, stores them on disk and indexes them."""

    def __init__(self, client, recent_repository, index_repository, data_dir=DEFAULT_DATA_DIR):
        self.client = client
        self.recent_repository = recent_repository
        self.index_repository = index_repository
        self.statuses_dir = Path(data_dir) / "statuses"
        self._index_lock = threading.Lock()

    def _status_path(self, status_id):
        return directory_for_status(status_id, self.statuses_dir) / f"{status_id}.json"

    async def _timeline_page(self, hashtag, min_id):
        try:
            return await self.client.get_tag_timeline(hashtag, min_id)
        except MastodonError as exc:
            raise StatusServiceError("Unable to retrieve statuses from Mastodon API") from exc

    async def paginate_timeline(self, hashtag):
        """Return the statuses for ``hashtag`` that are newer than the last seen one."""
        try:
            recent_id = self.recent_repository.get_recent_status_id(hashtag)
        except DatabaseError:
            recent_id = None

        if recent_id is None:
            statuses = await self._timeline_page(hashtag, None)
            if statuses:
                with _database_errors():
                    self.recent_repository.set_recent_status_id(hashtag, statuses[-1]["id"])
            return statuses

        statuses = []
        last_id = recent_id
        while page := await self._timeline_page(hashtag, last_id):
            last_id = max((status["id"] for status in page), key=status_id_key)
            log.debug(
                "Retrieved %d new statuses for %s - last: %s", len(page), hashtag, last_id
            )
            try:
                self.recent_repository.set_recent_status_id(hashtag, last_id)
            except DatabaseError as exc:
                raise StatusServiceError(
                    "Unable to update the recent status ID locally"
                ) from exc
            statuses.extend(page)
        statuses.sort(key=lambda status: status_id_key(status["id"]), reverse=True)
        return statuses

    async def fetch_statuses(self, ids):
        """Fetch statuses by id, skipping those the server no longer has."""
        statuses = []
        for status_id in ids:
            try:
                statuses.append(await self.client.get_status(status_id))
            except MastodonError as exc:
                if exc.status == 404:
                    log.warning("Status %s not found - probably deleted", status_id)
                    continue
                raise StatusServiceError(
                    "Unable to retrieve statuses from Mastodon API"
                ) from exc
        return statuses

    def _write_status(self, status):
        path = self._status_path(status["id"])
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(status, ensure_ascii=False), encoding="utf-8")
        with self._index_lock:
            self.index_repository.insert_statuses([status])

    async def persist_statuses(self, statuses):
        """Write each status to disk and add it to the index."""
        statuses = list(statuses)
        results = await asyncio.gather(
            *(asyncio.to_thread(self._write_status, status) for status in statuses),
            return_exceptions=True,
        )
        for status, result in zip(statuses, results):
            if isinstance(result, BaseException):
                raise StatusServiceError(
                    f"failed to persist status {status.get('id')!r}"
                ) from result

    def _read_statuses(self, ids):
        statuses = []
        for status_id in ids:
            try:
                content = self._status_path(status_id).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise StatusServiceError("unable to read the file") from exc
            try:
                statuses.append(json.loads(content))
            except ValueError as exc:
                raise StatusServiceError("unable to parse the content") from exc
        log.debug("%d statuses read from storage", len(statuses))
        return statuses

    async def _load_from_disk(self, ids):
        return await asyncio.to_thread(self._read_statuses, ids)

    async def retrieve_statuses(self, hashtags, limit):
        """Return the newest stored statuses, optionally restricted to ``hashtags``."""
        with _database_errors():
            ids = self.index_repository.search_statuses(hashtags, limit)
        return await self._load_from_disk(ids)

    async def popular_statuses(self, hashtags, since, limit):
        """Return the most engaged stored statuses created since ``since``."""
        with _database_errors():
            ids = self.index_repository.popular_statuses(hashtags, since, limit)
        return await self._load_from_disk(ids)

    async def list_stale_statuses(self, since, fresh_since, limit):
        """Return ids created after ``since`` but not refreshed since ``fresh_since``."""
        with _database_errors():
            return self.index_repository.list_stale_statuses(since, fresh_since, limit)

    def popular_tags(self, periods, limit):
        """Return the most used tags for each period, in days."""
        with _database_errors():
            return {
                period: self.index_repository.popular_tags(period, limit)
                for period in periods
            }