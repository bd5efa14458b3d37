"""Wiring of settings, storage, templates, the Mastodon client and services."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import jinja2

from .database import Database, open_database
from .mastodon import MastodonClient
from .repositories import (
    RecentStatusRepository,
    StatusIndexRepository,
    SubscribedHashtagRepository,
)
from .services import StatusService, SubscribedHashtagService
from .settings import Settings
from .templating import create_environment

PKG_NAME = "media-timeline"
PKG_VERSION = "0.1.0"
USER_AGENT = f"{PKG_NAME}/{PKG_VERSION}"
MASTODON_BASE_URL = "https://dice.camp"


@dataclass
class Container:
    """Everything the web application and the workers share."""

    settings: Settings
    templates: jinja2.Environment
    mastodon: MastodonClient
    database: Database
    status_service: StatusService
    subscribed_hashtag_service: SubscribedHashtagService
    static_dir: Path

    @classmethod
    def create(cls, settings, base_dir="."):
        """Build all components, keeping data, templates and static files under ``base_dir``."""
        base = Path(base_dir)
        templates = create_environment(base / "templates")

        data_dir = base / "data"
        data_dir.mkdir(parents=True, exist_ok=True)
        database = open_database(data_dir / "db.sqlite3")

        mastodon = MastodonClient(MASTODON_BASE_URL, USER_AGENT)

        hashtag_repository = SubscribedHashtagRepository(database)
        recent_repository = RecentStatusRepository(database)
        index_repository = StatusIndexRepository(database)

        return cls(
            settings=settings,
            templates=templates,
            mastodon=mastodon,
            database=database,
            status_service=StatusService(
                mastodon, recent_repository, index_repository, data_dir
            ),
            subscribed_hashtag_service=SubscribedHashtagService(hashtag_repository),
            static_dir=base / "static",
        )

    async def close(self):
        """Release the network resources held by the container."""
        await self.mastodon.close()