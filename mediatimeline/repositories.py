"""SQLite repositories for hashtags, pagination cursors and the status index."""

from __future__ import annotations

from datetime import datetime, timezone

from .database import Database


def _to_sql_timestamp(value):
    """Format a datetime (or ISO 8601 string) as a sortable UTC text timestamp."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f+00:00")


def _placeholders(count):
    return ", ".join("?" * count)


class SubscribedHashtagRepository:
    """Hashtags suggested by visitors and the ones approved for the timeline."""

    def __init__(self, database: Database):
        self.database = database

    def increment_vote(self, key):
        """Record one vote for ``key``, creating the hashtag if it is new."""
        with self.database.transaction() as conn:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM subscribed_hashtags WHERE name = ?", (key,)
            ).fetchone()
            if count == 0:
                conn.execute(
                    "INSERT INTO subscribed_hashtags (name, votes) VALUES (?, ?)", (key, 1)
                )
            else:
                conn.execute(
                    "UPDATE subscribed_hashtags SET votes = votes + 1 WHERE name = ?", (key,)
                )

    def list(self):
        """Return the approved hashtags sorted by name."""
        with self.database.connection() as conn:
            rows = conn.execute(
                "SELECT name FROM subscribed_hashtags WHERE approved = 1 ORDER BY name"
            ).fetchall()
        return [name for (name,) in rows]


class RecentStatusRepository:
    """Most recent status id seen for each hashtag."""

    def __init__(self, database: Database):
        self.database = database

    def get_recent_status_id(self, key):
        """Return the stored status id for ``key`` or ``None``."""
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT status_id FROM recent_statuses WHERE tag = ?", (key,)
            ).fetchone()
        return None if row is None else row[0]

    def set_recent_status_id(self, key, value):
        """Store ``value`` as the most recent status id for ``key``."""
        with self.database.connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO recent_statuses (tag, status_id) VALUES (?, ?)",
                (key, value),
            )


class StatusIndexRepository:
    """Searchable index of stored statuses and their tags."""

    def __init__(self, database: Database):
        self.database = database

    def insert_statuses(self, statuses):
        """Index statuses (Mastodon JSON mappings) and mark them refreshed now."""
        now = _to_sql_timestamp(datetime.now(timezone.utc))
        with self.database.transaction() as conn:
            for status in statuses:
                conn.execute(
                    "INSERT OR REPLACE INTO statuses (id, created_at, account_id, "
                    "account_acct, replies_count, reblogs_count, favourites_count) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        status["id"],
                        _to_sql_timestamp(status["created_at"]),
                        status["account"]["id"],
                        status["account"]["acct"],
                        status["replies_count"],
                        status["reblogs_count"],
                        status["favourites_count"],
                    ),
                )
                conn.executemany(
                    "INSERT OR REPLACE INTO status_tags (status_id, name) VALUES (?, ?)",
                    ((status["id"], tag["name"]) for tag in status.get("tags") or ()),
                )
                conn.execute(
                    "INSERT OR REPLACE INTO status_refreshes (id, refreshed_at) VALUES (?, ?)",
                    (status["id"], now),
                )

    def search_statuses(self, hashtags, limit):
        """Return ids of the newest statuses, optionally restricted to ``hashtags``."""
        conditions, params = [], []
        if hashtags is not None:
            tags = [tag.lower() for tag in hashtags]
            conditions.append(f"lower(st.name) IN ({_placeholders(len(tags))})")
            params.extend(tags)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = (
            "SELECT DISTINCT s.id FROM statuses s "
            "LEFT JOIN status_tags st ON st.status_id = s.id "
            f"{where} ORDER BY s.created_at DESC LIMIT ?"
        )
        with self.database.connection() as conn:
            rows = conn.execute(sql, (*params, limit)).fetchall()
        return [status_id for (status_id,) in rows]

    def popular_statuses(self, hashtags, since, limit):
        """Return ids of statuses created since ``since``, most engaged first."""
        conditions, params = [], []
        if hashtags is not None:
            tags = [tag.lower() for tag in hashtags]
            conditions.append(f"lower(st.name) IN ({_placeholders(len(tags))})")
            params.extend(tags)
        conditions.append("s.created_at >= ?")
        params.append(_to_sql_timestamp(since))
        sql = (
            "SELECT DISTINCT s.id FROM statuses s "
            "LEFT JOIN status_tags st ON st.status_id = s.id "
            f"WHERE {' AND '.join(conditions)} "
            "ORDER BY s.engagements_count DESC LIMIT ?"
        )
        with self.database.connection() as conn:
            rows = conn.execute(sql, (*params, limit)).fetchall()
        return [status_id for (status_id,) in rows]

    def list_stale_statuses(self, since, fresh_since, limit):
        """Return ids of statuses created in [since, fresh_since) not refreshed since ``fresh_since``."""
        with self.database.connection() as conn:
            rows = conn.execute(
                "SELECT s.id FROM statuses s "
                "LEFT JOIN status_refreshes sr ON s.id = sr.id "
                "WHERE s.created_at >= ?1 AND s.created_at < ?2 "
                "AND (sr.id IS NULL OR sr.refreshed_at < ?2) "
                "ORDER BY s.created_at DESC LIMIT ?3",
                (_to_sql_timestamp(since), _to_sql_timestamp(fresh_since), limit),
            ).fetchall()
        return [status_id for (status_id,) in rows]

    def popular_tags(self, duration_days, limit):
        """Return ``(tag, count)`` pairs for the last ``duration_days`` days, most used first."""
        with self.database.connection() as conn:
            rows = conn.execute(
                "SELECT st.name, COUNT(*) FROM status_tags st "
                "LEFT JOIN statuses s ON st.status_id = s.id "
                "WHERE s.created_at >= datetime('now', ?) "
                "GROUP BY st.name ORDER BY 2 DESC LIMIT ?",
                (f"-{duration_days} days", limit),
            ).fetchall()
        return [(name, count) for name, count in rows]