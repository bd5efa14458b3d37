"""Exceptions raised by the storage, services and Mastodon client."""

from __future__ import annotations


class DatabaseError(Exception):
    """A query or connection to the local database failed."""


class MastodonError(Exception):
    """A request to the Mastodon API failed.

    ``status`` holds the HTTP status code when the server answered.
    """

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self):
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status})"


class StatusServiceError(Exception):
    """A status could not be fetched, stored or read back."""