"""Domain models and request payloads."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utc_now():
    return datetime.now(timezone.utc)


@dataclass
class HashtagAttributes:
    """State of a suggested hashtag."""

    approved: bool = False
    votes: int = 1
    created_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class SuggestTag:
    """Form payload for suggesting a hashtag."""

    hashtag: str

    @classmethod
    def from_form(cls, form):
        """Build the payload from submitted form data."""
        if not isinstance(form, Mapping) or "hashtag" not in form:
            raise ValueError("missing field 'hashtag'")
        value = form["hashtag"]
        if not isinstance(value, str):
            raise ValueError("field 'hashtag' must be a string")
        return cls(hashtag=value)