"""Media timeline for the fediverse: an aiohttp application serving stored Mastodon media statuses by hashtag."""

__version__ = "0.1.0"