from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime

import pytest
from aiohttp.test_utils import TestClient, TestServer

from mediatimeline.container import Container
from mediatimeline.settings import ApplicationSettings, ServerSettings, Settings
from mediatimeline.web import create_app

TEMPLATES = {
    "hashtags/list.html": "{% for h in hashtags %}[{{ h }}]{% endfor %}",
    "hashtags/list_popular.html": (
        "{% for period, tags in hashtags|dictsort %}{{ period }}:"
        "{% for name, count in tags %}{{ name }}={{ count }};{% endfor %}|{% endfor %}"
    ),
    "timeline.html": "{% for s in statuses %}<{{ s.id }}>{% endfor %}",
}


def _make_container(base, enable_compression=True):
    for name, text in TEMPLATES.items():
        path = base / "templates" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    (base / "static").mkdir()
    (base / "static" / "index.html").write_text("hello")
    settings = Settings(
        application=ApplicationSettings(
            timeline_update_frequency=timedelta(minutes=5),
            timeline_statuses_count=20,
        ),
        server=ServerSettings(enable_compression=enable_compression),
    )
    return Container.create(settings, base)


@asynccontextmanager
async def _client(container):
    try:
        async with TestClient(TestServer(create_app(container))) as client:
            yield client
    finally:
        await container.close()


async def _approve(container, *names):
    for name in names:
        await container.subscribed_hashtag_service.suggest_hashtag(name)
    with container.database.connection() as conn:
        conn.executemany(
            "UPDATE subscribed_hashtags SET approved = 1 WHERE name = ?",
            [(name,) for name in names],
        )


def _status(status_id, created_at, tags, favourites=0):
    return {
        "id": status_id,
        "created_at": created_at.isoformat(),
        "account": {"id": "1", "acct": "someone@example.com"},
        "replies_count": 0,
        "reblogs_count": 0,
        "favourites_count": favourites,
        "tags": [{"name": tag} for tag in tags],
    }


NOW = datetime.now(timezone.utc).replace(microsecond=0)


async def _seed_statuses(container):
    await container.status_service.persist_statuses(
        [
            _status("101", NOW - timedelta(hours=3), ["art"], favourites=10),
            _status("102", NOW - timedelta(hours=1), ["Dice"], favourites=1),
            _status("103", NOW, ["other"]),
            _status("104", NOW - timedelta(hours=5), ["art"]),
        ]
    )


@pytest.mark.asyncio
async def test_list_tags_shows_approved_sorted(tmp_path):
    container = _make_container(tmp_path)
    await _approve(container, "dice", "art")
    await container.subscribed_hashtag_service.suggest_hashtag("pending")
    async with _client(container) as client:
        resp = await client.get("/tags")
        assert resp.status == 200
        assert await resp.text() == "[art][dice]"
        trailing = await client.get("/tags/")
        assert await trailing.text() == "[art][dice]"


@pytest.mark.asyncio
async def test_suggest_tag_counts_votes(tmp_path):
    container = _make_container(tmp_path)
    async with _client(container) as client:
        for _ in range(2):
            resp = await client.post("/tags", data={"hashtag": "foo"})
            assert resp.status == 200
            assert resp.headers["HX-Trigger"] == "tags-updated"
        with container.database.connection() as conn:
            (votes,) = conn.execute(
                "SELECT votes FROM subscribed_hashtags WHERE name = 'foo'"
            ).fetchone()
        assert votes == 2


@pytest.mark.asyncio
async def test_suggest_tag_without_field_is_rejected(tmp_path):
    container = _make_container(tmp_path)
    async with _client(container) as client:
        resp = await client.post("/tags", data={"other": "foo"})
        assert resp.status == 400


@pytest.mark.asyncio
async def test_timeline_lists_subscribed_statuses_newest_first(tmp_path):
    container = _make_container(tmp_path)
    await _approve(container, "art", "dice")
    await _seed_statuses(container)
    async with _client(container) as client:
        resp = await client.get("/timeline")
        assert resp.status == 200
        assert await resp.text() == "<102><101><104>"
        assert resp.headers["Cache-Control"] == (
            "private, max-age=300, stale-while-revalidate=120"
        )
        last_modified = parsedate_to_datetime(resp.headers["Last-Modified"])
        assert last_modified == NOW - timedelta(hours=1)


@pytest.mark.asyncio
async def test_timeline_not_modified(tmp_path):
    container = _make_container(tmp_path)
    await _approve(container, "art", "dice")
    await _seed_statuses(container)
    newest = NOW - timedelta(hours=1)
    async with _client(container) as client:
        same = await client.get(
            "/timeline",
            headers={"If-Modified-Since": format_datetime(newest, usegmt=True)},
        )
        assert same.status == 304
        older = await client.get(
            "/timeline",
            headers={
                "If-Modified-Since": format_datetime(
                    newest - timedelta(minutes=1), usegmt=True
                )
            },
        )
        assert older.status == 200
        assert await older.text() == "<102><101><104>"


@pytest.mark.asyncio
async def test_popular_timeline_orders_by_engagement(tmp_path):
    container = _make_container(tmp_path)
    await _approve(container, "art", "dice")
    await _seed_statuses(container)
    async with _client(container) as client:
        resp = await client.get("/timeline/popular")
        assert resp.status == 200
        assert (await resp.text()).startswith("<101><102>")
        assert "Last-Modified" not in resp.headers
        assert "stale-while-revalidate=120" in resp.headers["Cache-Control"]


@pytest.mark.asyncio
async def test_popular_tags_per_period(tmp_path):
    container = _make_container(tmp_path)
    await _seed_statuses(container)
    async with _client(container) as client:
        resp = await client.get("/tags/popular")
        assert resp.status == 200
        body = await resp.text()
        assert body.startswith("7:art=2;")
        assert "|30:art=2;" in body


@pytest.mark.asyncio
async def test_compression_follows_settings(tmp_path):
    enabled = _make_container(tmp_path / "on")
    async with _client(enabled) as client:
        resp = await client.get("/tags", headers={"Accept-Encoding": "gzip"})
        assert resp.headers.get("Content-Encoding") == "gzip"
    disabled = _make_container(tmp_path / "off", enable_compression=False)
    async with _client(disabled) as client:
        resp = await client.get("/tags", headers={"Accept-Encoding": "gzip"})
        assert resp.status == 200
        assert "Content-Encoding" not in resp.headers


@pytest.mark.asyncio
async def test_static_files_and_index(tmp_path):
    container = _make_container(tmp_path)
    async with _client(container) as client:
        index = await client.get("/")
        assert index.status == 200
        assert await index.text() == "hello"
        missing = await client.get("/missing.css")
        assert missing.status == 404


@pytest.mark.asyncio
async def test_missing_template_is_server_error(tmp_path):
    container = _make_container(tmp_path)
    (tmp_path / "templates" / "timeline.html").unlink()
    async with _client(container) as client:
        resp = await client.get("/timeline")
        assert resp.status == 500