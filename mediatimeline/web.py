"""HTTP routes for hashtags, timelines and static files."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jinja2
from aiohttp import web

from .container import Container
from .errors import DatabaseError, StatusServiceError
from .models import SuggestTag

log = logging.getLogger(__name__)

CONTAINER = web.AppKey("container", Container)
ACCESS_LOG_FORMAT = '%a "%r" %s %b "%{Referer}i" "%{User-Agent}i" %Tf'

POPULAR_TAG_PERIODS = (7, 30)
POPULAR_TAG_LIMIT = 5
POPULAR_STATUSES_DAYS = 7
_DEFAULT_MAX_AGE = 300
_U32_MAX = 2**32 - 1


def _render(request, template_name, **context):
    templates = request.app[CONTAINER].templates
    try:
        body = templates.get_template(template_name).render(**context)
    except jinja2.TemplateError as exc:
        log.error("unable to render %s: %s", template_name, exc)
        raise web.HTTPInternalServerError(text=str(exc)) from exc
    return web.Response(text=body, content_type="text/html")


def _cache_control(settings):
    seconds = int(settings.timeline_update_frequency.total_seconds())
    max_age = seconds if 0 <= seconds <= _U32_MAX else _DEFAULT_MAX_AGE
    return f"private, max-age={max_age}, stale-while-revalidate=120"


def _build_timeline(request, statuses, last_modified=None):
    response = _render(request, "timeline.html", statuses=statuses)
    response.headers["Cache-Control"] = _cache_control(
        request.app[CONTAINER].settings.application
    )
    if last_modified is not None:
        response.last_modified = last_modified
    return response


def _parse_created_at(value):
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


async def list_tags(request):
    """Render the approved hashtags."""
    hashtags = request.app[CONTAINER].subscribed_hashtag_service.list_hashtags()
    return _render(request, "hashtags/list.html", hashtags=hashtags)


async def list_popular_tags(request):
    """Render the most used tags over the last 7 and 30 days."""
    hashtags = request.app[CONTAINER].status_service.popular_tags(
        list(POPULAR_TAG_PERIODS), POPULAR_TAG_LIMIT
    )
    return _render(request, "hashtags/list_popular.html", hashtags=hashtags)


async def suggest_tag(request):
    """Record a hashtag suggestion submitted as a form."""
    try:
        payload = SuggestTag.from_form(await request.post())
    except ValueError as exc:
        raise web.HTTPBadRequest(text=str(exc)) from exc
    await request.app[CONTAINER].subscribed_hashtag_service.suggest_hashtag(payload.hashtag)
    return web.Response(status=200, headers={"HX-Trigger": "tags-updated"})


async def get_timeline(request):
    """Render the newest statuses of the approved hashtags."""
    container = request.app[CONTAINER]
    hashtags = container.subscribed_hashtag_service.list_hashtags()
    statuses = await container.status_service.retrieve_statuses(
        hashtags, container.settings.application.timeline_statuses_count
    )
    log.debug("%d statuses retrieved from storage", len(statuses))

    if statuses:
        most_recent = _parse_created_at(statuses[0]["created_at"])
    else:
        most_recent = datetime.now(timezone.utc)
    most_recent = most_recent.replace(microsecond=0)

    if_modified_since = request.if_modified_since
    if if_modified_since is not None and if_modified_since >= most_recent:
        return web.Response(status=304)

    return _build_timeline(request, statuses, most_recent)


async def get_popular(request):
    """Render the most engaged statuses of the last week."""
    container = request.app[CONTAINER]
    hashtags = container.subscribed_hashtag_service.list_hashtags()
    statuses = await container.status_service.popular_statuses(
        hashtags,
        datetime.now(timezone.utc) - timedelta(days=POPULAR_STATUSES_DAYS),
        container.settings.application.timeline_statuses_count,
    )
    log.debug("%d statuses retrieved from storage", len(statuses))
    return _build_timeline(request, statuses)


async def _serve_static(request):
    static_dir = request.app[CONTAINER].static_dir.resolve()
    target = (static_dir / request.match_info["path"].strip("/")).resolve()
    if not target.is_relative_to(static_dir):
        raise web.HTTPNotFound()
    if target.is_dir():
        target = target / "index.html"
    if not target.is_file():
        raise web.HTTPNotFound()
    return web.FileResponse(target)


@web.middleware
async def _internal_errors(request, handler):
    try:
        return await handler(request)
    except (DatabaseError, StatusServiceError) as exc:
        log.exception("request to %s failed", request.path)
        raise web.HTTPInternalServerError(text=str(exc)) from exc


@web.middleware
async def _compression(request, handler):
    response = await handler(request)
    if isinstance(response, web.Response) and not isinstance(response, web.FileResponse):
        response.enable_compression()
    return response


def _trimmed(path):
    """Route pattern that also matches the path with trailing slashes."""
    return path + "{trailing_slashes:/*}"


def create_app(container):
    """Build the web application around ``container``."""
    middlewares = []
    if container.settings.server.enable_compression:
        middlewares.append(_compression)
    middlewares.append(_internal_errors)

    app = web.Application(middlewares=middlewares)
    app[CONTAINER] = container
    app.router.add_get(_trimmed("/tags"), list_tags)
    app.router.add_post(_trimmed("/tags"), suggest_tag)
    app.router.add_get(_trimmed("/tags/popular"), list_popular_tags)
    app.router.add_get(_trimmed("/timeline"), get_timeline)
    app.router.add_get(_trimmed("/timeline/popular"), get_popular)
    app.router.add_get("/{path:.*}", _serve_static)
    return app