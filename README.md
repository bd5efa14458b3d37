# mediatimeline

A small aiohttp web application that shows media posts for a set of hashtags
from a Mastodon server as one timeline. It ranks the popular ones and lets
visitors suggest new hashtags to follow.

## How it works

- Statuses are kept as JSON files under `data/statuses/` and indexed in an
  SQLite database at `data/db.sqlite3`. The database schema is created or
  upgraded when the application starts.
- `mediatimeline.services.StatusService` does the fetching and storing. It
  pages through a hashtag's media timeline on `https://dice.camp`, and it
  fetches single statuses by id, skipping those that answer 404. It writes
  statuses to disk and indexes them. It also reads them back: the newest, the
  most engaged, or those due for a refresh.
- The web server renders HTML with Jinja2 templates from `templates/` and
  serves static files from `static/`.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration

Settings are read from `config.toml`. The `application` table is required.
Durations are written as `"N seconds"`, `"N minutes"`, `"N hours"` or
`"N days"`, and the singular forms are accepted too. A bare number means
seconds.

```toml
[application]
timeline-update-frequency = "5 minutes"
timeline-statuses-count = 40

[[application.status-refresh]]
max-age = "1 day"
frequency = "10 minutes"

[actix]
hosts = [["127.0.0.1", 8080]]
mode = "production"          # or "development" (the default)
enable-log = true            # default true
enable-compression = true    # default true
```

If `hosts` is not given, the server listens on `0.0.0.0:9000`.

These environment variables override the server settings:

- `ACTIX_HOSTS` replaces `hosts`. Its value is a TOML array, for example
  `[["127.0.0.1", 8080]]`.
- `ACTIX_MODE` is `development` or `production`. Development logs at debug
  level and production at info level.

`timeline-update-frequency` sets the `max-age` of the `Cache-Control` header
on timeline pages.

## Running

```
mediatimeline [--config config.toml] [--base-dir .]
```

`--base-dir` is the directory that holds `data/`, `templates/` and `static/`.
`data/` is created if it is missing. The server logs each address it listens
on and runs until it receives SIGINT or SIGTERM. The command exits with
status 1 if the settings cannot be read.

The package ships no templates. The directory given by `--base-dir` must
provide `templates/timeline.html`, `templates/hashtags/list.html` and
`templates/hashtags/list_popular.html`. These templates receive:

- `statuses`: a list of Mastodon status mappings.
- `hashtags`: a list of names, or for the popular list a mapping from period
  in days to `(tag, count)` pairs.

A `timedelta` filter renders an RFC 3339 timestamp's age as `Nd`, `Nh` or
`Nm`.

## Endpoints

| Method | Path                 | Purpose                                         |
|--------|----------------------|-------------------------------------------------|
| GET    | `/timeline`          | Latest statuses for the approved hashtags       |
| GET    | `/timeline/popular`  | Most engaged statuses of the last seven days    |
| GET    | `/tags`              | Approved hashtags                               |
| GET    | `/tags/popular`      | Five most used tags over the last 7 and 30 days |
| POST   | `/tags`              | Suggest a hashtag (form field `hashtag`)        |
| GET    | anything else        | Files from `static/`, `index.html` for folders  |

Trailing slashes are accepted on all of these paths. `/timeline` honours
`If-Modified-Since` and answers `304 Not Modified` when nothing newer is
stored. A successful `POST /tags` replies with the header
`HX-Trigger: tags-updated`. A request without a `hashtag` field gets
`400 Bad Request`.

## What it does not do

- The server fetches nothing from Mastodon by itself. `cli.main` starts a
  `WorkerTracker` with no workers registered. No periodic timeline update or
  status refresh runs, even though `status-refresh` is read from the
  settings. To fill the store, call `StatusService.paginate_timeline` and
  `StatusService.persist_statuses` yourself, or register your own
  `mediatimeline.workers.Worker` subclasses.
- There is no way to approve a suggested hashtag. Suggestions only count
  votes. A hashtag appears on the timeline once its `approved` column in
  `subscribed_hashtags` is set to 1 directly in the database.
- No templates or static files are included.

## Using it as a library

`mediatimeline.container.Container.create(settings, base_dir)` assembles
everything. `mediatimeline.web.create_app(container)` turns a container into
an `aiohttp.web.Application`.

```python
import asyncio

from mediatimeline.container import Container
from mediatimeline.settings import load_settings, parse_duration

parse_duration("2 hours")          # datetime.timedelta(seconds=7200)


async def collect(tag):
    container = Container.create(load_settings("config.toml"), ".")
    try:
        statuses = await container.status_service.paginate_timeline(tag)
        await container.status_service.persist_statuses(statuses)
    finally:
        await container.close()


asyncio.run(collect("photography"))
```

The repositories can also be used on their own:

```python
from mediatimeline.database import open_database
from mediatimeline.repositories import SubscribedHashtagRepository

database = open_database("data/db.sqlite3")
hashtags = SubscribedHashtagRepository(database)
hashtags.increment_vote("photography")
print(hashtags.list())             # approved hashtags only
```