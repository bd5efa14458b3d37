"""Command that starts the web server and the background workers."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from aiohttp import web

from .container import Container
from .settings import Mode, load_settings
from .web import ACCESS_LOG_FORMAT, create_app
from .workers import WorkerTracker

log = logging.getLogger(__name__)


def init_logging(settings):
    """Configure logging from the server settings; nothing happens when logging is off."""
    if not settings.server.enable_log:
        return
    root = logging.getLogger()
    if settings.server.mode is Mode.DEVELOPMENT:
        level = logging.DEBUG
        logging.getLogger("httpcore").setLevel(logging.INFO)
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    root.setLevel(level)
    logging.getLogger("aiohttp").setLevel(level)
    logging.getLogger("mediatimeline").setLevel(logging.DEBUG)


async def _serve(settings, base_dir):
    container = Container.create(settings, base_dir)
    workers = WorkerTracker()
    workers.start()

    runner = web.AppRunner(
        create_app(container),
        access_log=logging.getLogger("aiohttp.access") if settings.server.enable_log else None,
        access_log_format=ACCESS_LOG_FORMAT,
    )
    try:
        await runner.setup()
        for host, port in settings.server.hosts:
            await web.TCPSite(runner, host, port).start()
            log.info("Listening on http://%s:%s", host, port)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(signum, stop.set)
        await stop.wait()
    finally:
        workers.stop()
        await workers.wait()
        await runner.cleanup()
        await container.close()


def main(argv=None):
    """Run the media timeline server; return the exit status."""
    parser = argparse.ArgumentParser(
        prog="media-timeline", description="Media timeline for the fediverse"
    )
    parser.add_argument("--config", default="config.toml", help="settings file")
    parser.add_argument(
        "--base-dir",
        default=".",
        help="directory holding data/, templates/ and static/",
    )
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        print(f"Failed to parse settings from {args.config}: {exc}", file=sys.stderr)
        return 1

    init_logging(settings)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve(settings, args.base_dir))
    return 0


if __name__ == "__main__":
    sys.exit(main())