"""Command line entry point: run the API server or talk to a running one."""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import time
from typing import Sequence

from textchan.client.api import TextchanClient
from textchan.client.feed import ThreadFeed
from textchan.client.identity import get_or_create_user_id
from textchan.client.view import ForumView
from textchan.core.config import Settings, get_settings
from textchan.core.logging import configure_logging

logger = logging.getLogger(__name__)

STATUS_POLL_SECONDS = 30
THREADS_POLL_SECONDS = 15


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="textchan", description="Weekend-only anonymous forum")
    parser.add_argument("--api-url", default=settings.api_url, help="Base URL of a running Textchan API")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    subparsers.add_parser("init-db", help="Create the threads and replies tables")
    subparsers.add_parser("status", help="Show the posting window and storage usage")
    subparsers.add_parser("threads", help="List threads, newest first")

    show = subparsers.add_parser("show", help="Show a thread with its replies")
    show.add_argument("thread_id", type=int)

    post = subparsers.add_parser("post", help="Start a new thread")
    post.add_argument("body")

    reply = subparsers.add_parser("reply", help="Reply to a thread")
    reply.add_argument("thread_id", type=int)
    reply.add_argument("body")

    watch = subparsers.add_parser("watch", help="Keep the thread list on screen, refreshing periodically")
    watch.add_argument("--open", type=int, action="append", default=[], dest="open_threads", help="Thread id to keep expanded")
    watch.add_argument("--stream", action="store_true", help="Follow the live thread stream, polling only if it drops")
    return parser


def _serve(settings: Settings, host: str, port: int) -> int:
    import uvicorn

    from textchan.main import create_app

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
    return 0


def _init_db(settings: Settings) -> int:
    from textchan.db.session import create_db_engine, create_tables

    engine = create_db_engine(settings)
    try:
        create_tables(engine)
    finally:
        engine.dispose()
    logger.info("Tables created")
    return 0


def _print_toasts(view: ForumView) -> bool:
    ok = True
    for toast in view.drain_toasts():
        stream = sys.stderr if toast.level == "error" else sys.stdout
        print(toast.message, file=stream)
        ok = ok and toast.level != "error"
    return ok


class Watcher:
    """Refresh schedule for `textchan watch`.

    Status is polled every 30 s and immediately once the countdown runs out.
    Threads are polled every 15 s unless a live stream feed is delivering them.
    """

    def __init__(self, view: ForumView, feed: ThreadFeed | None = None, started: float = 0.0) -> None:
        self.view = view
        self.feed = feed
        self.last_status = started
        self.last_threads = started

    def tick(self, elapsed: float, now: dt.datetime | None = None) -> None:
        if self.feed is not None:
            self.feed.drain(self.view)
        if elapsed - self.last_status >= STATUS_POLL_SECONDS or self.view.countdown_elapsed(now):
            self.view.refresh_status()
            self.last_status = elapsed
        if self.feed is not None and self.feed.live:
            return
        if elapsed - self.last_threads >= THREADS_POLL_SECONDS:
            self.view.refresh_threads()
            self.last_threads = elapsed


def _watch(view: ForumView, open_threads: Sequence[int], follow_stream: bool = False) -> int:
    view.refresh_status()
    view.refresh_threads()
    for thread_id in open_threads:
        view.toggle(thread_id)

    feed = None
    if follow_stream:
        feed = ThreadFeed(view.client)
        feed.start()

    watcher = Watcher(view, feed, started=time.monotonic())
    try:
        while True:
            print("\033[2J\033[H" + view.render(), flush=True)
            _print_toasts(view)
            time.sleep(1)
            watcher.tick(time.monotonic())
    except KeyboardInterrupt:
        return 0


def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()
    configure_logging(settings)
    args = _build_parser(settings).parse_args(argv)

    if args.command == "serve":
        return _serve(settings, args.host, args.port)
    if args.command == "init-db":
        return _init_db(settings)

    with TextchanClient(args.api_url) as client:
        view = ForumView(
            client=client,
            user_id=get_or_create_user_id(settings.user_id_file),
            max_body_length=settings.max_body_length,
        )
        if args.command == "watch":
            return _watch(view, args.open_threads, follow_stream=args.stream)

        view.refresh_status()
        if args.command == "status":
            print(view.render().splitlines()[0])
            return 1 if view.status_error else 0
        if args.command == "post":
            view.post_thread(args.body)
            return 0 if _print_toasts(view) else 1
        if args.command == "reply":
            view.post_reply(args.thread_id, args.body)
            return 0 if _print_toasts(view) else 1

        view.refresh_threads()
        if args.command == "show":
            view.toggle(args.thread_id)
            view.threads = [thread for thread in view.threads if thread.id == args.thread_id]
        print(view.render())
        ok = _print_toasts(view)
        return 0 if ok and view.threads_error is None else 1


if __name__ == "__main__":
    sys.exit(main())
