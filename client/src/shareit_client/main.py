"""Entry point for the ShareIt command line client."""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path

import firebase_admin  # type: ignore[import-untyped]
from firebase_admin import credentials, firestore, storage  # type: ignore[import-untyped]
from google.cloud.storage import Bucket  # type: ignore[import-untyped]

from .app import ShareItApp
from .auth import AuthClient
from .backend import FirestoreBackend
from .cache import LocalCache
from .config import Config, load_config
from .errors import InputValidationError
from .state import AppState

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".shareit" / "cache"


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )


def init_firebase(config: Config) -> tuple[firestore.Client, Bucket]:
    """Initialize Firebase Admin SDK and return the Firestore client and bucket."""
    cred = credentials.Certificate(str(config.firebase_credentials_path))
    firebase_admin.initialize_app(
        cred,
        {"projectId": config.project_id, "storageBucket": config.storage_bucket},
    )
    return firestore.client(), storage.bucket()


def build_app(config: Config) -> ShareItApp:
    db, bucket = init_firebase(config)
    logger.info("Firebase initialized for project %s", config.project_id)
    return ShareItApp(
        backend=FirestoreBackend(db, bucket),
        auth=AuthClient(config.api_key),
        bucket_name=config.storage_bucket,
        cache=LocalCache(config.cache_dir or DEFAULT_CACHE_DIR),
        notification_duration_ms=config.notification_duration_ms,
    )


def print_summary(app: ShareItApp) -> None:
    state = app.store.state
    profile = state.auth.profile
    name = profile.display_name if profile else state.auth.user.display_name  # type: ignore[union-attr]
    print(f"Signed in as {name} ({app.uid})")
    print(f"  photos:          {len(state.photos.photos)}")
    print(f"  widgets:         {len(state.widgets.user_widgets)}"
          f" ({len(state.widgets.active_widgets)} active)")
    print(f"  shared widgets:  {len(state.widgets.shared_widgets)}")
    print(f"  friends:         {len(state.friends.friends)}")
    print(f"  friend requests: {len(state.friends.requests)}")


async def _sign_in(app: ShareItApp, email: str, password: str) -> int:
    """Sign in; returns a non-zero exit code on failure."""
    try:
        result = await app.sign_in(email, password)
    except InputValidationError as e:
        logger.error("%s", e)
        return 2
    if not result.ok:
        logger.error("Sign in failed: %s", result.error)
        return 1
    return 0


async def sync(app: ShareItApp, email: str, password: str) -> int:
    """Sign in, load everything and cache it. Falls back to the cache when offline."""
    code = await _sign_in(app, email, password)
    if code:
        return code

    if await app.refresh():
        print_summary(app)
        return 0

    app.set_online(False)
    if app.uid is None:
        logger.error("Signed out while loading data")
        return 1
    if app.load_cached(app.uid):
        logger.warning("Showing cached data, some requests failed")
        print_summary(app)
        return 0
    logger.error("Could not load data and no cache is available")
    return 1


def _counts(state: AppState) -> tuple[int, ...]:
    return (
        len(state.photos.photos),
        len(state.widgets.user_widgets),
        len(state.widgets.shared_widgets),
        len(state.friends.friends),
        len(state.friends.requests),
    )


async def watch(app: ShareItApp, email: str, password: str) -> int:
    """Sign in and print a summary every time the user's data changes size."""
    code = await _sign_in(app, email, password)
    if code:
        return code

    last: tuple[int, ...] | None = None

    def on_change(state: AppState) -> None:
        nonlocal last
        counts = _counts(state)
        if counts != last and state.auth.is_authenticated:
            last = counts
            print_summary(app)

    unsubscribe = app.store.subscribe(on_change)
    app.start_realtime()
    try:
        await asyncio.Event().wait()
    finally:
        unsubscribe()
        app.stop_realtime()
    return 0


def cmd_sync(args: argparse.Namespace) -> None:
    """Sign in and download the user's photos, widgets and friends."""
    setup_logging(args.verbose, args.log_file)

    config_path: Path = args.config
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)

    config = load_config(config_path)
    logger.info("Loaded configuration for app: %s", config.app_id)

    password = os.environ.get("SHAREIT_PASSWORD") or getpass.getpass("Password: ")
    app = build_app(config)
    sys.exit(asyncio.run(sync(app, args.email, password)))


def cmd_watch(args: argparse.Namespace) -> None:
    """Sign in and follow live changes until interrupted."""
    setup_logging(args.verbose, args.log_file)

    config_path: Path = args.config
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)

    config = load_config(config_path)
    password = os.environ.get("SHAREIT_PASSWORD") or getpass.getpass("Password: ")
    app = build_app(config)
    try:
        sys.exit(asyncio.run(watch(app, args.email, password)))
    except KeyboardInterrupt:
        logger.info("Stopped")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="ShareIt command line client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shareit sync --email me@example.com          Sign in and sync
  SHAREIT_PASSWORD=... shareit sync -e me@...  Read the password from the environment
  shareit watch -e me@example.com              Print changes as they happen
""",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config.json"),
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Sign in and sync data")
    sync_parser.add_argument("--email", "-e", required=True, help="Account email")
    sync_parser.set_defaults(func=cmd_sync)

    watch_parser = subparsers.add_parser("watch", help="Sign in and follow live changes")
    watch_parser.add_argument("--email", "-e", required=True, help="Account email")
    watch_parser.set_defaults(func=cmd_watch)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
