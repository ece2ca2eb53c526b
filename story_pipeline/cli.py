"""
Command line utilities for the narrated story workflow.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from halloween_scare.config import Config, load_config
from halloween_scare.logging_setup import configure_logging

from .client import MAX_POLL_ATTEMPTS, POLL_INTERVAL_SECONDS, StoryClient, StoryError
from .uploads import publish_assets


def build_client(config: Config, logger: logging.Logger) -> StoryClient:
    return StoryClient(
        gemini_api_key=config.api.gemini_api_key,
        render_api_key=config.api.json2video_api_key,
        public_base_url=config.api.public_base_url,
        render_base_url=config.api.json2video_base_url,
        timeout=config.api.request_timeout,
        logger=logger,
    )


def _poll(client: StoryClient, status_url: str, args: argparse.Namespace, logger: logging.Logger) -> int:
    status = client.poll_status(status_url, interval=args.interval, max_attempts=args.max_attempts)
    if status.completed:
        print(status.output_url)
        return 0
    logger.warning("Render not finished after %s checks. Status URL: %s", status.attempts, status_url)
    return 2


def cmd_publish(config: Config, args: argparse.Namespace, logger: logging.Logger) -> int:
    urls = publish_assets(args.paths, config.storage.uploads_dir, config.api.public_base_url)
    for url in urls:
        print(url)
    return 0


def cmd_create(config: Config, args: argparse.Namespace, logger: logging.Logger) -> int:
    client = build_client(config, logger)
    asset_urls = list(args.urls)
    if args.files:
        asset_urls.extend(
            publish_assets(args.files, config.storage.uploads_dir, config.api.public_base_url)
        )
    if not asset_urls:
        logger.error("Provide asset URLs or --file paths")
        return 1

    story = client.create_story(asset_urls, args.theme)
    logger.info("Narration:\n%s", story.narration)
    logger.info("Job %s status URL: %s", story.job.job_id, story.job.status_url)
    if args.wait:
        return _poll(client, story.job.status_url, args, logger)
    print(story.job.status_url)
    return 0


def cmd_status(config: Config, args: argparse.Namespace, logger: logging.Logger) -> int:
    client = build_client(config, logger)
    return _poll(client, args.status_url, args, logger)


def _add_poll_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--interval",
        type=float,
        default=POLL_INTERVAL_SECONDS,
        help=f"Seconds between status checks (default: {POLL_INTERVAL_SECONDS:g})",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=MAX_POLL_ATTEMPTS,
        help=f"Maximum number of status checks (default: {MAX_POLL_ATTEMPTS})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Narrated story videos from uploaded assets.")
    parser.add_argument("--config", type=Path, default=Path("config.json"))
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    publish_parser = subparsers.add_parser("publish", help="Stage local files under public URLs")
    publish_parser.add_argument("paths", nargs="+", type=Path)
    publish_parser.set_defaults(func=cmd_publish)

    create_parser = subparsers.add_parser("create", help="Generate narration and submit a render job")
    create_parser.add_argument("urls", nargs="*", help="Public asset URLs, in story order")
    create_parser.add_argument("--file", dest="files", type=Path, action="append", default=[])
    create_parser.add_argument("--theme", help="Story theme passed to the narrator")
    create_parser.add_argument("--wait", action="store_true", help="Poll until the video is ready")
    _add_poll_arguments(create_parser)
    create_parser.set_defaults(func=cmd_create)

    status_parser = subparsers.add_parser("status", help="Poll a render job status URL")
    status_parser.add_argument("status_url")
    _add_poll_arguments(status_parser)
    status_parser.set_defaults(func=cmd_status)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    logger = configure_logging(
        "story_pipeline",
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=config.log_file,
    )

    try:
        return args.func(config, args, logger)
    except StoryError as exc:
        logger.error("Story pipeline error: %s", exc)
        return 1
    except (ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


__all__ = ["build_parser", "main"]
