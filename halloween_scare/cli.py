"""
Command line entrypoint for the scare studio.
"""

from __future__ import annotations

import argparse
import base64
import logging
import mimetypes
from dataclasses import replace
from pathlib import Path
from typing import Optional

from halloween_scare.app import HalloweenStudio
from halloween_scare.composer import DEFAULT_IMAGE_SECONDS
from halloween_scare.config import Config, load_config
from halloween_scare.logging_setup import configure_logging
from halloween_scare.models import HalloweenFilter, save_image
from halloween_scare.quiz import EXPRESSION_TO_ANSWER
from halloween_scare.recorder import RecordingError
from halloween_scare.storage import ArtifactNotFoundError

FILTER_CHOICES = [item.value for item in HalloweenFilter] + ["none"]


def _default_output(config: Config, photo: Path, suffix: str) -> Path:
    return config.render.output_dir / f"{photo.stem}_{suffix}"


def _cmd_filter(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    filter_id = HalloweenFilter.parse(args.filter)
    filtered = studio.filter_image(studio.load_photo(args.photo), filter_id)
    output = args.output or _default_output(studio.config, args.photo, f"{args.filter}.png")
    written = save_image(filtered, output)
    logger.info("Filtered image written to %s", written)
    return 0


def _cmd_scare(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    filter_id = HalloweenFilter.parse(args.filter)
    output = args.output or _default_output(studio.config, args.photo, f"{args.filter}_scare")
    result = studio.create_scare_video(args.photo, filter_id, output, with_roast=args.roast)
    if result.roast:
        logger.info("Roast: %s", result.roast)
    if args.store:
        artifact_id = studio.save_artifact(result.artifact, filter_id, result.roast)
        logger.info("Stored clip id: %s", artifact_id)
    return 0


def _cmd_clip(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    filter_id = HalloweenFilter.parse(args.filter)
    output = args.output or _default_output(studio.config, args.photo, f"{args.filter}_clip")
    result = studio.create_jumpscare_clip(args.photo, filter_id, output)
    logger.info("Jumpscare clip written to %s (%s frames)", result.output_path, result.artifact.frame_count)
    return 0


def _cmd_reel(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    output = args.output or studio.config.render.output_dir / "horror_reel"
    result = studio.create_horror_reel(args.photos, output, image_seconds=args.seconds)
    for index, chapter in enumerate(result.chapters, start=1):
        print(f"Chapter {index}: {chapter}")
    if args.slides_dir:
        for index, slide in enumerate(result.slides, start=1):
            save_image(slide, args.slides_dir / f"story-{index}.png")
        logger.info("Saved %s story slides to %s", len(result.slides), args.slides_dir)
    logger.info(
        "Horror reel written to %s (%s frames, %s slides)",
        result.output_path,
        result.artifact.frame_count,
        len(result.slides),
    )
    return 0


def _cmd_roast(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    filter_id = HalloweenFilter.parse(args.filter)
    image = studio.load_photo(args.photo)
    if args.apply:
        image = studio.filter_image(image, filter_id)
    print(studio.roast(image, filter_id))
    return 0


def _cmd_store(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    data = args.clip.read_bytes()
    content_type = args.content_type or mimetypes.guess_type(args.clip.name)[0]
    artifact_id = studio.store.save(
        base64.b64encode(data).decode("ascii"),
        args.filter,
        roast_text=args.roast_text,
        content_type=content_type,
    )
    print(artifact_id)
    return 0


def _cmd_fetch(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    stored = studio.store.load(args.artifact_id)
    roast = studio.store.roast_for(args.artifact_id)
    extension = mimetypes.guess_extension(stored.content_type.split(";", 1)[0]) or ".bin"
    output = args.output or studio.config.render.output_dir / f"{stored.id}{extension}"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(stored.data)
    logger.info(
        "Fetched clip %s (%s, filter=%s, created %s) to %s",
        stored.id,
        stored.content_type,
        stored.filter_type,
        stored.created_at.isoformat(),
        output,
    )
    if roast:
        logger.info("Roast: %s", roast)
    return 0


def _cmd_delete(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    studio.store.delete(args.artifact_id)
    return 0


def _cmd_quiz(studio: HalloweenStudio, args: argparse.Namespace, logger: logging.Logger) -> int:
    question = studio.question_cache.get_or_refill()
    print(question.question)
    for key, option in question.options.items():
        print(f"  {key}) {option}")
    if args.answer is None:
        return 0
    answer = EXPRESSION_TO_ANSWER.get(args.answer.lower(), args.answer)
    if question.is_correct(answer):
        print("Correct! You may pass.")
        return 0
    print(f"Wrong! The answer was {question.correct_answer}.")
    return 1


def _add_filter_argument(parser: argparse.ArgumentParser, default: str = "vampire") -> None:
    parser.add_argument(
        "--filter",
        choices=FILTER_CHOICES,
        default=default,
        help=f"Filter theme to apply (default: {default})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Halloween photo filters and jumpscare clips.")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-log-file", action="store_true", help="Only log to the console")

    subparsers = parser.add_subparsers(dest="command", required=True)

    filter_parser = subparsers.add_parser("filter", help="Apply a filter and save a PNG")
    filter_parser.add_argument("photo", type=Path)
    _add_filter_argument(filter_parser)
    filter_parser.add_argument("--output", type=Path)
    filter_parser.set_defaults(handler=_cmd_filter)

    scare_parser = subparsers.add_parser("scare", help="Record the full jumpscare sequence")
    scare_parser.add_argument("photo", type=Path)
    _add_filter_argument(scare_parser)
    scare_parser.add_argument("--output", type=Path)
    scare_parser.add_argument("--roast", action="store_true", help="Also request an AI roast")
    scare_parser.add_argument("--store", action="store_true", help="Persist the clip in the database")
    scare_parser.set_defaults(handler=_cmd_scare)

    clip_parser = subparsers.add_parser("clip", help="Record the short clip ending on a jumpscare photo")
    clip_parser.add_argument("photo", type=Path)
    _add_filter_argument(clip_parser)
    clip_parser.add_argument("--output", type=Path)
    clip_parser.add_argument(
        "--jumpscare-image",
        dest="jumpscare_images",
        type=Path,
        action="append",
        help="Candidate jumpscare photo (repeatable, overrides config)",
    )
    clip_parser.set_defaults(handler=_cmd_clip)

    reel_parser = subparsers.add_parser("reel", help="Turn 4-8 photos into a captioned horror story reel")
    reel_parser.add_argument("photos", nargs="+", type=Path, help="Photos in chapter order")
    reel_parser.add_argument(
        "--seconds",
        type=int,
        default=DEFAULT_IMAGE_SECONDS,
        help=f"Seconds each slide stays on screen, 1-5 (default: {DEFAULT_IMAGE_SECONDS})",
    )
    reel_parser.add_argument("--output", type=Path)
    reel_parser.add_argument("--slides-dir", type=Path, help="Also save each captioned slide as a PNG")
    reel_parser.set_defaults(handler=_cmd_reel)

    roast_parser = subparsers.add_parser("roast", help="Ask the AI for a costume roast")
    roast_parser.add_argument("photo", type=Path)
    _add_filter_argument(roast_parser, default="none")
    roast_parser.add_argument("--apply", action="store_true", help="Filter the photo before sending it")
    roast_parser.set_defaults(handler=_cmd_roast)

    store_parser = subparsers.add_parser("store", help="Persist an encoded clip")
    store_parser.add_argument("clip", type=Path)
    store_parser.add_argument("--filter", required=True, help="Filter tag stored with the clip")
    store_parser.add_argument("--roast-text")
    store_parser.add_argument("--content-type")
    store_parser.set_defaults(handler=_cmd_store)

    fetch_parser = subparsers.add_parser("fetch", help="Export a stored clip")
    fetch_parser.add_argument("artifact_id")
    fetch_parser.add_argument("--output", type=Path)
    fetch_parser.set_defaults(handler=_cmd_fetch)

    delete_parser = subparsers.add_parser("delete", help="Delete a stored clip and its roast")
    delete_parser.add_argument("artifact_id")
    delete_parser.set_defaults(handler=_cmd_delete)

    quiz_parser = subparsers.add_parser("quiz", help="Answer a data-structures question")
    quiz_parser.add_argument(
        "--answer",
        help="Option letter A-D or an expression (happy, surprised, neutral, angry)",
    )
    quiz_parser.set_defaults(handler=_cmd_quiz)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if getattr(args, "jumpscare_images", None):
        config = replace(config, render=replace(config.render, jumpscare_images=tuple(args.jumpscare_images)))

    logger = configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=None if args.no_log_file else config.log_file,
    )

    studio = HalloweenStudio(config, logger)
    try:
        return args.handler(studio, args, logger)
    except (RecordingError, ArtifactNotFoundError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        studio.close()


__all__ = ["build_parser", "main"]
