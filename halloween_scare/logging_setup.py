"""Logging configuration shared by the scare studio and the story pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

PACKAGE_LOGGERS: Tuple[str, ...] = ("halloween_scare", "story_pipeline")
DEFAULT_LOG_FILE = Path("logs") / "halloween_scare.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def package_log_file(log_file: Union[str, Path, None], package: str) -> Optional[Path]:
    """Log path for ``package``.

    The first package logs to ``log_file`` itself; the others write a sibling
    file named after the package, so ``logs/app.log`` yields
    ``logs/story_pipeline.log`` for the story pipeline.
    """
    if not log_file:
        return None
    path = Path(log_file)
    if not path.is_absolute():
        path = Path.cwd() / path
    if package == PACKAGE_LOGGERS[0]:
        return path
    return path.with_name(f"{package}{path.suffix or '.log'}")


def _open_file_handler(path: Path) -> Tuple[Optional[logging.Handler], Optional[str]]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, encoding="utf-8"), None
    except OSError as exc:
        return None, f"File logging disabled, cannot open '{path}': {exc}"


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(
    logger_name: Optional[str] = None,
    *,
    level: int = logging.INFO,
    log_file: Union[str, Path, None] = DEFAULT_LOG_FILE,
    include_stream: bool = True,
    packages: Sequence[str] = PACKAGE_LOGGERS,
) -> logging.Logger:
    """Attach handlers to each package logger and return ``logger_name``.

    Every package gets its own file handler (see :func:`package_log_file`)
    plus an optional console handler. Handlers from a previous call are
    closed first, so repeated CLI invocations in one process never double
    log. Package loggers stop propagating to the root logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    warnings: List[Tuple[logging.Logger, str]] = []

    for package in packages:
        logger = logging.getLogger(package)
        _reset_handlers(logger)
        logger.setLevel(level)
        logger.propagate = False

        path = package_log_file(log_file, package)
        if path is not None:
            file_handler, warning = _open_file_handler(path)
            if file_handler is not None:
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
            if warning:
                warnings.append((logger, warning))

        if include_stream:
            stream_handler = logging.StreamHandler()
            stream_handler.setFormatter(formatter)
            logger.addHandler(stream_handler)

    for logger, warning in warnings:
        logger.warning(warning)

    return logging.getLogger(logger_name or packages[0])


__all__ = ["PACKAGE_LOGGERS", "configure_logging", "package_log_file"]
