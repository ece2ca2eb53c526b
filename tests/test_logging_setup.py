import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from halloween_scare.logging_setup import PACKAGE_LOGGERS, configure_logging, package_log_file


@pytest.fixture(autouse=True)
def restore_package_loggers():
    yield
    for name in PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


def test_package_log_files_are_siblings(tmp_path):
    base = tmp_path / "logs" / "studio.log"

    assert package_log_file(base, "halloween_scare") == base
    assert package_log_file(base, "story_pipeline") == tmp_path / "logs" / "story_pipeline.log"
    assert package_log_file(None, "story_pipeline") is None


def test_each_package_writes_its_own_file(tmp_path):
    log_file = tmp_path / "logs" / "halloween_scare.log"

    logger = configure_logging("story_pipeline", log_file=log_file, include_stream=False)
    logging.getLogger("halloween_scare.composer").info("composed timeline")
    logger.info("job submitted")
    for name in PACKAGE_LOGGERS:
        for handler in logging.getLogger(name).handlers:
            handler.flush()

    assert logger.name == "story_pipeline"
    studio_text = log_file.read_text(encoding="utf-8")
    story_text = (tmp_path / "logs" / "story_pipeline.log").read_text(encoding="utf-8")
    assert "halloween_scare.composer - INFO - composed timeline" in studio_text
    assert "job submitted" not in studio_text
    assert "story_pipeline - INFO - job submitted" in story_text


def test_repeated_configuration_does_not_stack_handlers(tmp_path):
    for _ in range(3):
        configure_logging(log_file=tmp_path / "app.log")

    for name in PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        assert len(logger.handlers) == 2
        assert logger.propagate is False


def test_unwritable_log_path_falls_back_to_console(tmp_path, capsys):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")

    logger = configure_logging(log_file=blocker / "app.log", level=logging.DEBUG)

    assert logger.name == "halloween_scare"
    assert all(isinstance(handler, logging.StreamHandler) for handler in logger.handlers)
    assert not any(isinstance(handler, logging.FileHandler) for handler in logger.handlers)
    assert "File logging disabled" in capsys.readouterr().err
