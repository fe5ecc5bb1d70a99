"""Tests for the shared pipeline logger."""

import logging

import pytest

from subseq import subsample
from subseq.infrastructure.logger import LOGGER_NAME, Logger


@pytest.fixture
def file_logger(tmp_path):
    logger = Logger(log_file=str(tmp_path / "run.log"))
    yield logger
    logger.close_files()


def file_handlers():
    return [
        h for h in logging.getLogger(LOGGER_NAME).handlers if isinstance(h, logging.FileHandler)
    ]


def test_file_output_survives_later_services(file_logger, tmp_path, counts, treatment, ratio_handler):
    subsample(counts, [0.5], ratio_handler, treatment, seed=1)
    assert len(file_handlers()) == 1
    assert "Subsampling finished" in (tmp_path / "run.log").read_text(encoding="utf-8")


def test_console_handler_attached_once():
    Logger()
    Logger()
    handlers = logging.getLogger(LOGGER_NAME).handlers
    consoles = [h for h in handlers if type(h) is logging.StreamHandler]
    assert len(consoles) == 1


def test_same_file_not_attached_twice(file_logger, tmp_path):
    Logger(log_file=str(tmp_path / "run.log"))
    assert len(file_handlers()) == 1


def test_close_files_detaches_handlers(tmp_path):
    logger = Logger(log_file=str(tmp_path / "other.log"))
    logger.close_files()
    assert file_handlers() == []
