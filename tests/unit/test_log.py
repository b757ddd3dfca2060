from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from wealth_builder.log import get_logger, setup_logging


def test_setup_logging_is_idempotent(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("WEALTH_BUILDER_LOG_LEVEL", raising=False)
    log_file = tmp_path / "logs" / "wb.log"
    logger = setup_logging("DEBUG", log_file=log_file)
    setup_logging("DEBUG", log_file=log_file)
    consoles = [h for h in logger.handlers if getattr(h, "_wb_console", False)]
    files = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(consoles) == 1
    assert len(files) == 1
    assert logger.level == logging.DEBUG
    get_logger("engine").debug("hello")
    for h in files:
        h.flush()
    assert "hello" in log_file.read_text(encoding="utf-8")
    for h in files:
        logger.removeHandler(h)
        h.close()


def test_env_level_wins(monkeypatch) -> None:
    monkeypatch.setenv("WEALTH_BUILDER_LOG_LEVEL", "warning")
    logger = setup_logging("DEBUG")
    assert logger.level == logging.WARNING


def test_get_logger_namespaces() -> None:
    assert get_logger("x").name == "wealth_builder.x"
    assert get_logger("wealth_builder.engine.simulator").name == "wealth_builder.engine.simulator"
