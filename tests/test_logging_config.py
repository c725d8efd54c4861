from __future__ import annotations

import logging

from expensy_aks.logging_config import SUCCESS, _build_formatter, _resolve_level, _TagFormatter, log_success


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("expensy_aks.test", level, __file__, 1, msg, (), None)


def test_success_level_sits_between_info_and_warning() -> None:
    assert logging.INFO < SUCCESS < logging.WARNING
    assert logging.getLevelName(SUCCESS) == "SUCCESS"


def test_tag_formatter_colors_whole_tag_and_restores_record() -> None:
    formatter = _TagFormatter(use_color=True)
    record = _record(SUCCESS, "Connected to cluster")

    out = formatter.format(record)

    assert out == "\x1b[32m[SUCCESS]\x1b[0m Connected to cluster"
    assert record.levelname == "SUCCESS"
    assert not hasattr(record, "tag")


def test_tag_formatter_plain_when_disabled() -> None:
    formatter = _TagFormatter(use_color=False)
    assert formatter.format(_record(logging.WARNING, "pending")) == "[WARNING] pending"


def test_debug_format_names_the_logger() -> None:
    record = _record(logging.DEBUG, "Running command: kubectl cluster-info")

    assert _build_formatter(logging.DEBUG, use_color=False).format(record) == (
        "[DEBUG] expensy_aks.test: Running command: kubectl cluster-info"
    )
    assert _build_formatter(logging.INFO, use_color=False).format(_record(logging.INFO, "ok")) == "[INFO] ok"


def test_resolve_level_from_env(monkeypatch) -> None:
    monkeypatch.setenv("EXPENSY_LOG_LEVEL", "debug")
    assert _resolve_level(None) == logging.DEBUG
    assert _resolve_level("success") == SUCCESS
    assert _resolve_level("bogus") == logging.INFO


def test_log_success_emits_success_records(caplog) -> None:
    logger = logging.getLogger("expensy_aks.test")
    with caplog.at_level(logging.INFO):
        log_success(logger, "Namespace %s created", "expensy")

    assert [(r.levelname, r.getMessage()) for r in caplog.records] == [("SUCCESS", "Namespace expensy created")]
