from __future__ import annotations

import logging
import os
import sys

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_DEFAULT_LOG_LEVEL = "INFO"
_RESET = "\x1b[0m"
_TAG_COLORS = {
    "DEBUG": "\x1b[36m",
    "INFO": "\x1b[34m",
    "SUCCESS": "\x1b[32m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[1;31m",
}
_FORMAT = "%(tag)s %(message)s"
_DEBUG_FORMAT = "%(tag)s %(name)s: %(message)s"


class _TagFormatter(logging.Formatter):
    """Prefix each message with a ``[LEVEL]`` tag, colored per level on a terminal."""

    def __init__(self, fmt: str = _FORMAT, *, use_color: bool) -> None:
        super().__init__(fmt=fmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        tag = f"[{record.levelname}]"
        color = _TAG_COLORS.get(record.levelname) if self.use_color else None
        record.tag = f"{color}{tag}{_RESET}" if color else tag
        try:
            return super().format(record)
        finally:
            del record.tag


def log_success(logger: logging.Logger, msg: str, *args: object) -> None:
    logger.log(SUCCESS, msg, *args)


def _should_use_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    return sys.stderr.isatty()


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    candidate = (level or os.getenv("EXPENSY_LOG_LEVEL", _DEFAULT_LOG_LEVEL)).upper()
    resolved = logging.getLevelName(candidate)
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _build_formatter(level: int, *, use_color: bool) -> _TagFormatter:
    # Logger names only help when tracing adapter calls.
    fmt = _DEBUG_FORMAT if level <= logging.DEBUG else _FORMAT
    return _TagFormatter(fmt, use_color=use_color)


def configure_logging(*, level: str | int | None = None, force: bool = False) -> None:
    root = logging.getLogger()
    resolved_level = _resolve_level(level)
    root.setLevel(resolved_level)

    if root.handlers and not force:
        for handler in root.handlers:
            handler.setLevel(resolved_level)
            if isinstance(handler.formatter, _TagFormatter):
                handler.setFormatter(_build_formatter(resolved_level, use_color=handler.formatter.use_color))
        return

    handler = logging.StreamHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(_build_formatter(resolved_level, use_color=_should_use_color()))
    root.handlers.clear()
    root.addHandler(handler)
