"""Centralized logging configuration with JSON-formatted extras."""

import json
import logging
import sys

from product_factory.config import settings

ROOT_LOGGER_NAME = "product_factory"


class JSONExtrasFormatter(logging.Formatter):
    """Formatter that renders a readable prefix followed by extras as JSON.

    Output format:
        2026-01-15 10:30:45 | INFO     | product_factory.services.scorer | Opportunity created {"slug": "x"}
    """

    RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
        "asctime",
        "message",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        timestamp = self.formatTime(record, self.datefmt)
        line = f"{timestamp} | {record.levelname:<8} | {record.name} | {record.message}"

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED_ATTRS and not key.startswith("_")
        }
        if extras:
            try:
                line = f"{line} {json.dumps(extras, default=str, ensure_ascii=False)}"
            except (TypeError, ValueError):
                line = f"{line} {extras!r}"

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line = f"{line}\n{record.exc_text}"

        return line


def setup_logging(level: str | None = None) -> None:
    """Attach a stdout handler with JSON extras to the package logger.

    Calling it more than once only adjusts the level.
    """
    resolved_level = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(resolved_level)
    if logger.handlers:
        for existing in logger.handlers:
            existing.setLevel(resolved_level)
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved_level)
    handler.setFormatter(JSONExtrasFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    # Keep output single-sourced when the host also configures the root logger
    logger.propagate = False
