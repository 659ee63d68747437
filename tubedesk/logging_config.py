from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from tubedesk.config import AppSettings

LOG_FILE_NAME = "tubedesk.log"
ROOT_LOGGER_NAME = "tubedesk"

# Messages follow "<area> <action> key=value ...", e.g. "catalog update_failed video_id=abc".
_MESSAGE_HEAD = re.compile(r"^(?P<area>[a-z_]+) (?P<action>[a-z_]+)(?:\s|$)")


def configure_application_logging(settings: AppSettings) -> Path:
    """Attach a console handler and a JSON file handler to the ``tubedesk`` logger.

    Safe to call repeatedly; previously attached handlers are closed first.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(sys.stderr, settings.log_level))
    logger.addHandler(_file_handler(log_file))

    logger.debug(
        "logging configured console_level=%s path=%s",
        settings.log_level.upper(),
        log_file,
    )
    return log_file


def _console_handler(stream: TextIO, raw_level: str) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setLevel(_level_from_name(raw_level))
    handler.setFormatter(
        _formatter(structlog.dev.ConsoleRenderer(colors=_is_terminal(stream)))
    )
    return handler


def _file_handler(log_file: Path) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        _formatter(
            _split_message_head,
            _add_source_location,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        )
    )
    return handler


def _formatter(*processors: Processor) -> structlog.stdlib.ProcessorFormatter:
    """The last processor renders; the ones before it still see the log record."""
    pre_chain: list[Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            *processors[:-1],
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            processors[-1],
        ],
    )


def _split_message_head(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    match = _MESSAGE_HEAD.match(str(event_dict.get("event", "")))
    if match is not None:
        event_dict["area"] = match.group("area")
        event_dict["action"] = match.group("action")
    return event_dict


def _add_source_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
    return event_dict


def _level_from_name(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _is_terminal(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False
