"""Logging setup with run / node correlation.

Both output formats carry the run and node being executed: JSON records get
``run_id`` / ``node_id`` fields, text lines get a ``[run/node]`` tag.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from contextlib import contextmanager
from typing import Iterator

from pythonjsonlogger import jsonlogger

ctx_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
ctx_node_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("node_id", default=None)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(correlation)s%(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Provider HTTP chatter stays at WARNING unless something breaks
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


@contextmanager
def log_context(*, run_id: str | None = None, node_id: str | None = None) -> Iterator[None]:
    """Tag every record logged inside the block with a run and/or node id."""
    tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []
    if run_id is not None:
        tokens.append((ctx_run_id, ctx_run_id.set(run_id)))
    if node_id is not None:
        tokens.append((ctx_node_id, ctx_node_id.set(node_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class CorrelationFilter(logging.Filter):
    """Sets ``record.correlation`` for the text formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        run_id = ctx_run_id.get()
        node_id = ctx_node_id.get()
        if run_id and node_id:
            record.correlation = f"[{run_id[:8]}/{node_id}] "
        elif run_id:
            record.correlation = f"[{run_id[:8]}] "
        else:
            record.correlation = ""
        return True


class CorrelationJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        for field, var in (("run_id", ctx_run_id), ("node_id", ctx_node_id)):
            value = var.get()
            if value:
                log_record[field] = value


def setup_logger(log_format: str = "text", log_level: str = "INFO") -> logging.Logger:
    """Point the root logger at stdout in the requested format."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(
            CorrelationJsonFormatter(
                JSON_FORMAT,
                rename_fields={"levelname": "level", "asctime": "timestamp"},
            )
        )
    else:
        handler.addFilter(CorrelationFilter())
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root_logger
