"""Runtime logging configuration utilities."""

from __future__ import annotations

import logging
from typing import Mapping

from .structured import JsonFormatter

__all__ = ["setup_logging", "TEXT_FORMAT"]

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# discord.py is chatty at INFO while connecting; keep it at WARNING.
_QUIET_LOGGERS = ("discord.gateway", "discord.client", "discord.http")


def _ensure_stream_handler(logger: logging.Logger, formatter: logging.Formatter) -> None:
    """Ensure ``logger`` has a stream handler using ``formatter``."""

    stream_handler_found = False
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            stream_handler_found = True
    if not stream_handler_found:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def setup_logging(
    *,
    level: str | int = logging.INFO,
    fmt: str = "json",
    static_fields: Mapping[str, str] | None = None,
) -> logging.Logger:
    """Configure root logging for the CLI and the bot.

    Parameters
    ----------
    level:
        Root level, either a name such as ``"DEBUG"`` or a ``logging`` constant.
    fmt:
        ``"json"`` for :class:`JsonFormatter` output, ``"text"`` for plain lines.
    static_fields:
        Fields included with every structured log event (JSON output only).

    Returns
    -------
    logging.Logger
        The configured root logger.
    """

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO

    if fmt == "text":
        formatter: logging.Formatter = logging.Formatter(TEXT_FORMAT)
    else:
        formatter = JsonFormatter(static=dict(static_fields or {}))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _ensure_stream_handler(root_logger, formatter)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root_logger
