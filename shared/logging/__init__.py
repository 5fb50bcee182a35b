"""Public logging helpers for the contest bot."""

from __future__ import annotations

from shared.logging.config import setup_logging
from shared.logging.structured import JsonFormatter, get_trace_id, set_trace_id

__all__ = ["JsonFormatter", "get_trace_id", "set_trace_id", "setup_logging"]
