"""Structured logging utilities for the MCP gateway."""

from __future__ import annotations

import json
import logging
from typing import Any

LOGGER_NAME = "mcp_gateway"

logger = logging.getLogger(LOGGER_NAME)


def log_event(*, trace_id: str, transport: str, status: str, **extra: Any) -> None:
    """Emit a JSON log line describing one dispatched message."""

    payload: dict[str, Any] = {
        "trace_id": trace_id,
        "transport": transport,
        "status": status,
    }
    for key, value in extra.items():
        if value is not None:
            payload[key] = value
    logger.info(json.dumps(payload, sort_keys=True, default=str))
