"""loguru sinks for the agent process.

Every log line carries the three correlation ids (``user_id``,
``client_id``, ``request_id``).  Components bind them explicitly from their
:class:`~models.record.RequestContext`; lines emitted outside a request fall
back to ``"unknown"``.
"""

from __future__ import annotations

import json
import pathlib
import sys
from typing import Optional

from loguru import logger

from config.settings import Settings, settings as default_settings

API_NAME = "agentApi"

_CORRELATION_DEFAULTS = {
    "user_id": "unknown",
    "client_id": "unknown",
    "request_id": "unknown",
}

TEXT_FORMAT = (
    "{time:DD/MM/YYYY HH:mm:ss.SSSZZ} | {level: <8} | "
    "{extra[user_id]} | {extra[client_id]} | {extra[request_id]} | "
    "{function} | {message}"
)


def _serialize(record) -> str:
    """Render a record in the log-shipping JSON shape."""
    extra = record["extra"]
    payload = {
        "level": record["level"].name,
        "time": record["time"].strftime("%d/%m/%Y %H:%M:%S.%f")[:-3]
        + record["time"].strftime("%z"),
        "api": API_NAME,
        "method": record["function"],
        "userId": extra.get("user_id", "unknown"),
        "clientId": extra.get("client_id", "unknown"),
        "requestId": extra.get("request_id", "unknown"),
        "message": record["message"],
    }
    if record["exception"] is not None:
        payload["error"] = repr(record["exception"].value)
    return json.dumps(payload, ensure_ascii=False)


def _patch_json(record) -> None:
    record["extra"]["serialized"] = _serialize(record)


def _patch_none(record) -> None:
    return None


def configure_logging(config: Optional[Settings] = None) -> None:
    """Install stdout (and optional rotating file) sinks."""
    config = config or default_settings
    logger.remove()
    logger.configure(
        extra=dict(_CORRELATION_DEFAULTS),
        patcher=_patch_json if config.log_json else _patch_none,
    )
    fmt = "{extra[serialized]}" if config.log_json else TEXT_FORMAT

    logger.add(sys.stdout, level=config.log_level, colorize=False, format=fmt)
    if config.log_file:
        pathlib.Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            config.log_file,
            level=config.log_level,
            format=fmt,
            rotation="10 MB",
            retention="7 days",
        )
