"""Pipeline log output.

Effects, trackers, capture and config all report through log_event, tagged
with the component name, e.g.

    [INFO][LightOrgan] Band layout | channels=32 bins=116

Per-frame chatter (tracker resets, stream status) goes out at DEBUG so the
default INFO level only shows layout, capture and config events.
"""
from __future__ import annotations

import logging
from typing import Any

DEFAULT_TAG = "LightOrgan"

_logger = logging.getLogger("lightorgan")
if not _logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s][%(tag)s] %(message)s"))
    _logger.addHandler(handler)
    _logger.setLevel(logging.INFO)


class _TagAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: dict[str, Any]):
        kwargs.setdefault("extra", {})["tag"] = kwargs.pop("tag", DEFAULT_TAG)
        return msg, kwargs


_tagged = _TagAdapter(_logger, {})


def _level_value(level: str | None) -> int:
    # Accept "warn" as well as the stdlib names; unknown names log at INFO
    name = (level or "INFO").upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    """Log message under tag, appending fields as key=value pairs."""
    if fields:
        message = message + " | " + " ".join(f"{k}={v}" for k, v in fields.items())
    _tagged.log(_level_value(level), message, tag=tag)


def set_log_level(level: str | None) -> None:
    """DEBUG/INFO/WARNING/ERROR, case-insensitive."""
    _logger.setLevel(_level_value(level))


def get_log_level() -> str:
    return logging.getLevelName(_logger.level)
