from __future__ import annotations
from enum import StrEnum


class ToolFailureKind(StrEnum):
    """How a failed extraction-tool run is classified from its output."""
    environment = "environment"
    not_found = "not_found"
    bot_check = "bot_check"
    cookies_invalid = "cookies_invalid"
    live_not_started = "live_not_started"
    transient = "transient"
    other = "other"
