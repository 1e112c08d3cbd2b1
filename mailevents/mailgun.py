from __future__ import annotations
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException

from .helpers import ms_to_iso, to_iso

logger = logging.getLogger(__name__)

EVENT_OPENED = "opened"
EVENT_CLICKED = "clicked"


@dataclass
class EngagementEvent:
    kind: Optional[str]
    email: Optional[str]
    domain: Optional[str]
    subject: Optional[str]
    ip: Optional[str]
    user_agent: Optional[str]
    timestamp: str
    url: Optional[str] = None


def parse_body(payload: bytes) -> Any:
    try:
        return json.loads(payload.decode())
    except (ValueError, RecursionError):
        # ValueError covers JSONDecodeError and UnicodeDecodeError
        raise HTTPException(status_code=400, detail="Invalid JSON")


def event_data(payload: Any) -> Optional[dict]:
    """Return the nested ``event-data`` object, or None if there is none."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("event-data")
    if not data or not isinstance(data, dict):
        return None
    return data


def _text(value: Any) -> Optional[str]:
    # empty and missing values are stored as NULL
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def _dig(d: Any, *keys: str) -> Any:
    for k in keys:
        if not isinstance(d, dict):
            return None
        d = d.get(k)
    return d


def client_user_agent(client_info: Any) -> Optional[str]:
    """
    Combine mailgun's ``client-info`` into one string:
    "<client_name> <client_type> <user_agent>", stripped.
    """
    if not isinstance(client_info, dict):
        return None
    parts = [
        _text(client_info.get(k)) or ""
        for k in ("client_name", "client_type", "user_agent")
    ]
    return " ".join(parts).strip() or None


def event_timestamp(raw: Any, received_at: float) -> str:
    """
    Mailgun sends epoch seconds (possibly fractional). Anything we can't read
    as a finite number falls back to the time we received the webhook.
    """
    seconds: Optional[float] = None
    numeric = isinstance(raw, (int, float)) and not isinstance(raw, bool)
    if numeric or (isinstance(raw, str) and raw.strip()):
        try:
            seconds = float(raw)
        except (OverflowError, ValueError):
            seconds = None

    if seconds is not None and math.isfinite(seconds):
        try:
            return ms_to_iso(int(seconds * 1000))
        except OverflowError:
            pass

    logger.warning(
        "Unusable event timestamp %r, using receipt time instead", raw
    )
    return to_iso(received_at)


def parse_event(data: dict, received_at: float) -> EngagementEvent:
    kind = data.get("event")
    return EngagementEvent(
        kind=kind if isinstance(kind, str) else _text(kind),
        email=_text(data.get("recipient")),
        domain=_text(data.get("domain")),
        subject=_text(_dig(data, "message", "headers", "subject")),
        ip=_text(data.get("ip")),
        user_agent=client_user_agent(data.get("client-info")),
        timestamp=event_timestamp(data.get("timestamp"), received_at),
        url=_text(data.get("url")),
    )
