import time
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit


# ----------------------------
# Helpers
# ----------------------------
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ts() -> float:
    return time.time()


def ms_to_iso(ms: int) -> str:
    # millisecond precision with a Z suffix: 2023-11-14T22:13:20.000Z
    dt = EPOCH + timedelta(milliseconds=ms)
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"
        f".{dt.microsecond // 1000:03d}Z"
    )


def to_iso(ts: float) -> str:
    return ms_to_iso(int(ts * 1000))


def is_web_url(url: str) -> bool:
    try:
        scheme = urlsplit(url.strip()).scheme
    except ValueError:
        return False
    return scheme.lower() in ("http", "https")
