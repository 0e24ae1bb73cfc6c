import json
import sys
from datetime import datetime, timezone
from typing import Optional


_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}
_min_level = _LEVELS["info"]


def configure_logging(level: str) -> None:
    global _min_level
    _min_level = _LEVELS.get((level or "info").lower(), _LEVELS["info"])


def log_event(level: str, event: str, **fields) -> None:
    if _LEVELS.get(level.lower(), _LEVELS["info"]) < _min_level:
        return
    payload = {
        "ts": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    try:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    except (OSError, ValueError):
        # best-effort logging
        pass


def token_preview(token: Optional[str]) -> str:
    """First 8 and last 4 characters of a tracking token, safe for log lines."""
    if not token:
        return "NULL"
    if len(token) < 12:
        return "*" * len(token)
    return f"{token[:8]}...{token[-4:]}"
