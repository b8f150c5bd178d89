import json
import logging
import sys
from datetime import datetime, timezone


logger = logging.getLogger("troisquarts")


def configure_logging(level: str = "INFO") -> None:
    if not any(getattr(h, "_troisquarts", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler._troisquarts = True
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))


def log_event(level: str, event: str, **fields) -> None:
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger.log(numeric, json.dumps(payload, ensure_ascii=False, default=str))
