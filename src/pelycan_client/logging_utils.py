import json
import logging
from datetime import datetime, timezone


def log_action(
    logger: logging.Logger,
    kind: str,
    action: str,
    outcome: str,
    request_id: str | None = None,
    state: str | None = None,
) -> None:
    """Emit one JSON line per workflow action. Handlers are left to the application."""
    logger.info(
        json.dumps(
            {
                "ts": datetime.now(timezone.utc).isoformat(),
                "level": "INFO",
                "kind": kind,
                "action": action,
                "request_id": request_id,
                "state": state,
                "outcome": outcome,
            }
        )
    )
