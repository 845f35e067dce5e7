from __future__ import annotations

import uuid


def new_local_id() -> str:
    """Display-only identifier for a staged payload. Never sent to the server."""
    return str(uuid.uuid4())
