from __future__ import annotations

import secrets
from datetime import date


def generate_charge_reference(client_id: int, due_date: date) -> str:
    """Human readable charge reference, e.g. ``CHG-20240115-42-9F1C2A``."""
    rand = secrets.token_hex(3)
    return f"CHG-{due_date:%Y%m%d}-{client_id}-{rand}".upper()
