"""Database persistence for trip snapshots."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..db.supabase import get_supabase_client

logger = logging.getLogger(__name__)

TRIPS_TABLE = "trips"


def save_trip_to_database(snapshot: dict[str, Any]) -> bool:
    """Upsert a trip snapshot into the ``trips`` table.

    Args:
        snapshot: Serialized trip as produced by ``trip_to_snapshot``

    Returns:
        True when the row was written, False when the database is not
        configured or the write failed.
    """
    supabase = get_supabase_client()
    if not supabase:
        return False

    row = {
        "id": snapshot["id"],
        "name": snapshot.get("name"),
        "payload": snapshot,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        supabase.table(TRIPS_TABLE).upsert(row).execute()
        return True
    except Exception as e:
        logger.warning("Failed to save trip %s to database: %s", snapshot["id"], e)
        return False


def get_trip_from_database(trip_id: str | None = None) -> dict[str, Any] | None:
    """Fetch a trip snapshot; the most recently updated trip when no id is given."""
    supabase = get_supabase_client()
    if not supabase:
        return None

    try:
        query = supabase.table(TRIPS_TABLE).select("payload")
        if trip_id:
            query = query.eq("id", trip_id)
        else:
            query = query.order("updated_at", desc=True)
        response = query.limit(1).execute()
    except Exception as e:
        logger.warning("Failed to load trip from database: %s", e)
        return None

    rows = response.data or []
    if not rows:
        return None
    return rows[0].get("payload")
