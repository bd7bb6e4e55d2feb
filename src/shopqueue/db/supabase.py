"""Supabase client shared by the shop and queue stores."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from ..config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Optional[Client]:
    """Return the process-wide client, or None when credentials are missing.

    Creating the client does not open a connection; the first query may still
    fail with a network error, which the stores report as StoreUnavailable.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured (SHOPQ_SUPABASE_URL / SHOPQ_SUPABASE_KEY)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as exc:
        logger.error("Failed to create Supabase client: %s", exc)
        return None


def ping(client: Client) -> bool:
    """Cheap reachability check against the shops table."""
    try:
        client.table("shops").select("shop_id").limit(1).execute()
    except Exception as exc:
        logger.warning("Supabase ping failed: %s", exc)
        return False
    return True
