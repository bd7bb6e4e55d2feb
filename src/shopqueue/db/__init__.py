"""Database clients."""

from .supabase import get_supabase_client, ping

__all__ = ["get_supabase_client", "ping"]
