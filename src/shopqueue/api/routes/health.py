"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...data.shop_repository import SupabaseShopStore
from ...db.supabase import ping
from ..deps import ServicesDep

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/store", status_code=status.HTTP_200_OK)
def health_store(services: ServicesDep) -> dict:
    """Report which backend holds shops and queues and whether it answers."""
    if isinstance(services.shops, SupabaseShopStore):
        return {"backend": "supabase", "healthy": ping(services.shops.client)}
    return {"backend": "memory", "healthy": True, "activeShops": len(services.directory.list_shops(active=True))}
