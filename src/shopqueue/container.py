"""Wiring of stores, the notification hub and the services built on them."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import settings
from .data.customer_repository import CustomerLocationStore
from .data.queue_repository import InMemoryQueueStore, QueueStore, SupabaseQueueStore
from .data.shop_repository import InMemoryShopStore, ShopStore, SupabaseShopStore
from .services.directory.service import ShopDirectory
from .services.discovery.service import DiscoveryService
from .services.notifications.hub import NotificationHub
from .services.queue.engine import QueueEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    hub: NotificationHub
    shops: ShopStore
    queue_store: QueueStore
    customers: CustomerLocationStore
    directory: ShopDirectory
    queue: QueueEngine
    discovery: DiscoveryService

    def close(self) -> None:
        self.discovery.close()


def _stores(backend: str) -> tuple[ShopStore, QueueStore]:
    if backend == "supabase":
        from .db.supabase import get_supabase_client

        client = get_supabase_client()
        if client is not None:
            return SupabaseShopStore(client), SupabaseQueueStore(client)
        logger.warning("Supabase backend requested but not configured - using in-memory stores")
    return InMemoryShopStore(), InMemoryQueueStore()


def build_services(
    shops: ShopStore | None = None,
    queue_store: QueueStore | None = None,
    *,
    backend: str | None = None,
    geo_timeout_seconds: float | None = None,
) -> Services:
    if shops is None or queue_store is None:
        default_shops, default_queue = _stores(backend or settings.store_backend)
        shops = shops or default_shops
        queue_store = queue_store or default_queue
    hub = NotificationHub()
    directory = ShopDirectory(shops, hub)
    engine = QueueEngine(queue_store, directory, hub)
    discovery = DiscoveryService(shops, engine, timeout_seconds=geo_timeout_seconds)
    return Services(
        hub=hub,
        shops=shops,
        queue_store=queue_store,
        customers=CustomerLocationStore(),
        directory=directory,
        queue=engine,
        discovery=discovery,
    )
