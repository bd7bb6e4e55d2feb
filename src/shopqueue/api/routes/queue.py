"""Queue endpoints for customers (join, cancel, status) and shop owners (serve, complete)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, status

from ...container import Services
from ...errors import ShopQueueError, http_error
from ...schemas.queue import (
    JoinQueueRequest,
    JoinQueueResponse,
    MessageResponse,
    QueueEntryModel,
    QueueEntryResponse,
    QueueListResponse,
    QueueStatsModel,
    QueueStatsResponse,
)
from ..deps import CustomerId, OwnerId, ServicesDep

router = APIRouter(prefix="/queue", tags=["queue"])


@router.post("/join", response_model=JoinQueueResponse, status_code=status.HTTP_201_CREATED)
def join_queue(payload: JoinQueueRequest, customer_id: CustomerId, services: ServicesDep) -> JoinQueueResponse:
    try:
        entry = services.queue.join(payload.shop_id, customer_id, payload.service_type)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return JoinQueueResponse(
        entryId=entry.entry_id,
        ticketNumber=entry.ticket_number,
        position=entry.position,
        estimatedWaitMinutes=entry.estimated_wait_minutes,
    )


@router.delete("/cancel/{entry_id}", response_model=MessageResponse, status_code=status.HTTP_200_OK)
def cancel_queue(entry_id: str, customer_id: CustomerId, services: ServicesDep) -> MessageResponse:
    try:
        services.queue.cancel(entry_id, customer_id)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return MessageResponse(message="Queue entry cancelled successfully")


@router.get("/my-queue", response_model=QueueEntryResponse, status_code=status.HTTP_200_OK)
def my_queue(customer_id: CustomerId, services: ServicesDep) -> QueueEntryResponse:
    entry = services.queue.active_entry(customer_id)
    if entry is None:
        return QueueEntryResponse(data=None, message="No active queue entry")
    return QueueEntryResponse(data=QueueEntryModel.from_entry(entry))


@router.get("/status/{entry_id}", response_model=QueueEntryResponse, status_code=status.HTTP_200_OK)
def entry_status(
    entry_id: str,
    services: ServicesDep,
    shop_id: Optional[str] = Query(default=None, description="Shop to resolve a ticket number against."),
) -> QueueEntryResponse:
    try:
        entry = services.queue.entry_status(entry_id, shop_id=shop_id)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return QueueEntryResponse(data=QueueEntryModel.from_entry(entry))


@router.get("/list", response_model=QueueListResponse, status_code=status.HTTP_200_OK)
def list_queue(services: ServicesDep, shop_id: str = Query(..., description="Shop identifier")) -> QueueListResponse:
    try:
        entries = services.queue.list_queue(shop_id)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return QueueListResponse(
        shopId=shop_id,
        count=len(entries),
        data=[QueueEntryModel.from_entry(entry) for entry in entries],
    )


@router.get("/stats", response_model=QueueStatsResponse, status_code=status.HTTP_200_OK)
def queue_stats(services: ServicesDep, shop_id: str = Query(..., description="Shop identifier")) -> QueueStatsResponse:
    try:
        stats = services.queue.stats(shop_id)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return QueueStatsResponse(data=QueueStatsModel.from_stats(stats))


def _require_entry_owner(entry_id: str, owner_id: str, services: Services) -> None:
    entry = services.queue.entry_status(entry_id)
    services.directory.require_owner(entry.shop_id, owner_id)


@router.patch("/serve/{entry_id}", response_model=QueueEntryResponse, status_code=status.HTTP_200_OK)
def serve_customer(entry_id: str, owner_id: OwnerId, services: ServicesDep) -> QueueEntryResponse:
    try:
        _require_entry_owner(entry_id, owner_id, services)
        entry = services.queue.serve(entry_id)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return QueueEntryResponse(message="Customer service started", data=QueueEntryModel.from_entry(entry))


@router.patch("/complete/{entry_id}", response_model=QueueEntryResponse, status_code=status.HTTP_200_OK)
def complete_service(entry_id: str, owner_id: OwnerId, services: ServicesDep) -> QueueEntryResponse:
    try:
        _require_entry_owner(entry_id, owner_id, services)
        entry = services.queue.complete(entry_id)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return QueueEntryResponse(message="Service completed successfully", data=QueueEntryModel.from_entry(entry))
