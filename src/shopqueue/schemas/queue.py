"""Pydantic request/response models for queue endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import QueueEntry, ServiceKind
from ..services.queue.engine import QueueStats


class JoinQueueRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shop_id: str = Field(..., alias="shopId")
    service_type: ServiceKind = Field(..., alias="serviceType")


class JoinQueueResponse(BaseModel):
    status: str = "success"
    entryId: str
    ticketNumber: int
    position: int
    estimatedWaitMinutes: int


class QueueEntryModel(BaseModel):
    entryId: str
    shopId: str
    customerId: str
    serviceType: str
    ticketNumber: Optional[int]
    status: str
    position: int
    estimatedWaitMinutes: int
    joinedAt: datetime
    serviceStartedAt: Optional[datetime] = None
    serviceCompletedAt: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> "QueueEntryModel":
        return cls(
            entryId=entry.entry_id,
            shopId=entry.shop_id,
            customerId=entry.customer_id,
            serviceType=entry.service_kind.value,
            ticketNumber=entry.ticket_number,
            status=entry.status.value,
            position=entry.position,
            estimatedWaitMinutes=entry.estimated_wait_minutes,
            joinedAt=entry.joined_at,
            serviceStartedAt=entry.service_started_at,
            serviceCompletedAt=entry.service_completed_at,
        )


class QueueEntryResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None
    data: Optional[QueueEntryModel]


class QueueListResponse(BaseModel):
    status: str = "success"
    shopId: str
    count: int
    data: List[QueueEntryModel]


class QueueStatsModel(BaseModel):
    waiting: int
    inService: int
    completedToday: int
    totalInQueue: int
    estimatedWaitTime: int

    @classmethod
    def from_stats(cls, stats: QueueStats) -> "QueueStatsModel":
        return cls(
            waiting=stats.waiting,
            inService=stats.in_service,
            completedToday=stats.completed_today,
            totalInQueue=stats.total_in_queue,
            estimatedWaitTime=stats.estimated_wait_minutes,
        )


class QueueStatsResponse(BaseModel):
    status: str = "success"
    data: QueueStatsModel


class MessageResponse(BaseModel):
    status: str = "success"
    message: str
