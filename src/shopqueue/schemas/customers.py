"""Customer-facing API schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .shops import CoordinatesModel


class CustomerLocationResponse(BaseModel):
    status: str = "success"
    customerId: str
    coordinates: CoordinatesModel
    recordedAt: datetime
