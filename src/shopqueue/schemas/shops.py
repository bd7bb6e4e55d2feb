"""Pydantic request/response models for shop and discovery endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import Address, OperatingHours, ServiceKind, Shop
from ..services.directory.service import display_address, effective_is_open
from ..services.discovery.service import EnrichedShop, NearbyResult
from ..services.outputs.formatter import format_distance, format_radius, format_wait_time


class CoordinatesModel(BaseModel):
    latitude: float
    longitude: float


class AddressModel(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""

    def to_domain(self) -> Address:
        return Address(street=self.street, city=self.city, state=self.state, pincode=self.pincode)


class HoursModel(BaseModel):
    opening: str = Field(..., description="Opening time, HH:MM (24h).")
    closing: str = Field(..., description="Closing time, HH:MM (24h).")

    def to_domain(self) -> OperatingHours:
        return OperatingHours(opening=self.opening, closing=self.closing)


class ShopRegistrationRequest(BaseModel):
    name: str
    phone: str
    # Optional here so a missing location is reported as MissingLocation, not a 422.
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[AddressModel] = None
    services: Optional[List[ServiceKind]] = None
    hours: Optional[HoursModel] = None
    average_service_minutes: Optional[int] = Field(default=None, ge=1, le=480)
    is_test_data: bool = Field(default=False, description="Fixture shops never appear in discovery.")


class ShopUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[AddressModel] = None
    services: Optional[List[ServiceKind]] = None
    hours: Optional[HoursModel] = None
    average_service_minutes: Optional[int] = Field(default=None, ge=1, le=480)


class LocationUpdateRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ToggleStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_open: Optional[bool] = Field(
        ...,
        alias="isOpen",
        description="True/False overrides operating hours; null returns to hours-based status.",
    )


class ActiveStatusRequest(BaseModel):
    active: bool


class ShopModel(BaseModel):
    shopId: str
    name: str
    ownerId: str
    phone: str
    address: AddressModel
    displayAddress: str
    coordinates: CoordinatesModel
    rating: float
    totalReviews: int
    services: List[str]
    hours: HoursModel
    isOpen: Optional[bool]
    isOpenNow: bool
    averageServiceMinutes: int
    isActive: bool
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_shop(cls, shop: Shop, now: datetime | None = None) -> "ShopModel":
        return cls(
            shopId=shop.shop_id,
            name=shop.name,
            ownerId=shop.owner_id,
            phone=shop.phone,
            address=AddressModel(
                street=shop.address.street,
                city=shop.address.city,
                state=shop.address.state,
                pincode=shop.address.pincode,
            ),
            displayAddress=display_address(shop),
            coordinates=CoordinatesModel(latitude=shop.location.latitude, longitude=shop.location.longitude),
            rating=shop.rating,
            totalReviews=shop.total_reviews,
            services=[service.value for service in shop.services],
            hours=HoursModel(opening=shop.hours.opening, closing=shop.hours.closing),
            isOpen=shop.is_open,
            isOpenNow=effective_is_open(shop, now),
            averageServiceMinutes=shop.average_service_minutes,
            isActive=shop.is_active,
            createdAt=shop.created_at,
            updatedAt=shop.updated_at,
        )


class ShopListResponse(BaseModel):
    status: str = "success"
    count: int
    data: List[ShopModel]


class ShopStatusResponse(BaseModel):
    status: str = "success"
    shopId: str
    shopName: str
    isOpen: bool


class NearbyShopModel(BaseModel):
    id: str
    name: str
    owner: str
    phone: str
    rating: float
    totalRatings: int
    distance: float = Field(..., description="Kilometers from the query origin.")
    distanceText: str
    queueLength: int
    estimatedWaitTime: int = Field(..., description="Minutes.")
    waitTimeText: str
    isOpen: bool
    services: List[str]
    address: str
    hours: HoursModel
    coordinates: CoordinatesModel

    @classmethod
    def from_enriched(cls, item: EnrichedShop) -> "NearbyShopModel":
        shop = item.shop
        return cls(
            id=shop.shop_id,
            name=shop.name,
            owner=shop.owner_id,
            phone=shop.phone,
            rating=shop.rating,
            totalRatings=shop.total_reviews,
            distance=round(item.distance_km, 2),
            distanceText=format_distance(item.distance_km),
            queueLength=item.queue_length,
            estimatedWaitTime=item.estimated_wait_minutes,
            waitTimeText=format_wait_time(item.estimated_wait_minutes),
            isOpen=item.is_open,
            services=[service.value for service in shop.services],
            address=display_address(shop),
            hours=HoursModel(opening=shop.hours.opening, closing=shop.hours.closing),
            coordinates=CoordinatesModel(latitude=shop.location.latitude, longitude=shop.location.longitude),
        )


class NearbyShopsResponse(BaseModel):
    status: str = "success"
    count: int
    radius: str
    userLocation: CoordinatesModel
    data: List[NearbyShopModel]
    timestamp: datetime

    @classmethod
    def from_result(cls, result: NearbyResult) -> "NearbyShopsResponse":
        return cls(
            count=result.count,
            radius=format_radius(result.radius_m),
            userLocation=CoordinatesModel(
                latitude=result.origin.latitude, longitude=result.origin.longitude
            ),
            data=[NearbyShopModel.from_enriched(item) for item in result.shops],
            timestamp=result.timestamp,
        )
