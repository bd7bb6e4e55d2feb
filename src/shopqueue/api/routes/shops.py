"""Shop registration, management and nearby discovery endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Query, status

from ...config import settings
from ...errors import InvalidCoordinates, ShopQueueError, http_error
from ...models.domain import Coordinate
from ...schemas.shops import (
    ActiveStatusRequest,
    LocationUpdateRequest,
    NearbyShopsResponse,
    ShopListResponse,
    ShopModel,
    ShopRegistrationRequest,
    ShopStatusResponse,
    ShopUpdateRequest,
    ToggleStatusRequest,
)
from ...services.directory.service import effective_is_open
from ...services.geospatial import make_coordinate
from ..deps import OwnerId, ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shops", tags=["shops"])


def resolve_origin(
    lat: Optional[str],
    lng: Optional[str],
    latitude: Optional[str],
    longitude: Optional[str],
) -> Coordinate:
    """Collapse the ``lat``/``latitude`` and ``lng``/``longitude`` aliases into one coordinate."""

    lat_value = lat if lat not in (None, "") else latitude
    lon_value = lng if lng not in (None, "") else longitude
    if lat_value in (None, "") or lon_value in (None, ""):
        raise InvalidCoordinates("Valid latitude and longitude are required.")
    return make_coordinate(lat_value, lon_value)


@router.get("/nearby", response_model=NearbyShopsResponse, status_code=status.HTTP_200_OK)
def nearby_shops(
    services: ServicesDep,
    lat: Optional[str] = Query(default=None, description="Latitude (alias of 'latitude')."),
    lng: Optional[str] = Query(default=None, description="Longitude (alias of 'longitude')."),
    latitude: Optional[str] = Query(default=None),
    longitude: Optional[str] = Query(default=None),
    radius: Optional[str] = Query(default=None, description="Search radius in meters (default 5000)."),
) -> NearbyShopsResponse:
    try:
        origin = resolve_origin(lat, lng, latitude, longitude)
        radius_m = radius if radius not in (None, "") else settings.default_radius_m
        result = services.discovery.find_nearby(origin, radius_m)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return NearbyShopsResponse.from_result(result)


@router.post("/register", response_model=ShopModel, status_code=status.HTTP_201_CREATED)
def register_shop(payload: ShopRegistrationRequest, owner_id: OwnerId, services: ServicesDep) -> ShopModel:
    try:
        shop = services.directory.register(
            name=payload.name,
            owner_id=owner_id,
            phone=payload.phone,
            latitude=payload.latitude,
            longitude=payload.longitude,
            address=payload.address.to_domain() if payload.address else None,
            services=payload.services,
            hours=payload.hours.to_domain() if payload.hours else None,
            average_service_minutes=payload.average_service_minutes,
            is_test=payload.is_test_data,
        )
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return ShopModel.from_shop(shop)


@router.get("", response_model=ShopListResponse, status_code=status.HTTP_200_OK)
def list_shops(
    services: ServicesDep,
    active: Optional[bool] = Query(default=None, description="Filter by active status"),
) -> ShopListResponse:
    shops = services.directory.list_shops(active=active)
    return ShopListResponse(count=len(shops), data=[ShopModel.from_shop(shop) for shop in shops])


@router.get("/{shop_id}", response_model=ShopModel, status_code=status.HTTP_200_OK)
def get_shop(shop_id: str, services: ServicesDep) -> ShopModel:
    try:
        return ShopModel.from_shop(services.directory.get(shop_id))
    except ShopQueueError as exc:
        raise http_error(exc) from exc


@router.patch("/{shop_id}", response_model=ShopModel, status_code=status.HTTP_200_OK)
def update_shop(shop_id: str, payload: ShopUpdateRequest, owner_id: OwnerId, services: ServicesDep) -> ShopModel:
    try:
        shop = services.directory.update(
            shop_id,
            owner_id,
            name=payload.name,
            phone=payload.phone,
            address=payload.address.to_domain() if payload.address else None,
            hours=payload.hours.to_domain() if payload.hours else None,
            services=payload.services,
            average_service_minutes=payload.average_service_minutes,
        )
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return ShopModel.from_shop(shop)


@router.patch("/{shop_id}/location", response_model=ShopModel, status_code=status.HTTP_200_OK)
def update_shop_location(
    shop_id: str, payload: LocationUpdateRequest, owner_id: OwnerId, services: ServicesDep
) -> ShopModel:
    try:
        shop = services.directory.update_location(shop_id, owner_id, payload.latitude, payload.longitude)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return ShopModel.from_shop(shop)


@router.patch("/{shop_id}/toggle-status", response_model=ShopStatusResponse, status_code=status.HTTP_200_OK)
def toggle_shop_status(
    shop_id: str, payload: ToggleStatusRequest, owner_id: OwnerId, services: ServicesDep
) -> ShopStatusResponse:
    try:
        shop = services.directory.set_open(shop_id, owner_id, payload.is_open)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return ShopStatusResponse(shopId=shop.shop_id, shopName=shop.name, isOpen=effective_is_open(shop))


@router.patch("/{shop_id}/active", response_model=ShopModel, status_code=status.HTTP_200_OK)
def set_shop_active(
    shop_id: str, payload: ActiveStatusRequest, owner_id: OwnerId, services: ServicesDep
) -> ShopModel:
    try:
        shop = services.directory.set_active(shop_id, owner_id, payload.active)
    except ShopQueueError as exc:
        raise http_error(exc) from exc
    return ShopModel.from_shop(shop)
