"""Request-scoped access to the service container and caller identity.

Sessions are issued elsewhere; the gateway in front of this service forwards the
authenticated principal in ``X-Customer-Id`` or ``X-Owner-Id``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from ..container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def _identity(value: str | None, header: str) -> str:
    if not value or not value.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "kind": "Unauthenticated", "message": f"{header} header is required."},
        )
    return value.strip()


def customer_identity(x_customer_id: Annotated[str | None, Header()] = None) -> str:
    return _identity(x_customer_id, "X-Customer-Id")


def owner_identity(x_owner_id: Annotated[str | None, Header()] = None) -> str:
    return _identity(x_owner_id, "X-Owner-Id")


ServicesDep = Annotated[Services, Depends(get_services)]
CustomerId = Annotated[str, Depends(customer_identity)]
OwnerId = Annotated[str, Depends(owner_identity)]
