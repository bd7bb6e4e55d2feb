"""Error taxonomy shared by the directory, queue and discovery services."""

from __future__ import annotations

from fastapi import HTTPException, status


class ShopQueueError(Exception):
    """Base error carrying a machine-readable kind and a human-readable message."""

    kind = "ShopQueueError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"status": "error", "kind": self.kind, "message": self.message}


class InvalidCoordinates(ShopQueueError):
    kind = "InvalidCoordinates"


class InvalidRadius(ShopQueueError):
    kind = "InvalidRadius"


class MissingLocation(ShopQueueError):
    kind = "MissingLocation"


class InvalidHours(ShopQueueError):
    kind = "InvalidHours"


class MissingField(ShopQueueError):
    kind = "MissingField"


class InvalidField(ShopQueueError):
    kind = "InvalidField"


class Forbidden(ShopQueueError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ShopQueueError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateShop(ShopQueueError):
    kind = "DuplicateShop"
    status_code = status.HTTP_409_CONFLICT


class DuplicateActiveEntry(ShopQueueError):
    kind = "DuplicateActiveEntry"
    status_code = status.HTTP_409_CONFLICT


class InvalidStateTransition(ShopQueueError):
    kind = "InvalidStateTransition"
    status_code = status.HTTP_409_CONFLICT


class NotInWaitingState(InvalidStateTransition):
    kind = "NotInWaitingState"


class NotInServiceState(InvalidStateTransition):
    kind = "NotInServiceState"


class StoreError(ShopQueueError):
    """Raised by stores when the backing database cannot be reached."""

    kind = "StoreUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class TicketConflict(StoreError):
    """Another writer already holds the ticket number being inserted."""

    kind = "TicketConflict"
    status_code = status.HTTP_409_CONFLICT


class DiscoveryUnavailable(ShopQueueError):
    kind = "DiscoveryUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def http_error(exc: ShopQueueError) -> HTTPException:
    """Translate a domain error into the HTTP error returned by the routers."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
