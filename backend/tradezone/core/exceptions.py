"""Domain exceptions shared by services and routes.

Routes translate these into HTTPException; `status_code` holds the mapping.
"""

from __future__ import annotations

from fastapi import HTTPException


class TradeZoneError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    message: str = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class InvalidRangeError(TradeZoneError):
    """Unknown timeframe tag or malformed custom date range."""

    status_code = 400
    message = "Invalid date range"


class UnauthorizedError(TradeZoneError):
    """Missing, invalid or expired bearer token."""

    status_code = 401
    message = "Authentication required"


class RecordNotFoundError(TradeZoneError):
    """Record does not exist or belongs to another user."""

    status_code = 404
    message = "Record not found"


class UpstreamFetchError(TradeZoneError):
    """The record store could not be reached or failed the query."""

    status_code = 502
    message = "Record store unavailable"


def to_http_exception(error: TradeZoneError) -> HTTPException:
    """Map a domain error onto the HTTPException a route should raise."""
    return HTTPException(status_code=error.status_code, detail=error.message)
