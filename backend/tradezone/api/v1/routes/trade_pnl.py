from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from tradezone.core.exceptions import TradeZoneError, to_http_exception
from tradezone.core.security import get_current_user_id
from tradezone.schemas.records import (
    DeleteResponse,
    TradePnLCreate,
    TradePnLEntry,
    TradePnLListResponse,
    TradePnLUpdate,
)
from tradezone.services.dashboard_service import list_trade_pnl_with_stats
from tradezone.services.record_store import RecordStore, get_record_store


router = APIRouter(prefix="/trade-pnl")


@router.get("", response_model=TradePnLListResponse)
def list_trade_pnl(
    days: Optional[int] = Query(None, ge=1, le=3650, description="Only the last N days"),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradePnLListResponse:
    """Daily P&L entries, newest first, with totals and win rate."""
    try:
        return list_trade_pnl_with_stats(store, user_id, days=days)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("", response_model=TradePnLEntry, status_code=201)
def create_trade_pnl(
    body: TradePnLCreate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradePnLEntry:
    try:
        return store.create_trade_pnl(user_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/{record_id}", response_model=TradePnLEntry)
def get_trade_pnl(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradePnLEntry:
    try:
        return store.get_trade_pnl(user_id, record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.patch("/{record_id}", response_model=TradePnLEntry)
def update_trade_pnl(
    body: TradePnLUpdate,
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradePnLEntry:
    try:
        return store.update_trade_pnl(user_id, record_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.delete("/{record_id}", response_model=DeleteResponse)
def delete_trade_pnl(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> DeleteResponse:
    try:
        store.delete_trade_pnl(user_id, record_id)
        return DeleteResponse(ok=True, id=record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e
