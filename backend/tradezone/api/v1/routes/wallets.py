from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from tradezone.core.exceptions import TradeZoneError, to_http_exception
from tradezone.core.security import get_current_user_id
from tradezone.schemas.dashboard import WalletsSummary
from tradezone.schemas.records import DeleteResponse, Wallet, WalletCreate, WalletUpdate
from tradezone.services.dashboard_aggregator import summarize_wallets
from tradezone.services.record_store import RecordStore, get_record_store


router = APIRouter(prefix="/wallets")


@router.get("", response_model=List[Wallet])
def list_wallets(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> List[Wallet]:
    try:
        return store.list_wallets(user_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/balance", response_model=WalletsSummary)
def get_wallet_balance(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> WalletsSummary:
    """Demat/bank balances and the total per currency."""
    try:
        return summarize_wallets(store.list_wallets(user_id))
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("", response_model=Wallet, status_code=201)
def create_wallet(
    body: WalletCreate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Wallet:
    try:
        return store.create_wallet(user_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.patch("/{record_id}", response_model=Wallet)
def update_wallet(
    body: WalletUpdate,
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Wallet:
    try:
        return store.update_wallet(user_id, record_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.delete("/{record_id}", response_model=DeleteResponse)
def delete_wallet(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> DeleteResponse:
    try:
        store.delete_wallet(user_id, record_id)
        return DeleteResponse(ok=True, id=record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e
