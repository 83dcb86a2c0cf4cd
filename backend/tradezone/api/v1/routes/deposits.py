from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from tradezone.core.exceptions import TradeZoneError, to_http_exception
from tradezone.core.security import get_current_user_id
from tradezone.schemas.records import DeleteResponse, Deposit, DepositCreate, DepositUpdate
from tradezone.services.record_store import RecordStore, get_record_store


router = APIRouter(prefix="/deposits")


@router.get("", response_model=List[Deposit])
def list_deposits(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> List[Deposit]:
    try:
        return store.list_deposits(user_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("", response_model=Deposit, status_code=201)
def create_deposit(
    body: DepositCreate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Deposit:
    try:
        return store.create_deposit(user_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/{record_id}", response_model=Deposit)
def get_deposit(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Deposit:
    try:
        return store.get_deposit(user_id, record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.patch("/{record_id}", response_model=Deposit)
def update_deposit(
    body: DepositUpdate,
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Deposit:
    try:
        return store.update_deposit(user_id, record_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.delete("/{record_id}", response_model=DeleteResponse)
def delete_deposit(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> DeleteResponse:
    try:
        store.delete_deposit(user_id, record_id)
        return DeleteResponse(ok=True, id=record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e
