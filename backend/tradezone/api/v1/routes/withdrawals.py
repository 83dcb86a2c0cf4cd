from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from tradezone.core.exceptions import TradeZoneError, to_http_exception
from tradezone.core.security import get_current_user_id
from tradezone.schemas.records import DeleteResponse, Withdrawal, WithdrawalCreate, WithdrawalUpdate
from tradezone.services.record_store import RecordStore, get_record_store


router = APIRouter(prefix="/withdrawals")


@router.get("", response_model=List[Withdrawal])
def list_withdrawals(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> List[Withdrawal]:
    try:
        return store.list_withdrawals(user_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("", response_model=Withdrawal, status_code=201)
def create_withdrawal(
    body: WithdrawalCreate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Withdrawal:
    try:
        return store.create_withdrawal(user_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/{record_id}", response_model=Withdrawal)
def get_withdrawal(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Withdrawal:
    try:
        return store.get_withdrawal(user_id, record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.patch("/{record_id}", response_model=Withdrawal)
def update_withdrawal(
    body: WithdrawalUpdate,
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> Withdrawal:
    try:
        return store.update_withdrawal(user_id, record_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.delete("/{record_id}", response_model=DeleteResponse)
def delete_withdrawal(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> DeleteResponse:
    try:
        store.delete_withdrawal(user_id, record_id)
        return DeleteResponse(ok=True, id=record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e
