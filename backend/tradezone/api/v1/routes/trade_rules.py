from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from tradezone.core.exceptions import TradeZoneError, to_http_exception
from tradezone.core.security import get_current_user_id
from tradezone.schemas.dashboard import ViolationAnalysis
from tradezone.schemas.records import (
    DeleteResponse,
    PnLLimits,
    PnLLimitsUpdate,
    RuleCategory,
    TradeRule,
    TradeRuleCreate,
    TradeRuleHistoryEntry,
    TradeRuleUpdate,
)
from tradezone.services.record_store import RecordStore, get_record_store
from tradezone.services.trade_rules_service import get_violation_analysis


router = APIRouter(prefix="/trade-rules")


@router.get("", response_model=List[TradeRule])
def list_trade_rules(
    category: Optional[RuleCategory] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> List[TradeRule]:
    try:
        return store.list_trade_rules(user_id, category=category, is_active=is_active)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("", response_model=TradeRule, status_code=201)
def create_trade_rule(
    body: TradeRuleCreate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradeRule:
    try:
        return store.create_trade_rule(user_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


# Fixed paths are declared before /{record_id} so they are not read as ids


@router.get("/violations", response_model=ViolationAnalysis)
def get_violations(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> ViolationAnalysis:
    """Violation totals, per-category breakdown and the most recent violations."""
    try:
        return get_violation_analysis(store, user_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/history", response_model=List[TradeRuleHistoryEntry])
def get_history(
    limit: int = Query(20, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> List[TradeRuleHistoryEntry]:
    try:
        return store.list_trade_rule_history(user_id, limit=limit)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/pnl-limits", response_model=PnLLimits)
def get_pnl_limits(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> PnLLimits:
    try:
        return store.get_pnl_limits(user_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("/pnl-limits", response_model=PnLLimits)
def update_pnl_limits(
    body: PnLLimitsUpdate,
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> PnLLimits:
    try:
        return store.update_pnl_limits(user_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/{record_id}", response_model=TradeRule)
def get_trade_rule(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradeRule:
    try:
        return store.get_trade_rule(user_id, record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.patch("/{record_id}", response_model=TradeRule)
def update_trade_rule(
    body: TradeRuleUpdate,
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradeRule:
    try:
        return store.update_trade_rule(user_id, record_id, body)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.delete("/{record_id}", response_model=DeleteResponse)
def delete_trade_rule(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> DeleteResponse:
    try:
        store.delete_trade_rule(user_id, record_id)
        return DeleteResponse(ok=True, id=record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.post("/{record_id}/violation", response_model=TradeRule)
def log_violation(
    record_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> TradeRule:
    """Record that the rule was broken once more."""
    try:
        return store.log_trade_rule_violation(user_id, record_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e
