from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tradezone.core.config import Settings, get_settings
from tradezone.core.exceptions import TradeZoneError, to_http_exception
from tradezone.core.logging_config import get_logger
from tradezone.core.security import get_current_user_id
from tradezone.schemas.dashboard import (
    ConsolidatedDashboardResponse,
    TradePnLProgress,
    UnifiedDashboardSummary,
)
from tradezone.services.dashboard_service import (
    get_consolidated_dashboard,
    get_trade_pnl_progress,
    get_unified_summary,
)
from tradezone.services.record_store import RecordStore, get_record_store

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboard")


@router.get("", response_model=ConsolidatedDashboardResponse)
def get_dashboard(
    timeframe: str = Query("1M", description="1D, 1W, 1M, 3M, 6M, 1Y, ALL or CUSTOM"),
    year: Optional[int] = Query(None, ge=1970, le=9999, description="Progress grid year, default current year"),
    customStartDate: Optional[str] = Query(None, description="ISO date, required with CUSTOM"),
    customEndDate: Optional[str] = Query(None, description="ISO date, required with CUSTOM"),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> ConsolidatedDashboardResponse:
    """Consolidated dashboard: summaries per timeframe, progress grid, wallets.

    Users without records get an all-zero payload, not an error.
    """
    try:
        return get_consolidated_dashboard(
            store,
            user_id,
            timeframe=timeframe,
            year=year,
            custom_start=customStartDate,
            custom_end=customEndDate,
            settings=settings,
        )
    except TradeZoneError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception("Error building dashboard")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/summary", response_model=UnifiedDashboardSummary)
def get_dashboard_summary(
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
) -> UnifiedDashboardSummary:
    try:
        return get_unified_summary(store, user_id)
    except TradeZoneError as e:
        raise to_http_exception(e) from e


@router.get("/progress", response_model=TradePnLProgress)
def get_dashboard_progress(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    user_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> TradePnLProgress:
    try:
        return get_trade_pnl_progress(store, user_id, year=year, settings=settings)
    except TradeZoneError as e:
        raise to_http_exception(e) from e
