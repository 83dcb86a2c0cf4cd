from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

from ..core.config import Settings, get_settings
from ..core.logging_config import get_logger
from ..schemas.dashboard import (
    ConsolidatedDashboardResponse,
    TradePnLProgress,
    UnifiedDashboardSummary,
)
from ..schemas.records import TradePnLListResponse
from .dashboard_aggregator import (
    Timeframe,
    build_dashboard,
    build_progress_grid,
    build_unified_summary,
    compute_trade_stats,
    parse_custom_range,
    parse_timeframe,
)
from .record_store import RecordStore

logger = get_logger(__name__)


def get_consolidated_dashboard(
    store: RecordStore,
    user_id: str,
    timeframe: Optional[str] = None,
    year: Optional[int] = None,
    custom_start: Optional[str] = None,
    custom_end: Optional[str] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> ConsolidatedDashboardResponse:
    """Fetch a user's records and build the consolidated dashboard.

    Inputs are validated before any I/O, so a bad timeframe or range fails
    with InvalidRangeError without touching the store. Store failures
    (UpstreamFetchError) propagate unchanged.
    """
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)

    tf = parse_timeframe(timeframe)
    custom_range = None
    if tf is Timeframe.CUSTOM:
        custom_range = parse_custom_range(custom_start, custom_end)

    start_time = time.perf_counter()
    records = store.fetch_dashboard_records(user_id)
    fetch_ms = (time.perf_counter() - start_time) * 1000

    result = build_dashboard(
        records,
        tf,
        now=now,
        year=year,
        custom_range=custom_range,
        platform_start=settings.platform_start_date,
    )

    logger.info(
        f"Dashboard built: user={user_id} timeframe={tf.value} year={result.year} "
        f"deposits={len(records.deposits)} withdrawals={len(records.withdrawals)} "
        f"trade_pnl={len(records.trade_pnl)} wallets={len(records.wallets)} "
        f"fetch={fetch_ms:.2f}ms"
    )
    return result


def get_trade_pnl_progress(
    store: RecordStore,
    user_id: str,
    year: Optional[int] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> TradePnLProgress:
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    entries = store.list_trade_pnl(user_id)
    return build_progress_grid(
        entries,
        year if year is not None else now.year,
        now,
        platform_start=settings.platform_start_date,
    )


def get_unified_summary(store: RecordStore, user_id: str) -> UnifiedDashboardSummary:
    """All-time deposit/withdrawal/trade totals (the compact dashboard card)."""
    records = store.fetch_dashboard_records(user_id)
    return build_unified_summary(records)


def list_trade_pnl_with_stats(
    store: RecordStore,
    user_id: str,
    days: Optional[int] = None,
) -> TradePnLListResponse:
    entries = store.list_trade_pnl(user_id, days=days)
    return TradePnLListResponse(
        data=entries,
        statistics=compute_trade_stats(entries),
        period=f"last {days} days" if days else "all",
    )
