"""
Dashboard aggregation: timeframe windows, per-timeframe summaries and the
yearly P&L progress grid.

Everything here is a pure function of its arguments. The caller supplies
`now`, so the same records and the same `now` always give the same output.
Money is summed with math.fsum, which is correctly rounded and therefore
independent of record order.

Records whose date field is missing or unparseable are excluded from every
date-bucketed sum and reported through `skippedCount`.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from ..core.exceptions import InvalidRangeError
from ..core.logging_config import get_logger
from ..schemas.dashboard import (
    CashFlowTotals,
    ChartData,
    ChartPoint,
    ConsolidatedDashboardResponse,
    CustomDateRange,
    DateRange,
    ProgressDay,
    ProgressSummary,
    TimeframeSummary,
    TradePnLProgress,
    TradePnLStats,
    UnifiedDashboardSummary,
    WalletBucket,
    WalletsSummary,
)
from ..schemas.records import (
    CashFlowRecord,
    Deposit,
    RecordStatus,
    TradePnLEntry,
    Wallet,
    WalletType,
    Withdrawal,
    coerce_datetime,
)

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Heat-map thresholds (absolute P&L per day); level n means |pnl| < INTENSITY_THRESHOLDS[n-1]
INTENSITY_THRESHOLDS = (5000.0, 15000.0, 30000.0, 50000.0)


class Timeframe(str, Enum):
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "ALL"
    CUSTOM = "CUSTOM"


TIMEFRAME_DAYS: Dict[Timeframe, int] = {
    Timeframe.ONE_DAY: 1,
    Timeframe.ONE_WEEK: 7,
    Timeframe.ONE_MONTH: 30,
    Timeframe.THREE_MONTHS: 90,
    Timeframe.SIX_MONTHS: 180,
    Timeframe.ONE_YEAR: 365,
}

SUPPORTED_TIMEFRAMES: Tuple[Timeframe, ...] = (
    Timeframe.ONE_DAY,
    Timeframe.ONE_WEEK,
    Timeframe.ONE_MONTH,
    Timeframe.THREE_MONTHS,
    Timeframe.SIX_MONTHS,
    Timeframe.ONE_YEAR,
    Timeframe.ALL,
)

DEFAULT_TIMEFRAME = Timeframe.ONE_MONTH


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval [start, end] of UTC instants."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def as_date_range(self) -> DateRange:
        return DateRange(startDate=self.start.isoformat(), endDate=self.end.isoformat())


@dataclass
class DashboardRecords:
    """Everything the aggregator needs for one user, already fetched."""

    deposits: List[Deposit] = field(default_factory=list)
    withdrawals: List[Withdrawal] = field(default_factory=list)
    trade_pnl: List[TradePnLEntry] = field(default_factory=list)
    wallets: List[Wallet] = field(default_factory=list)

    def earliest_timestamp(self) -> Optional[datetime]:
        candidates: List[datetime] = [
            r.requested_at for r in (*self.deposits, *self.withdrawals) if r.requested_at is not None
        ]
        candidates.extend(_day_start(e.date) for e in self.trade_pnl if e.date is not None)
        return min(candidates) if candidates else None


# ---------------------------------------------------------------------------
# Timeframe resolution
# ---------------------------------------------------------------------------

def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def parse_timeframe(value: str | Timeframe | None) -> Timeframe:
    """Map a request tag (case-insensitive) onto Timeframe; None means the default."""
    if value is None:
        return DEFAULT_TIMEFRAME
    if isinstance(value, Timeframe):
        return value
    try:
        return Timeframe(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(t.value for t in Timeframe)
        raise InvalidRangeError(f"Unsupported timeframe '{value}'. Expected one of: {allowed}")


def _parse_bound(value: str | date | datetime, is_end: bool) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return _day_end(value) if is_end else _day_start(value)
    text = str(value).strip()
    # A bare YYYY-MM-DD covers the whole day
    if len(text) == 10:
        try:
            day = date.fromisoformat(text)
        except ValueError:
            day = None
        if day is not None:
            return _day_end(day) if is_end else _day_start(day)
    parsed = coerce_datetime(text)
    if parsed is None:
        raise InvalidRangeError(f"Invalid date '{value}'. Expected ISO-8601 (YYYY-MM-DD)")
    return parsed


def parse_custom_range(
    start: str | date | datetime | None,
    end: str | date | datetime | None,
) -> Tuple[datetime, datetime]:
    """Parse customStartDate/customEndDate into a (start, end) pair.

    Both bounds are required together. Date-only values cover whole days, so
    a range of one day is valid.
    """
    if start is None or end is None or str(start).strip() == "" or str(end).strip() == "":
        raise InvalidRangeError("customStartDate and customEndDate are both required for CUSTOM timeframe")
    start_dt = _parse_bound(start, is_end=False)
    end_dt = _parse_bound(end, is_end=True)
    if start_dt > end_dt:
        raise InvalidRangeError("customStartDate must not be after customEndDate")
    return start_dt, end_dt


def resolve_window(
    timeframe: Timeframe | str,
    now: datetime,
    custom_range: Optional[Tuple[datetime, datetime]] = None,
    earliest: Optional[datetime] = None,
    platform_start: Optional[date] = None,
) -> TimeWindow:
    """Resolve a timeframe tag into a concrete window ending at `now`.

    Args:
        timeframe: one of the Timeframe tags
        now: current instant; naive values are UTC
        custom_range: (start, end), required for CUSTOM only
        earliest: first record timestamp, used as the ALL start
        platform_start: fallback ALL start when there are no records

    Raises:
        InvalidRangeError: unknown tag, missing custom range, or start > end
    """
    tf = parse_timeframe(timeframe)
    now = _as_utc(now)

    if tf is Timeframe.CUSTOM:
        if custom_range is None:
            raise InvalidRangeError("CUSTOM timeframe requires a start and end date")
        start, end = (_as_utc(custom_range[0]), _as_utc(custom_range[1]))
        if start > end:
            raise InvalidRangeError("customStartDate must not be after customEndDate")
        return TimeWindow(start=start, end=end)

    if tf is Timeframe.ALL:
        if earliest is not None:
            start = min(_as_utc(earliest), now)
        elif platform_start is not None:
            start = min(_day_start(platform_start), now)
        else:
            start = EPOCH
        return TimeWindow(start=start, end=now)

    return TimeWindow(start=now - timedelta(days=TIMEFRAME_DAYS[tf]), end=now)


# ---------------------------------------------------------------------------
# Totals and statistics
# ---------------------------------------------------------------------------

def compute_win_rate(winning: int, total: int) -> float:
    """Percentage with one decimal; 0 when nothing was traded."""
    if total <= 0:
        return 0.0
    rate = winning / total * 100
    return round(min(max(rate, 0.0), 100.0), 1)


def _filter_cash_flows(
    items: Iterable[CashFlowRecord], window: TimeWindow
) -> Tuple[List[CashFlowRecord], int]:
    kept: List[CashFlowRecord] = []
    skipped = 0
    for item in items:
        if item.requested_at is None:
            skipped += 1
            continue
        if window.contains(item.requested_at):
            kept.append(item)
    return kept, skipped


def _filter_trade_entries(
    entries: Iterable[TradePnLEntry], window: TimeWindow
) -> Tuple[List[TradePnLEntry], int]:
    kept: List[TradePnLEntry] = []
    skipped = 0
    for entry in entries:
        if entry.date is None:
            skipped += 1
            continue
        # A trading day is placed at its UTC midnight
        if window.contains(_day_start(entry.date)):
            kept.append(entry)
    return kept, skipped


def compute_cash_flow_totals(items: Sequence[CashFlowRecord]) -> CashFlowTotals:
    by_status: Dict[RecordStatus, List[float]] = defaultdict(list)
    for item in items:
        by_status[item.status].append(item.amount)
    return CashFlowTotals(
        total=math.fsum(item.amount for item in items),
        count=len(items),
        pending=math.fsum(by_status[RecordStatus.PENDING]),
        completed=math.fsum(by_status[RecordStatus.COMPLETED]),
        failed=math.fsum(by_status[RecordStatus.FAILED]),
    )


def compute_trade_stats(entries: Sequence[TradePnLEntry]) -> TradePnLStats:
    """Profit/loss totals and win rate for a set of daily entries.

    winRate comes from the winningTrades/totalTrades counters only, never
    from the sign of profit or loss.
    """
    total_profit = math.fsum(abs(e.profit) for e in entries)
    total_loss = math.fsum(abs(e.loss) for e in entries)
    net_pnl = total_profit - total_loss
    total_trades = sum(e.total_trades for e in entries)
    winning_trades = sum(e.winning_trades for e in entries)
    losing_trades = sum(e.losing_trades for e in entries)
    days_traded = len({e.date for e in entries if e.date is not None})

    return TradePnLStats(
        totalProfit=total_profit,
        totalLoss=total_loss,
        netPnL=net_pnl,
        totalTrades=total_trades,
        winningTrades=winning_trades,
        losingTrades=losing_trades,
        winRate=compute_win_rate(winning_trades, total_trades),
        daysTraded=days_traded,
        averageDailyPnL=round(net_pnl / days_traded, 2) if days_traded else 0.0,
    )


def _chart_points(frame: pd.DataFrame, key: str) -> List[ChartPoint]:
    grouped = frame.groupby(key, sort=True)[["deposits", "withdrawals", "netPnL"]].sum()
    points: List[ChartPoint] = []
    for period, row in grouped.iterrows():
        deposits = float(row["deposits"])
        withdrawals = float(row["withdrawals"])
        points.append(
            ChartPoint(
                period=str(period),
                deposits=deposits,
                withdrawals=withdrawals,
                netCashFlow=deposits - withdrawals,
                netPnL=float(row["netPnL"]),
            )
        )
    return points


def build_chart_data(
    deposits: Sequence[CashFlowRecord],
    withdrawals: Sequence[CashFlowRecord],
    entries: Sequence[TradePnLEntry],
) -> ChartData:
    """Daily / weekly (Monday start) / monthly series of cash flow and net P&L."""
    rows: List[Tuple[date, int, float, float, float]] = []
    for d in deposits:
        rows.append((d.requested_at.date(), 0, d.amount, 0.0, 0.0))
    for w in withdrawals:
        rows.append((w.requested_at.date(), 1, 0.0, w.amount, 0.0))
    for e in entries:
        rows.append((e.date, 2, 0.0, 0.0, e.net_pnl))
    if not rows:
        return ChartData()

    # Fixed row order keeps the float sums identical for reordered input
    rows.sort()
    frame = pd.DataFrame(rows, columns=["day", "kind", "deposits", "withdrawals", "netPnL"])
    frame["daily"] = [d.isoformat() for d in frame["day"]]
    frame["weekly"] = [(d - timedelta(days=d.weekday())).isoformat() for d in frame["day"]]
    frame["monthly"] = [d.strftime("%Y-%m") for d in frame["day"]]

    return ChartData(
        daily=_chart_points(frame, "daily"),
        weekly=_chart_points(frame, "weekly"),
        monthly=_chart_points(frame, "monthly"),
    )


def summarize(
    records: DashboardRecords,
    window: TimeWindow,
    timeframe: Timeframe | str = DEFAULT_TIMEFRAME,
) -> TimeframeSummary:
    """Summarize one user's records inside `window`.

    Deposits and withdrawals are bucketed by requested_at. A trade entry sits
    at the UTC midnight that starts its date. Pending, completed and failed
    cash flows all count toward `total`; per-status amounts are reported
    alongside.
    """
    tf = parse_timeframe(timeframe)

    deposits, skipped_deposits = _filter_cash_flows(records.deposits, window)
    withdrawals, skipped_withdrawals = _filter_cash_flows(records.withdrawals, window)
    entries, skipped_entries = _filter_trade_entries(records.trade_pnl, window)
    skipped = skipped_deposits + skipped_withdrawals + skipped_entries
    if skipped:
        logger.debug(
            f"Skipped {skipped} records without a usable date "
            f"(deposits={skipped_deposits}, withdrawals={skipped_withdrawals}, trade_pnl={skipped_entries})"
        )

    deposit_totals = compute_cash_flow_totals(deposits)
    withdrawal_totals = compute_cash_flow_totals(withdrawals)
    trade_stats = compute_trade_stats(entries)

    return TimeframeSummary(
        timeframe=tf.value,
        dateRange=window.as_date_range(),
        deposits=deposit_totals,
        withdrawals=withdrawal_totals,
        tradePnL=trade_stats,
        netCashFlow=deposit_totals.total - withdrawal_totals.total,
        overallPnL=trade_stats.netPnL,
        skippedCount=skipped,
        chartData=build_chart_data(deposits, withdrawals, entries),
    )


# ---------------------------------------------------------------------------
# Progress grid
# ---------------------------------------------------------------------------

def classify_intensity(pnl: float, has_data: bool = True) -> int:
    """Heat-map level for one day: 0 for no data or flat, +1..+5 profit, -1..-5 loss."""
    if not has_data or pnl == 0:
        return 0
    magnitude = abs(pnl)
    level = len(INTENSITY_THRESHOLDS) + 1
    for idx, threshold in enumerate(INTENSITY_THRESHOLDS, start=1):
        if magnitude < threshold:
            level = idx
            break
    return level if pnl > 0 else -level


def build_progress_grid(
    entries: Iterable[TradePnLEntry],
    year: int,
    now: datetime,
    platform_start: Optional[date] = None,
) -> TradePnLProgress:
    """One ProgressDay per calendar day of `year`, oldest first.

    The range is clipped to [platform_start, today]; a full year after the
    platform start has 365 (or 366) days.
    """
    today = _as_utc(now).date()
    first_day = date(year, 1, 1)
    last_day = date(year, 12, 31)
    if platform_start is not None and platform_start > first_day:
        first_day = platform_start
    if today < last_day:
        last_day = today

    pnl_by_day: Dict[date, List[float]] = defaultdict(list)
    skipped = 0
    for entry in entries:
        if entry.date is None:
            skipped += 1
            continue
        if first_day <= entry.date <= last_day:
            pnl_by_day[entry.date].append(entry.net_pnl)

    days: List[ProgressDay] = []
    cursor = first_day
    while cursor <= last_day:
        values = pnl_by_day.get(cursor)
        has_data = bool(values)
        pnl = math.fsum(values) if has_data else 0.0
        days.append(
            ProgressDay(
                date=cursor.isoformat(),
                pnl=pnl,
                hasData=has_data,
                intensity=classify_intensity(pnl, has_data),
            )
        )
        cursor += timedelta(days=1)

    return TradePnLProgress(
        year=year,
        data=days,
        summary=summarize_progress(days),
        skippedCount=skipped,
    )


def summarize_progress(days: Sequence[ProgressDay]) -> ProgressSummary:
    traded = [d.pnl for d in days if d.hasData]
    profit_days = sum(1 for p in traded if p > 0)
    loss_days = sum(1 for p in traded if p < 0)
    return ProgressSummary(
        totalDays=len(days),
        tradingDays=len(traded),
        profitDays=profit_days,
        lossDays=loss_days,
        totalPnL=math.fsum(traded),
        maxPnL=max(traded) if traded else 0.0,
        minPnL=min(traded) if traded else 0.0,
        winRate=compute_win_rate(profit_days, len(traded)),
    )


# ---------------------------------------------------------------------------
# Wallets and the consolidated payload
# ---------------------------------------------------------------------------

def summarize_wallets(wallets: Iterable[Wallet]) -> WalletsSummary:
    buckets: Dict[WalletType, Dict[str, List[float]]] = {
        WalletType.DEMAT: defaultdict(list),
        WalletType.BANK: defaultdict(list),
    }
    counts: Dict[WalletType, int] = {WalletType.DEMAT: 0, WalletType.BANK: 0}
    totals: Dict[str, List[float]] = defaultdict(list)

    for wallet in wallets:
        buckets[wallet.wallet_type][wallet.currency].append(wallet.balance)
        counts[wallet.wallet_type] += 1
        totals[wallet.currency].append(wallet.balance)

    def _bucket(kind: WalletType) -> WalletBucket:
        per_currency = {cur: math.fsum(vals) for cur, vals in sorted(buckets[kind].items())}
        return WalletBucket(
            balance=math.fsum(v for vals in buckets[kind].values() for v in vals),
            count=counts[kind],
            currencies=per_currency,
        )

    return WalletsSummary(
        dematWallet=_bucket(WalletType.DEMAT),
        bankWallet=_bucket(WalletType.BANK),
        totalBalance={cur: math.fsum(vals) for cur, vals in sorted(totals.items())},
    )


def build_unified_summary(records: DashboardRecords) -> UnifiedDashboardSummary:
    """All-time totals, regardless of record dates."""
    total_deposits = math.fsum(d.amount for d in records.deposits)
    total_withdrawals = math.fsum(w.amount for w in records.withdrawals)
    return UnifiedDashboardSummary(
        totalDeposits=total_deposits,
        totalWithdrawals=total_withdrawals,
        totalTrades=len(records.trade_pnl),
        totalProfit=math.fsum(abs(e.profit) for e in records.trade_pnl),
        totalLoss=math.fsum(abs(e.loss) for e in records.trade_pnl),
        netCashFlow=total_deposits - total_withdrawals,
    )


def build_dashboard(
    records: DashboardRecords,
    timeframe: Timeframe | str,
    now: datetime,
    year: Optional[int] = None,
    custom_range: Optional[Tuple[datetime, datetime]] = None,
    platform_start: Optional[date] = None,
) -> ConsolidatedDashboardResponse:
    """Summaries for every supported timeframe (plus CUSTOM when requested),
    the progress grid for `year` and the wallet balances."""
    now = _as_utc(now)
    requested = parse_timeframe(timeframe)
    earliest = records.earliest_timestamp()

    financial: Dict[str, TimeframeSummary] = {}
    for tf in SUPPORTED_TIMEFRAMES:
        window = resolve_window(tf, now, earliest=earliest, platform_start=platform_start)
        financial[tf.value] = summarize(records, window, tf)

    custom: Optional[CustomDateRange] = None
    if requested is Timeframe.CUSTOM:
        window = resolve_window(Timeframe.CUSTOM, now, custom_range=custom_range)
        financial[Timeframe.CUSTOM.value] = summarize(records, window, Timeframe.CUSTOM)
        custom = CustomDateRange(
            customStartDate=window.start.isoformat(),
            customEndDate=window.end.isoformat(),
        )

    progress_year = year if year is not None else now.year

    return ConsolidatedDashboardResponse(
        requestedTimeframe=requested.value,
        financialByTimeframe=financial,
        tradePnLProgress=build_progress_grid(records.trade_pnl, progress_year, now, platform_start),
        currentWallets=summarize_wallets(records.wallets),
        customDateRange=custom,
        year=progress_year,
        generatedAt=now.isoformat(),
        supportedTimeframes=[tf.value for tf in SUPPORTED_TIMEFRAMES],
    )
