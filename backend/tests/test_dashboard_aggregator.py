"""Tests for timeframe windows, summaries and the progress grid."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from tradezone.core.exceptions import InvalidRangeError
from tradezone.schemas.records import (
    Deposit,
    RecordStatus,
    TradePnLEntry,
    Wallet,
    WalletType,
    Withdrawal,
)
from tradezone.services.dashboard_aggregator import (
    EPOCH,
    SUPPORTED_TIMEFRAMES,
    DashboardRecords,
    Timeframe,
    build_dashboard,
    build_progress_grid,
    build_unified_summary,
    classify_intensity,
    compute_trade_stats,
    compute_win_rate,
    parse_custom_range,
    parse_timeframe,
    resolve_window,
    summarize,
    summarize_wallets,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _deposit(amount, at, status=RecordStatus.COMPLETED, record_id=None):
    return Deposit(id=record_id or f"d-{amount}-{at}", user_id="u", amount=amount, status=status, requested_at=at)


def _withdrawal(amount, at, status=RecordStatus.COMPLETED, record_id=None):
    return Withdrawal(id=record_id or f"w-{amount}-{at}", user_id="u", amount=amount, status=status, requested_at=at)


def _entry(day, profit=0.0, loss=0.0, total=0, winning=0, losing=0, record_id=None):
    return TradePnLEntry(
        id=record_id or f"t-{day}-{profit}-{loss}",
        user_id="u",
        date=day,
        profit=profit,
        loss=loss,
        total_trades=total,
        winning_trades=winning,
        losing_trades=losing,
    )


class TestParseTimeframe:
    """Tests for timeframe tag parsing."""

    def test_default_is_one_month(self):
        assert parse_timeframe(None) is Timeframe.ONE_MONTH

    def test_case_insensitive(self):
        assert parse_timeframe("1w") is Timeframe.ONE_WEEK
        assert parse_timeframe(" all ") is Timeframe.ALL

    def test_unknown_tag_raises(self):
        with pytest.raises(InvalidRangeError):
            parse_timeframe("2W")

    def test_custom_is_not_a_default_summary(self):
        assert Timeframe.CUSTOM not in SUPPORTED_TIMEFRAMES
        assert len(SUPPORTED_TIMEFRAMES) == 7


class TestResolveWindow:
    """Tests for resolve_window."""

    @pytest.mark.parametrize(
        "now",
        [
            datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),   # just after leap day
            datetime(2024, 2, 29, 0, 0, tzinfo=timezone.utc),   # on leap day
            datetime(2025, 1, 3, 8, 30, tzinfo=timezone.utc),   # across year boundary
            datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc),    # across month boundary
        ],
    )
    def test_one_week_is_exactly_seven_days_ending_now(self, now):
        window = resolve_window("1W", now)
        assert window.end == now
        assert window.end - window.start == timedelta(days=7)

    @pytest.mark.parametrize(
        "tag,days",
        [("1D", 1), ("1M", 30), ("3M", 90), ("6M", 180), ("1Y", 365)],
    )
    def test_fixed_timeframes(self, tag, days):
        window = resolve_window(tag, NOW)
        assert window.end == NOW
        assert window.end - window.start == timedelta(days=days)

    def test_naive_now_is_utc(self):
        window = resolve_window("1D", datetime(2024, 6, 15, 12, 0))
        assert window.end == NOW

    def test_all_starts_at_earliest_record(self):
        earliest = datetime(2023, 1, 5, 9, 0, tzinfo=timezone.utc)
        window = resolve_window("ALL", NOW, earliest=earliest, platform_start=date(2020, 1, 1))
        assert window.start == earliest
        assert window.end == NOW

    def test_all_falls_back_to_platform_start(self):
        window = resolve_window("ALL", NOW, platform_start=date(2024, 1, 1))
        assert window.start == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_all_without_anything_starts_at_epoch(self):
        assert resolve_window("ALL", NOW).start == EPOCH

    def test_custom_range_used_verbatim(self):
        start, end = parse_custom_range("2024-01-01", "2024-01-31")
        window = resolve_window("CUSTOM", NOW, custom_range=(start, end))
        assert window.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert window.end.date() == date(2024, 1, 31)
        assert window.contains(datetime(2024, 1, 31, 23, 0, tzinfo=timezone.utc))

    def test_custom_start_after_end_raises(self):
        start = datetime(2024, 2, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(InvalidRangeError):
            resolve_window("CUSTOM", NOW, custom_range=(start, end))

    def test_custom_without_range_raises(self):
        with pytest.raises(InvalidRangeError):
            resolve_window("CUSTOM", NOW)


class TestParseCustomRange:
    """Tests for customStartDate/customEndDate parsing."""

    def test_single_day_range_is_valid(self):
        start, end = parse_custom_range("2024-03-10", "2024-03-10")
        assert start < end
        assert start.date() == end.date() == date(2024, 3, 10)

    def test_start_after_end_raises(self):
        with pytest.raises(InvalidRangeError):
            parse_custom_range("2024-03-11", "2024-03-10")

    @pytest.mark.parametrize("start,end", [(None, "2024-01-01"), ("2024-01-01", None), ("", "")])
    def test_missing_bound_raises(self, start, end):
        with pytest.raises(InvalidRangeError):
            parse_custom_range(start, end)

    def test_garbage_raises(self):
        with pytest.raises(InvalidRangeError):
            parse_custom_range("yesterday", "2024-01-01")


class TestSummarize:
    """Tests for summarize."""

    def test_empty_records_give_zeroes(self):
        summary = summarize(DashboardRecords(), resolve_window("1M", NOW), "1M")
        assert summary.deposits.total == 0
        assert summary.withdrawals.count == 0
        assert summary.netCashFlow == 0
        assert summary.tradePnL.winRate == 0
        assert summary.skippedCount == 0
        assert summary.chartData.daily == []

    def test_all_net_cash_flow_example(self):
        day0 = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)
        records = DashboardRecords(
            deposits=[_deposit(1000, day0)],
            withdrawals=[_withdrawal(400, day0)],
        )
        window = resolve_window("ALL", NOW, earliest=records.earliest_timestamp())
        summary = summarize(records, window, "ALL")
        assert summary.netCashFlow == 600
        assert summary.deposits.total == 1000
        assert summary.withdrawals.total == 400

    def test_net_cash_flow_identity_every_timeframe(self):
        records = DashboardRecords(
            deposits=[
                _deposit(0.1, NOW - timedelta(hours=2)),
                _deposit(0.2, NOW - timedelta(days=3)),
                _deposit(1234.56, NOW - timedelta(days=40)),
                _deposit(99.99, NOW - timedelta(days=200)),
            ],
            withdrawals=[
                _withdrawal(0.3, NOW - timedelta(hours=5)),
                _withdrawal(500.25, NOW - timedelta(days=100)),
            ],
        )
        earliest = records.earliest_timestamp()
        for tf in SUPPORTED_TIMEFRAMES:
            summary = summarize(records, resolve_window(tf, NOW, earliest=earliest), tf)
            assert summary.netCashFlow == summary.deposits.total - summary.withdrawals.total

    def test_window_filters_by_requested_at(self):
        records = DashboardRecords(
            deposits=[
                _deposit(100, NOW - timedelta(hours=12)),
                _deposit(200, NOW - timedelta(days=2)),
                _deposit(400, NOW - timedelta(days=10)),
            ],
        )
        assert summarize(records, resolve_window("1D", NOW)).deposits.total == 100
        assert summarize(records, resolve_window("1W", NOW)).deposits.total == 300
        assert summarize(records, resolve_window("1M", NOW)).deposits.total == 700

    def test_status_breakdown(self):
        at = NOW - timedelta(days=1)
        records = DashboardRecords(
            deposits=[
                _deposit(100, at, RecordStatus.PENDING, "a"),
                _deposit(200, at, RecordStatus.COMPLETED, "b"),
                _deposit(50, at, RecordStatus.FAILED, "c"),
            ],
        )
        totals = summarize(records, resolve_window("1W", NOW)).deposits
        assert totals.total == 350
        assert totals.count == 3
        assert totals.pending == 100
        assert totals.completed == 200
        assert totals.failed == 50

    def test_records_without_date_are_skipped_and_counted(self):
        records = DashboardRecords(
            deposits=[
                _deposit(100, NOW - timedelta(days=1)),
                Deposit(id="no-date", user_id="u", amount=999, requested_at=None),
            ],
            trade_pnl=[
                TradePnLEntry(id="bad", user_id="u", date="not-a-date", profit=50),
            ],
        )
        summary = summarize(records, resolve_window("1W", NOW))
        assert summary.deposits.total == 100
        assert summary.tradePnL.totalProfit == 0
        assert summary.skippedCount == 2

    def test_daily_entries_count_once_per_window_day(self):
        entries = [_entry(date(2024, 6, 6) + timedelta(days=i), profit=100) for i in range(10)]
        records = DashboardRecords(trade_pnl=entries)

        one_day = summarize(records, resolve_window("1D", NOW)).tradePnL
        assert one_day.daysTraded == 1
        assert one_day.totalProfit == 100

        one_week = summarize(records, resolve_window("1W", NOW)).tradePnL
        assert one_week.daysTraded == 7
        assert one_week.totalProfit == 700

    def test_trade_day_before_window_start_is_excluded(self):
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        records = DashboardRecords(trade_pnl=[_entry(date(2024, 2, 23), profit=10)])
        # 1W starts 2024-02-23T12:00, after that day's midnight
        assert summarize(records, resolve_window("1W", now)).tradePnL.totalProfit == 0

    def test_pure_and_order_independent(self):
        records = DashboardRecords(
            deposits=[_deposit(a, NOW - timedelta(days=i)) for i, a in enumerate([0.1, 0.2, 0.3, 1e6, 0.7])],
            withdrawals=[_withdrawal(a, NOW - timedelta(days=i)) for i, a in enumerate([0.05, 3.3, 1e-3])],
            trade_pnl=[
                _entry(date(2024, 6, 10), profit=0.1, total=2, winning=1, losing=1),
                _entry(date(2024, 6, 11), loss=0.2, total=1, losing=1),
                _entry(date(2024, 6, 11), profit=0.3, loss=0.1, total=3, winning=2, losing=1),
            ],
        )
        reordered = DashboardRecords(
            deposits=list(reversed(records.deposits)),
            withdrawals=list(reversed(records.withdrawals)),
            trade_pnl=list(reversed(records.trade_pnl)),
        )
        window = resolve_window("1M", NOW)
        first = summarize(records, window, "1M").model_dump_json()
        second = summarize(records, window, "1M").model_dump_json()
        shuffled = summarize(reordered, window, "1M").model_dump_json()
        assert first == second
        assert first == shuffled

    def test_chart_buckets(self):
        records = DashboardRecords(
            deposits=[
                _deposit(100, datetime(2024, 6, 10, 9, tzinfo=timezone.utc)),   # Monday
                _deposit(50, datetime(2024, 6, 12, 9, tzinfo=timezone.utc)),    # Wednesday
            ],
            withdrawals=[_withdrawal(30, datetime(2024, 6, 12, 10, tzinfo=timezone.utc))],
            trade_pnl=[_entry(date(2024, 6, 12), profit=20, loss=5)],
        )
        chart = summarize(records, resolve_window("1M", NOW)).chartData
        assert [p.period for p in chart.daily] == ["2024-06-10", "2024-06-12"]
        wednesday = chart.daily[1]
        assert wednesday.deposits == 50
        assert wednesday.withdrawals == 30
        assert wednesday.netCashFlow == 20
        assert wednesday.netPnL == 15
        assert [p.period for p in chart.weekly] == ["2024-06-10"]
        assert chart.weekly[0].deposits == 150
        assert [p.period for p in chart.monthly] == ["2024-06"]


class TestTradeStats:
    """Tests for profit/loss totals and win rate."""

    def test_example_totals(self):
        entries = [
            _entry(date(2024, 6, 1), profit=500, loss=0, total=4, winning=3, losing=1),
            _entry(date(2024, 6, 2), profit=0, loss=200, total=2, winning=0, losing=2),
            _entry(date(2024, 6, 3), profit=300, loss=100, total=4, winning=0, losing=4),
        ]
        stats = compute_trade_stats(entries)
        assert stats.totalProfit == 800
        assert stats.totalLoss == 300
        assert stats.netPnL == 500
        assert stats.totalTrades == 10
        # From the counters (3 of 10), not from two profitable days out of three
        assert stats.winRate == 30.0
        assert stats.daysTraded == 3

    def test_negative_loss_is_normalized(self):
        entry = _entry(date(2024, 6, 1), profit=100, loss=-40)
        assert entry.loss == 40
        assert entry.net_pnl == 60

    def test_no_trades_means_zero_win_rate(self):
        stats = compute_trade_stats([_entry(date(2024, 6, 1), profit=100)])
        assert stats.totalTrades == 0
        assert stats.winRate == 0

    @pytest.mark.parametrize(
        "winning,total,expected",
        [(0, 0, 0.0), (1, 3, 33.3), (2, 3, 66.7), (5, 5, 100.0), (7, 5, 100.0), (3, -1, 0.0)],
    )
    def test_win_rate_bounds(self, winning, total, expected):
        rate = compute_win_rate(winning, total)
        assert rate == expected
        assert 0 <= rate <= 100


class TestClassifyIntensity:
    """Tests for heat-map intensity levels."""

    @pytest.mark.parametrize(
        "pnl,level",
        [
            (0.01, 1), (4999.99, 1), (5000, 2), (14999, 2), (15000, 3),
            (29999, 3), (30000, 4), (49999, 4), (50000, 5), (1e9, 5),
        ],
    )
    def test_levels_are_symmetric(self, pnl, level):
        assert classify_intensity(pnl) == level
        assert classify_intensity(-pnl) == -level

    def test_flat_and_missing_days_are_zero(self):
        assert classify_intensity(0) == 0
        assert classify_intensity(12345, has_data=False) == 0

    def test_monotonic_in_magnitude(self):
        values = [0, 1, 100, 5000, 10000, 15000, 20000, 30000, 45000, 50000, 80000]
        levels = [classify_intensity(v) for v in values]
        assert levels == sorted(levels)


class TestProgressGrid:
    """Tests for build_progress_grid."""

    def test_full_leap_year_has_no_gaps(self):
        entries = [
            _entry(date(2024, 2, 29), profit=700),
            _entry(date(2024, 7, 4), loss=250),
            _entry(date(2024, 7, 4), profit=50, record_id="second"),
            _entry(date(2023, 12, 31), profit=1e6),
        ]
        progress = build_progress_grid(entries, 2024, datetime(2025, 6, 1, tzinfo=timezone.utc), date(2020, 1, 1))
        dates = [d.date for d in progress.data]

        assert len(dates) == 366
        assert len(set(dates)) == 366
        assert dates[0] == "2024-01-01"
        assert dates[-1] == "2024-12-31"
        parsed = [date.fromisoformat(d) for d in dates]
        assert all(b - a == timedelta(days=1) for a, b in zip(parsed, parsed[1:]))

        traded = [d for d in progress.data if d.hasData]
        assert [d.date for d in traded] == ["2024-02-29", "2024-07-04"]
        assert traded[1].pnl == -200
        assert traded[1].intensity == -1
        assert sum(d.pnl for d in traded) == progress.summary.totalPnL == 500

    def test_grid_total_matches_trade_stats_for_the_year(self):
        entries = [
            _entry(date(2024, 1, 2), profit=1200, loss=200, record_id="a"),
            _entry(date(2024, 1, 2), loss=450, record_id="b"),
            _entry(date(2024, 3, 15), profit=80),
            _entry(date(2024, 6, 14), loss=35000),
            _entry(date(2023, 12, 31), profit=999),
            _entry(date(2025, 1, 1), loss=999),
        ]
        progress = build_progress_grid(entries, 2024, datetime(2025, 6, 1, tzinfo=timezone.utc), date(2020, 1, 1))
        in_year = [e for e in entries if e.date.year == 2024]

        grid_total = sum(d.pnl for d in progress.data if d.hasData)
        assert grid_total == compute_trade_stats(in_year).netPnL == -34370
        assert progress.summary.totalPnL == grid_total

    def test_regular_year_has_365_days(self):
        progress = build_progress_grid([], 2023, datetime(2024, 1, 10, tzinfo=timezone.utc), date(2020, 1, 1))
        assert len(progress.data) == 365
        assert progress.summary.tradingDays == 0
        assert progress.summary.totalPnL == 0

    def test_current_year_stops_at_today(self):
        now = datetime(2024, 3, 10, 15, 0, tzinfo=timezone.utc)
        progress = build_progress_grid([], 2024, now, date(2020, 1, 1))
        assert progress.data[-1].date == "2024-03-10"
        assert len(progress.data) == 31 + 29 + 10

    def test_platform_start_clips_the_first_year(self):
        now = datetime(2025, 12, 31, 12, 0, tzinfo=timezone.utc)
        progress = build_progress_grid([], 2025, now, date(2025, 9, 9))
        assert progress.data[0].date == "2025-09-09"
        assert len(progress.data) == 22 + 31 + 30 + 31

    def test_future_year_is_empty(self):
        progress = build_progress_grid([], 2030, NOW, date(2020, 1, 1))
        assert progress.data == []
        assert progress.summary.totalDays == 0

    def test_summary_counts(self):
        entries = [
            _entry(date(2024, 1, 2), profit=100),
            _entry(date(2024, 1, 3), loss=300),
            _entry(date(2024, 1, 4), profit=60000),
            _entry(date(2024, 1, 5), profit=10, loss=10),
        ]
        summary = build_progress_grid(entries, 2024, NOW, date(2020, 1, 1)).summary
        assert summary.tradingDays == 4
        assert summary.profitDays == 2
        assert summary.lossDays == 1
        assert summary.maxPnL == 60000
        assert summary.minPnL == -300
        assert summary.winRate == 50.0

    def test_undated_entries_counted(self):
        entries = [TradePnLEntry(id="x", user_id="u", date=None, profit=5)]
        assert build_progress_grid(entries, 2024, NOW, date(2020, 1, 1)).skippedCount == 1


class TestWalletsAndDashboard:
    """Tests for wallet balances and the consolidated payload."""

    def test_wallet_buckets(self):
        wallets = [
            Wallet(id="1", user_id="u", name="Zerodha", wallet_type=WalletType.DEMAT, balance=1000),
            Wallet(id="2", user_id="u", name="Upstox", wallet_type=WalletType.DEMAT, balance=500),
            Wallet(id="3", user_id="u", name="HDFC", wallet_type=WalletType.BANK, balance=200),
            Wallet(id="4", user_id="u", name="Wise", wallet_type=WalletType.BANK, balance=30, currency="USD"),
        ]
        summary = summarize_wallets(wallets)
        assert summary.dematWallet.balance == 1500
        assert summary.dematWallet.count == 2
        assert summary.bankWallet.currencies == {"INR": 200, "USD": 30}
        assert summary.totalBalance == {"INR": 1700, "USD": 30}

    def test_unified_summary_ignores_dates(self):
        records = DashboardRecords(
            deposits=[_deposit(100, None), _deposit(50, NOW)],
            withdrawals=[_withdrawal(30, NOW - timedelta(days=900))],
            trade_pnl=[_entry(date(2020, 1, 1), profit=5, loss=2)],
        )
        summary = build_unified_summary(records)
        assert summary.totalDeposits == 150
        assert summary.netCashFlow == 120
        assert summary.totalTrades == 1

    def test_build_dashboard_has_every_timeframe(self):
        records = DashboardRecords(deposits=[_deposit(100, NOW - timedelta(days=2))])
        result = build_dashboard(records, "1w", NOW, platform_start=date(2020, 1, 1))
        assert result.requestedTimeframe == "1W"
        assert list(result.financialByTimeframe) == [tf.value for tf in SUPPORTED_TIMEFRAMES]
        assert result.customDateRange is None
        assert result.year == 2024
        assert result.financialByTimeframe["1D"].deposits.total == 0
        assert result.financialByTimeframe["1W"].deposits.total == 100

    def test_build_dashboard_custom(self):
        records = DashboardRecords(deposits=[_deposit(100, datetime(2024, 1, 15, tzinfo=timezone.utc))])
        custom = parse_custom_range("2024-01-01", "2024-01-31")
        result = build_dashboard(records, "CUSTOM", NOW, year=2023, custom_range=custom, platform_start=date(2020, 1, 1))
        assert result.financialByTimeframe["CUSTOM"].deposits.total == 100
        assert result.customDateRange.customStartDate.startswith("2024-01-01")
        assert result.tradePnLProgress.year == 2023
        assert len(result.tradePnLProgress.data) == 365
