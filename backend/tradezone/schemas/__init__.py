"""Pydantic schemas."""

# stored records (deposits, withdrawals, daily trade P&L, wallets, trade rules)
from .records import (
    RecordStatus,
    WalletType,
    Deposit,
    DepositCreate,
    DepositUpdate,
    Withdrawal,
    WithdrawalCreate,
    WithdrawalUpdate,
    TradePnLCreate,
    TradePnLUpdate,
    TradePnLEntry,
    TradePnLListResponse,
    Wallet,
    WalletCreate,
    WalletUpdate,
    RuleCategory,
    RuleImportance,
    RuleHistoryAction,
    TradeRule,
    TradeRuleCreate,
    TradeRuleUpdate,
    TradeRuleHistoryEntry,
    PnLLimits,
    PnLLimitsUpdate,
    DeleteResponse,
)

# dashboard payloads (camelCase, consumed by the web client as-is)
from .dashboard import (
    DateRange,
    ChartPoint,
    ChartData,
    CashFlowTotals,
    TradePnLStats,
    TimeframeSummary,
    ProgressDay,
    ProgressSummary,
    TradePnLProgress,
    WalletBucket,
    WalletsSummary,
    CustomDateRange,
    ConsolidatedDashboardResponse,
    UnifiedDashboardSummary,
    RuleViolationCount,
    CategoryViolations,
    DailyViolations,
    RecentViolation,
    ViolationAnalysis,
)
