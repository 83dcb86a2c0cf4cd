from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DateRange(BaseModel):
    startDate: str
    endDate: str


class ChartPoint(BaseModel):
    period: str
    deposits: float = 0.0
    withdrawals: float = 0.0
    netCashFlow: float = 0.0
    netPnL: float = 0.0


class ChartData(BaseModel):
    daily: List[ChartPoint] = []
    weekly: List[ChartPoint] = []
    monthly: List[ChartPoint] = []


class CashFlowTotals(BaseModel):
    # total counts every status; pending/completed/failed split it
    total: float = 0.0
    count: int = 0
    pending: float = 0.0
    completed: float = 0.0
    failed: float = 0.0


class TradePnLStats(BaseModel):
    totalProfit: float = 0.0
    totalLoss: float = 0.0
    netPnL: float = 0.0
    totalTrades: int = 0
    winningTrades: int = 0
    losingTrades: int = 0
    winRate: float = Field(0.0, ge=0, le=100, description="Percent, one decimal")
    daysTraded: int = 0
    averageDailyPnL: float = 0.0


class TimeframeSummary(BaseModel):
    timeframe: str
    dateRange: DateRange
    deposits: CashFlowTotals
    withdrawals: CashFlowTotals
    tradePnL: TradePnLStats
    netCashFlow: float = 0.0
    overallPnL: float = 0.0
    skippedCount: int = 0
    chartData: ChartData = ChartData()


class ProgressDay(BaseModel):
    date: str
    pnl: float = 0.0
    hasData: bool = False
    intensity: int = 0


class ProgressSummary(BaseModel):
    totalDays: int = 0
    tradingDays: int = 0
    profitDays: int = 0
    lossDays: int = 0
    totalPnL: float = 0.0
    maxPnL: float = 0.0
    minPnL: float = 0.0
    winRate: float = 0.0


class TradePnLProgress(BaseModel):
    year: int
    data: List[ProgressDay] = []
    summary: ProgressSummary = ProgressSummary()
    skippedCount: int = 0


class WalletBucket(BaseModel):
    balance: float = 0.0
    count: int = 0
    currencies: Dict[str, float] = {}


class WalletsSummary(BaseModel):
    dematWallet: WalletBucket = WalletBucket()
    bankWallet: WalletBucket = WalletBucket()
    totalBalance: Dict[str, float] = {}


class CustomDateRange(BaseModel):
    customStartDate: str
    customEndDate: str


class ConsolidatedDashboardResponse(BaseModel):
    requestedTimeframe: str
    financialByTimeframe: Dict[str, TimeframeSummary]
    tradePnLProgress: TradePnLProgress
    currentWallets: WalletsSummary
    customDateRange: Optional[CustomDateRange] = None
    year: int
    generatedAt: str
    supportedTimeframes: List[str]


class UnifiedDashboardSummary(BaseModel):
    totalDeposits: float = 0.0
    totalWithdrawals: float = 0.0
    totalTrades: int = 0
    totalProfit: float = 0.0
    totalLoss: float = 0.0
    netCashFlow: float = 0.0


class RuleViolationCount(BaseModel):
    id: str
    title: str
    violations: int


class CategoryViolations(BaseModel):
    rules: int = 0
    violations: int = 0


class DailyViolations(BaseModel):
    date: str
    count: int


class RecentViolation(BaseModel):
    ruleId: str
    ruleTitle: str
    violationDate: str


class ViolationAnalysis(BaseModel):
    totalViolations: int = 0
    totalRules: int = 0
    activeRules: int = 0
    violatedRules: int = 0
    averageViolationsPerRule: float = 0.0
    mostViolatedRule: Optional[RuleViolationCount] = None
    categoryBreakdown: Dict[str, CategoryViolations] = {}
    dailyViolations: List[DailyViolations] = Field(default_factory=list, description="From violation history, oldest first")
    recentViolations: List[RecentViolation] = []
