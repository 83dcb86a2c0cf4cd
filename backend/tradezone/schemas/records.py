from __future__ import annotations

from datetime import date, datetime, timezone
from datetime import date as _date
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationInfo, computed_field, field_validator

from .dashboard import TradePnLStats


class RecordStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WalletType(str, Enum):
    DEMAT = "demat"
    BANK = "bank"


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp leniently.

    Accepts datetime, date, epoch seconds and ISO / 'YYYY-MM-DD HH:MM:SS'
    strings. Returns None for anything missing or unparseable so that
    aggregation can skip the record instead of failing. Naive values are UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                dt = datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
            except ValueError:
                return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def coerce_date(value: Any) -> Optional[date]:
    """Calendar-day counterpart of coerce_datetime."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    dt = coerce_datetime(value)
    return dt.date() if dt is not None else None


def reject_null(value: Any, info: ValidationInfo) -> Any:
    """Partial updates may omit a NOT NULL column but never set it to null."""
    if value is None:
        raise ValueError(f"{info.field_name} cannot be null")
    return value


# ---------------------------------------------------------------------------
# Deposits / withdrawals
# ---------------------------------------------------------------------------

class CashFlowCreate(BaseModel):
    amount: float = Field(..., ge=0, description="Non-negative amount")
    status: RecordStatus = RecordStatus.PENDING
    requested_at: Optional[datetime] = Field(None, description="Defaults to now")
    completed_at: Optional[datetime] = None
    method: Optional[str] = None
    description: Optional[str] = None


class CashFlowUpdate(BaseModel):
    """Omitted fields keep their stored value."""

    amount: Optional[float] = Field(None, ge=0)
    status: Optional[RecordStatus] = None
    completed_at: Optional[datetime] = None
    method: Optional[str] = None
    description: Optional[str] = None

    _not_null = field_validator("amount", "status")(reject_null)


class CashFlowRecord(BaseModel):
    id: str
    user_id: str
    amount: float = 0.0
    status: RecordStatus = RecordStatus.PENDING
    requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    method: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("requested_at", "completed_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_datetime(cls, value: Any) -> Optional[datetime]:
        return coerce_datetime(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_default(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class DepositCreate(CashFlowCreate):
    pass


class DepositUpdate(CashFlowUpdate):
    pass


class Deposit(CashFlowRecord):
    pass


class WithdrawalCreate(CashFlowCreate):
    pass


class WithdrawalUpdate(CashFlowUpdate):
    pass


class Withdrawal(CashFlowRecord):
    pass


# ---------------------------------------------------------------------------
# Trade P&L
# ---------------------------------------------------------------------------

class TradePnLCreate(BaseModel):
    date: _date
    symbol: Optional[str] = None
    profit: float = Field(0.0, ge=0)
    loss: float = Field(0.0, description="Stored as its absolute value")
    total_trades: int = Field(0, ge=0)
    winning_trades: int = Field(0, ge=0)
    losing_trades: int = Field(0, ge=0)
    notes: Optional[str] = None

    @field_validator("loss")
    @classmethod
    def _normalize_loss(cls, value: float) -> float:
        return abs(value)


class TradePnLUpdate(BaseModel):
    date: Optional[_date] = None
    symbol: Optional[str] = None
    profit: Optional[float] = Field(None, ge=0)
    loss: Optional[float] = None
    total_trades: Optional[int] = Field(None, ge=0)
    winning_trades: Optional[int] = Field(None, ge=0)
    losing_trades: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

    _not_null = field_validator(
        "date", "profit", "loss", "total_trades", "winning_trades", "losing_trades"
    )(reject_null)

    @field_validator("loss")
    @classmethod
    def _normalize_loss(cls, value: Optional[float]) -> Optional[float]:
        return abs(value) if value is not None else None


class TradePnLEntry(BaseModel):
    """One trading day's aggregate result for a user."""

    id: str
    user_id: str
    date: Optional[_date] = None
    symbol: Optional[str] = None
    profit: float = 0.0
    loss: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Optional[_date]:
        return coerce_date(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_datetime(cls, value: Any) -> Optional[datetime]:
        return coerce_datetime(value)

    @field_validator("profit", "loss", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> float:
        # Legacy rows stored losses as negative numbers
        return abs(float(value)) if value is not None else 0.0

    @field_validator("total_trades", "winning_trades", "losing_trades", mode="before")
    @classmethod
    def _count_default(cls, value: Any) -> int:
        return int(value) if value is not None else 0

    @computed_field
    @property
    def net_pnl(self) -> float:
        return self.profit - self.loss


class TradePnLListResponse(BaseModel):
    data: List[TradePnLEntry] = []
    statistics: TradePnLStats
    period: str = Field("all", description="'all' or 'last N days'")


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------

class WalletCreate(BaseModel):
    name: str = Field(..., min_length=1)
    wallet_type: WalletType
    balance: float = 0.0
    currency: str = Field("INR", min_length=1)
    platform: Optional[str] = None
    notes: Optional[str] = None


class WalletUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    wallet_type: Optional[WalletType] = None
    balance: Optional[float] = None
    currency: Optional[str] = Field(None, min_length=1)
    platform: Optional[str] = None
    notes: Optional[str] = None

    _not_null = field_validator("name", "wallet_type", "balance", "currency")(reject_null)


class Wallet(BaseModel):
    id: str
    user_id: str
    name: str
    wallet_type: WalletType
    balance: float = 0.0
    currency: str = "INR"
    platform: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Trade rules
# ---------------------------------------------------------------------------

class RuleCategory(str, Enum):
    LOSS = "loss"
    PROFIT = "profit"
    RULE = "rule"


class RuleImportance(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RuleHistoryAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    VIOLATION_RECORDED = "violation_recorded"


class TradeRuleCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: RuleCategory = RuleCategory.RULE
    importance: RuleImportance = RuleImportance.MEDIUM
    tips: List[str] = []
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True
    max_violations_per_day: Optional[int] = Field(None, ge=0)
    penalty_amount: Optional[float] = Field(None, ge=0)


class TradeRuleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[RuleCategory] = None
    importance: Optional[RuleImportance] = None
    tips: Optional[List[str]] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
    max_violations_per_day: Optional[int] = Field(None, ge=0)
    penalty_amount: Optional[float] = Field(None, ge=0)

    _not_null = field_validator(
        "title", "description", "category", "importance", "tips", "is_active"
    )(reject_null)


class TradeRule(BaseModel):
    """A personal trading rule and how often it has been broken."""

    id: str
    user_id: str
    title: str
    description: str = ""
    category: RuleCategory = RuleCategory.RULE
    importance: RuleImportance = RuleImportance.MEDIUM
    tips: List[str] = []
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True
    violations: int = 0
    last_violation: Optional[datetime] = None
    max_violations_per_day: Optional[int] = None
    penalty_amount: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("last_violation", "created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_datetime(cls, value: Any) -> Optional[datetime]:
        return coerce_datetime(value)

    @field_validator("tips", mode="before")
    @classmethod
    def _tips_default(cls, value: Any) -> Any:
        return [] if value is None else value


class TradeRuleHistoryEntry(BaseModel):
    id: str
    user_id: str
    rule_id: str
    rule_title: str
    action: RuleHistoryAction
    details: str = ""
    occurred_at: Optional[datetime] = None

    @field_validator("occurred_at", mode="before")
    @classmethod
    def _lenient_datetime(cls, value: Any) -> Optional[datetime]:
        return coerce_datetime(value)


class PnLLimits(BaseModel):
    """Daily loss and profit targets shown next to the rules."""

    loss_amount: float = 5.0
    profit_amount: float = 15.0
    updated_at: Optional[datetime] = None


class PnLLimitsUpdate(BaseModel):
    loss_amount: Optional[float] = Field(None, ge=0)
    profit_amount: Optional[float] = Field(None, ge=0)

    _not_null = field_validator("loss_amount", "profit_amount")(reject_null)


class DeleteResponse(BaseModel):
    ok: bool
    id: str
