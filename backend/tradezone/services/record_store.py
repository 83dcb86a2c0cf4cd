from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

import psycopg2
from fastapi import Depends
from psycopg2.extras import RealDictCursor
from pydantic import BaseModel

from ..core.config import Settings, get_settings
from ..core.exceptions import RecordNotFoundError, UpstreamFetchError
from ..core.logging_config import get_logger
from ..schemas.records import (
    Deposit,
    DepositCreate,
    DepositUpdate,
    PnLLimits,
    PnLLimitsUpdate,
    RuleCategory,
    RuleHistoryAction,
    TradePnLCreate,
    TradePnLEntry,
    TradePnLUpdate,
    TradeRule,
    TradeRuleCreate,
    TradeRuleHistoryEntry,
    TradeRuleUpdate,
    Wallet,
    WalletCreate,
    WalletUpdate,
    Withdrawal,
    WithdrawalCreate,
    WithdrawalUpdate,
)
from .dashboard_aggregator import DashboardRecords

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEPOSITS_TABLE = "public.deposits"
WITHDRAWALS_TABLE = "public.withdrawals"
TRADE_PNL_TABLE = "public.trade_pnl"
WALLETS_TABLE = "public.wallets"
TRADE_RULES_TABLE = "public.trade_rules"
TRADE_RULE_HISTORY_TABLE = "public.trade_rule_history"
PNL_LIMITS_TABLE = "public.pnl_limits"

# Newest first, matching what the dashboard lists show
CASH_FLOW_ORDER = "requested_at DESC NULLS LAST, created_at DESC"
TRADE_PNL_ORDER = "date DESC NULLS LAST, created_at DESC"
WALLET_ORDER = "created_at ASC"
TRADE_RULE_ORDER = "created_at DESC"

SCHEMA_DDL = (
    f"""
    CREATE TABLE IF NOT EXISTS {DEPOSITS_TABLE} (
        id text PRIMARY KEY,
        user_id text NOT NULL,
        amount numeric(20,2) NOT NULL DEFAULT 0,
        status text NOT NULL DEFAULT 'pending',
        requested_at timestamptz,
        completed_at timestamptz,
        method text,
        description text,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_deposits_user ON {DEPOSITS_TABLE} (user_id);
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {WITHDRAWALS_TABLE} (
        id text PRIMARY KEY,
        user_id text NOT NULL,
        amount numeric(20,2) NOT NULL DEFAULT 0,
        status text NOT NULL DEFAULT 'pending',
        requested_at timestamptz,
        completed_at timestamptz,
        method text,
        description text,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_withdrawals_user ON {WITHDRAWALS_TABLE} (user_id);
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {TRADE_PNL_TABLE} (
        id text PRIMARY KEY,
        user_id text NOT NULL,
        date date,
        symbol text,
        profit numeric(20,2) NOT NULL DEFAULT 0,
        loss numeric(20,2) NOT NULL DEFAULT 0,
        net_pnl numeric(20,2) NOT NULL DEFAULT 0,
        total_trades integer NOT NULL DEFAULT 0,
        winning_trades integer NOT NULL DEFAULT 0,
        losing_trades integer NOT NULL DEFAULT 0,
        notes text,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_trade_pnl_user_date ON {TRADE_PNL_TABLE} (user_id, date);
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {WALLETS_TABLE} (
        id text PRIMARY KEY,
        user_id text NOT NULL,
        name text NOT NULL,
        wallet_type text NOT NULL,
        balance numeric(20,2) NOT NULL DEFAULT 0,
        currency text NOT NULL DEFAULT 'INR',
        platform text,
        notes text,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_wallets_user ON {WALLETS_TABLE} (user_id);
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {TRADE_RULES_TABLE} (
        id text PRIMARY KEY,
        user_id text NOT NULL,
        title text NOT NULL,
        description text NOT NULL DEFAULT '',
        category text NOT NULL DEFAULT 'rule',
        importance text NOT NULL DEFAULT 'medium',
        tips text[] NOT NULL DEFAULT '{{}}',
        icon text,
        color text,
        is_active boolean NOT NULL DEFAULT true,
        violations integer NOT NULL DEFAULT 0,
        last_violation timestamptz,
        max_violations_per_day integer,
        penalty_amount numeric(20,2),
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_trade_rules_user ON {TRADE_RULES_TABLE} (user_id);
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {TRADE_RULE_HISTORY_TABLE} (
        id text PRIMARY KEY,
        user_id text NOT NULL,
        rule_id text NOT NULL,
        rule_title text NOT NULL,
        action text NOT NULL,
        details text NOT NULL DEFAULT '',
        occurred_at timestamptz NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_trade_rule_history_user
        ON {TRADE_RULE_HISTORY_TABLE} (user_id, occurred_at DESC);
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {PNL_LIMITS_TABLE} (
        user_id text PRIMARY KEY,
        loss_amount numeric(20,2) NOT NULL DEFAULT 5,
        profit_amount numeric(20,2) NOT NULL DEFAULT 15,
        updated_at timestamptz NOT NULL DEFAULT now()
    );
    """,
)


def _adapt(value: Any) -> Any:
    """Convert pydantic values into something psycopg2 can bind."""
    if isinstance(value, Enum):
        return value.value
    return value


def _normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    # numeric columns come back as Decimal
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in dict(row).items()}


class RecordStore:
    """Per-user CRUD over the PostgreSQL record tables.

    Every statement filters on user_id; touching another user's record looks
    exactly like touching a missing one. psycopg2 errors surface as
    UpstreamFetchError and are never retried here.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    @contextmanager
    def _cursor(self) -> Iterator[RealDictCursor]:
        try:
            conn = psycopg2.connect(self._dsn)
        except psycopg2.Error as e:
            logger.error(f"Record store connection failed: {e}")
            raise UpstreamFetchError(f"Record store connection failed: {e}") from e
        try:
            # `with conn` commits on success and rolls back on error
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    yield cur
        except psycopg2.Error as e:
            logger.error(f"Record store query failed: {e}")
            raise UpstreamFetchError(f"Record store query failed: {e}") from e
        finally:
            conn.close()

    # --- schema ---

    def init_schema(self) -> None:
        with self._cursor() as cur:
            for ddl in SCHEMA_DDL:
                cur.execute(ddl)
        logger.info("Record store schema ensured")

    # --- generic helpers (table/column names never come from request input) ---

    def _list(
        self,
        cur: RealDictCursor,
        table: str,
        user_id: str,
        order_by: str,
        model: Type[ModelT],
        extra_where: str = "",
        extra_params: tuple = (),
    ) -> List[ModelT]:
        sql = f"SELECT * FROM {table} WHERE user_id = %s{extra_where} ORDER BY {order_by}"
        cur.execute(sql, (user_id, *extra_params))
        return [model.model_validate(_normalize_row(r)) for r in cur.fetchall()]

    def _get(self, table: str, user_id: str, record_id: str, model: Type[ModelT]) -> ModelT:
        with self._cursor() as cur:
            cur.execute(f"SELECT * FROM {table} WHERE id = %s AND user_id = %s", (record_id, user_id))
            row = cur.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return model.model_validate(_normalize_row(row))

    @staticmethod
    def _new_row(user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            "id": uuid.uuid4().hex,
            "user_id": user_id,
            **{k: _adapt(v) for k, v in values.items()},
            "created_at": now,
            "updated_at": now,
        }

    @staticmethod
    def _insert_row(cur: RealDictCursor, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        columns = ", ".join(data.keys())
        placeholders = ", ".join(["%s"] * len(data))
        cur.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *",
            list(data.values()),
        )
        return cur.fetchone()

    @staticmethod
    def _update_row(
        cur: RealDictCursor, table: str, user_id: str, record_id: str, values: Dict[str, Any]
    ) -> Dict[str, Any]:
        assignments = [f"{col} = %s" for col in values.keys()]
        assignments.append("updated_at = %s")
        params: List[Any] = [_adapt(v) for v in values.values()]
        params.append(datetime.now(timezone.utc))
        params.extend([record_id, user_id])

        cur.execute(
            f"UPDATE {table} SET {', '.join(assignments)} "
            f"WHERE id = %s AND user_id = %s RETURNING *",
            params,
        )
        row = cur.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return row

    def _insert(self, table: str, user_id: str, values: Dict[str, Any], model: Type[ModelT]) -> ModelT:
        data = self._new_row(user_id, values)
        with self._cursor() as cur:
            row = self._insert_row(cur, table, data)
        logger.info(f"Created record in {table}: id={data['id']} user={user_id}")
        return model.model_validate(_normalize_row(row))

    def _update(
        self,
        table: str,
        user_id: str,
        record_id: str,
        values: Dict[str, Any],
        model: Type[ModelT],
        post_update_sql: Optional[str] = None,
    ) -> ModelT:
        with self._cursor() as cur:
            row = self._update_row(cur, table, user_id, record_id, values)
            if post_update_sql:
                cur.execute(post_update_sql, (record_id, user_id))
                row = cur.fetchone()
        logger.info(f"Updated record in {table}: id={record_id} fields={sorted(values.keys())}")
        return model.model_validate(_normalize_row(row))

    def _delete(self, table: str, user_id: str, record_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                f"DELETE FROM {table} WHERE id = %s AND user_id = %s RETURNING id",
                (record_id, user_id),
            )
            row = cur.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        logger.info(f"Deleted record from {table}: id={record_id} user={user_id}")

    # --- deposits ---

    def list_deposits(self, user_id: str) -> List[Deposit]:
        with self._cursor() as cur:
            return self._list(cur, DEPOSITS_TABLE, user_id, CASH_FLOW_ORDER, Deposit)

    def get_deposit(self, user_id: str, record_id: str) -> Deposit:
        return self._get(DEPOSITS_TABLE, user_id, record_id, Deposit)

    def create_deposit(self, user_id: str, payload: DepositCreate) -> Deposit:
        values = payload.model_dump()
        values["requested_at"] = values["requested_at"] or datetime.now(timezone.utc)
        return self._insert(DEPOSITS_TABLE, user_id, values, Deposit)

    def update_deposit(self, user_id: str, record_id: str, payload: DepositUpdate) -> Deposit:
        values = payload.model_dump(exclude_unset=True)
        if not values:
            return self.get_deposit(user_id, record_id)
        return self._update(DEPOSITS_TABLE, user_id, record_id, values, Deposit)

    def delete_deposit(self, user_id: str, record_id: str) -> None:
        self._delete(DEPOSITS_TABLE, user_id, record_id)

    # --- withdrawals ---

    def list_withdrawals(self, user_id: str) -> List[Withdrawal]:
        with self._cursor() as cur:
            return self._list(cur, WITHDRAWALS_TABLE, user_id, CASH_FLOW_ORDER, Withdrawal)

    def get_withdrawal(self, user_id: str, record_id: str) -> Withdrawal:
        return self._get(WITHDRAWALS_TABLE, user_id, record_id, Withdrawal)

    def create_withdrawal(self, user_id: str, payload: WithdrawalCreate) -> Withdrawal:
        values = payload.model_dump()
        values["requested_at"] = values["requested_at"] or datetime.now(timezone.utc)
        return self._insert(WITHDRAWALS_TABLE, user_id, values, Withdrawal)

    def update_withdrawal(self, user_id: str, record_id: str, payload: WithdrawalUpdate) -> Withdrawal:
        values = payload.model_dump(exclude_unset=True)
        if not values:
            return self.get_withdrawal(user_id, record_id)
        return self._update(WITHDRAWALS_TABLE, user_id, record_id, values, Withdrawal)

    def delete_withdrawal(self, user_id: str, record_id: str) -> None:
        self._delete(WITHDRAWALS_TABLE, user_id, record_id)

    # --- trade P&L ---

    def list_trade_pnl(self, user_id: str, days: Optional[int] = None) -> List[TradePnLEntry]:
        with self._cursor() as cur:
            if days:
                return self._list(
                    cur, TRADE_PNL_TABLE, user_id, TRADE_PNL_ORDER, TradePnLEntry,
                    extra_where=" AND date >= CURRENT_DATE - %s::int",
                    extra_params=(days,),
                )
            return self._list(cur, TRADE_PNL_TABLE, user_id, TRADE_PNL_ORDER, TradePnLEntry)

    def get_trade_pnl(self, user_id: str, record_id: str) -> TradePnLEntry:
        return self._get(TRADE_PNL_TABLE, user_id, record_id, TradePnLEntry)

    def create_trade_pnl(self, user_id: str, payload: TradePnLCreate) -> TradePnLEntry:
        values = payload.model_dump()
        values["net_pnl"] = values["profit"] - values["loss"]
        return self._insert(TRADE_PNL_TABLE, user_id, values, TradePnLEntry)

    def update_trade_pnl(self, user_id: str, record_id: str, payload: TradePnLUpdate) -> TradePnLEntry:
        values = payload.model_dump(exclude_unset=True)
        if not values:
            return self.get_trade_pnl(user_id, record_id)
        # net_pnl always follows profit - loss
        recompute = (
            f"UPDATE {TRADE_PNL_TABLE} SET net_pnl = profit - loss "
            f"WHERE id = %s AND user_id = %s RETURNING *"
        )
        return self._update(TRADE_PNL_TABLE, user_id, record_id, values, TradePnLEntry, post_update_sql=recompute)

    def delete_trade_pnl(self, user_id: str, record_id: str) -> None:
        self._delete(TRADE_PNL_TABLE, user_id, record_id)

    # --- wallets ---

    def list_wallets(self, user_id: str) -> List[Wallet]:
        with self._cursor() as cur:
            return self._list(cur, WALLETS_TABLE, user_id, WALLET_ORDER, Wallet)

    def get_wallet(self, user_id: str, record_id: str) -> Wallet:
        return self._get(WALLETS_TABLE, user_id, record_id, Wallet)

    def create_wallet(self, user_id: str, payload: WalletCreate) -> Wallet:
        return self._insert(WALLETS_TABLE, user_id, payload.model_dump(), Wallet)

    def update_wallet(self, user_id: str, record_id: str, payload: WalletUpdate) -> Wallet:
        values = payload.model_dump(exclude_unset=True)
        if not values:
            return self.get_wallet(user_id, record_id)
        return self._update(WALLETS_TABLE, user_id, record_id, values, Wallet)

    def delete_wallet(self, user_id: str, record_id: str) -> None:
        self._delete(WALLETS_TABLE, user_id, record_id)

    # --- trade rules ---

    @staticmethod
    def _record_rule_history(
        cur: RealDictCursor,
        user_id: str,
        rule_id: str,
        rule_title: str,
        action: RuleHistoryAction,
        details: str,
    ) -> None:
        cur.execute(
            f"INSERT INTO {TRADE_RULE_HISTORY_TABLE} "
            f"(id, user_id, rule_id, rule_title, action, details, occurred_at) "
            f"VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (uuid.uuid4().hex, user_id, rule_id, rule_title, action.value, details, datetime.now(timezone.utc)),
        )

    def list_trade_rules(
        self,
        user_id: str,
        category: Optional[RuleCategory] = None,
        is_active: Optional[bool] = None,
    ) -> List[TradeRule]:
        extra_where = ""
        extra_params: List[Any] = []
        if category is not None:
            extra_where += " AND category = %s"
            extra_params.append(_adapt(category))
        if is_active is not None:
            extra_where += " AND is_active = %s"
            extra_params.append(is_active)
        with self._cursor() as cur:
            return self._list(
                cur, TRADE_RULES_TABLE, user_id, TRADE_RULE_ORDER, TradeRule,
                extra_where=extra_where, extra_params=tuple(extra_params),
            )

    def get_trade_rule(self, user_id: str, record_id: str) -> TradeRule:
        return self._get(TRADE_RULES_TABLE, user_id, record_id, TradeRule)

    def create_trade_rule(self, user_id: str, payload: TradeRuleCreate) -> TradeRule:
        data = self._new_row(user_id, payload.model_dump())
        with self._cursor() as cur:
            row = self._insert_row(cur, TRADE_RULES_TABLE, data)
            self._record_rule_history(
                cur, user_id, data["id"], payload.title, RuleHistoryAction.CREATED,
                f"Created rule: {payload.title}",
            )
        logger.info(f"Created trade rule: id={data['id']} user={user_id}")
        return TradeRule.model_validate(_normalize_row(row))

    def update_trade_rule(self, user_id: str, record_id: str, payload: TradeRuleUpdate) -> TradeRule:
        values = payload.model_dump(exclude_unset=True)
        if not values:
            return self.get_trade_rule(user_id, record_id)
        with self._cursor() as cur:
            row = self._update_row(cur, TRADE_RULES_TABLE, user_id, record_id, values)
            self._record_rule_history(
                cur, user_id, record_id, row["title"], RuleHistoryAction.UPDATED,
                f"Updated fields: {', '.join(sorted(values))}",
            )
        logger.info(f"Updated trade rule: id={record_id} fields={sorted(values.keys())}")
        return TradeRule.model_validate(_normalize_row(row))

    def delete_trade_rule(self, user_id: str, record_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                f"DELETE FROM {TRADE_RULES_TABLE} WHERE id = %s AND user_id = %s RETURNING id, title",
                (record_id, user_id),
            )
            row = cur.fetchone()
            if row is None:
                raise RecordNotFoundError(f"Record {record_id} not found")
            self._record_rule_history(
                cur, user_id, record_id, row["title"], RuleHistoryAction.DELETED,
                f"Deleted rule: {row['title']}",
            )
        logger.info(f"Deleted trade rule: id={record_id} user={user_id}")

    def log_trade_rule_violation(self, user_id: str, record_id: str) -> TradeRule:
        """Count one more violation and stamp it with the current time."""
        now = datetime.now(timezone.utc)
        with self._cursor() as cur:
            cur.execute(
                f"UPDATE {TRADE_RULES_TABLE} "
                f"SET violations = violations + 1, last_violation = %s, updated_at = %s "
                f"WHERE id = %s AND user_id = %s RETURNING *",
                (now, now, record_id, user_id),
            )
            row = cur.fetchone()
            if row is None:
                raise RecordNotFoundError(f"Record {record_id} not found")
            self._record_rule_history(
                cur, user_id, record_id, row["title"], RuleHistoryAction.VIOLATION_RECORDED,
                f"Broke rule: {row['title']} ({row['violations']} times total)",
            )
        logger.info(f"Trade rule violated: id={record_id} total={row['violations']}")
        return TradeRule.model_validate(_normalize_row(row))

    def list_trade_rule_history(self, user_id: str, limit: Optional[int] = 20) -> List[TradeRuleHistoryEntry]:
        """Newest first. `limit=None` returns the whole history."""
        with self._cursor() as cur:
            # LIMIT NULL means no limit in PostgreSQL
            cur.execute(
                f"SELECT * FROM {TRADE_RULE_HISTORY_TABLE} WHERE user_id = %s "
                f"ORDER BY occurred_at DESC LIMIT %s",
                (user_id, limit),
            )
            rows = cur.fetchall()
        return [TradeRuleHistoryEntry.model_validate(_normalize_row(r)) for r in rows]

    def get_pnl_limits(self, user_id: str) -> PnLLimits:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT loss_amount, profit_amount, updated_at FROM {PNL_LIMITS_TABLE} WHERE user_id = %s",
                (user_id,),
            )
            row = cur.fetchone()
        if row is None:
            return PnLLimits()
        return PnLLimits.model_validate(_normalize_row(row))

    def update_pnl_limits(self, user_id: str, payload: PnLLimitsUpdate) -> PnLLimits:
        values = payload.model_dump(exclude_unset=True)
        defaults = PnLLimits()
        params = {
            "user_id": user_id,
            "loss": values.get("loss_amount"),
            "profit": values.get("profit_amount"),
            "default_loss": defaults.loss_amount,
            "default_profit": defaults.profit_amount,
            "now": datetime.now(timezone.utc),
        }
        with self._cursor() as cur:
            # Omitted limits keep their stored value, or the default on first write
            cur.execute(
                f"INSERT INTO {PNL_LIMITS_TABLE} AS l (user_id, loss_amount, profit_amount, updated_at) "
                f"VALUES (%(user_id)s, COALESCE(%(loss)s, %(default_loss)s), "
                f"COALESCE(%(profit)s, %(default_profit)s), %(now)s) "
                f"ON CONFLICT (user_id) DO UPDATE SET "
                f"loss_amount = COALESCE(%(loss)s, l.loss_amount), "
                f"profit_amount = COALESCE(%(profit)s, l.profit_amount), "
                f"updated_at = EXCLUDED.updated_at "
                f"RETURNING loss_amount, profit_amount, updated_at",
                params,
            )
            row = cur.fetchone()
        logger.info(f"Updated P&L limits: user={user_id} fields={sorted(values.keys())}")
        return PnLLimits.model_validate(_normalize_row(row))

    # --- dashboard ---

    def fetch_dashboard_records(self, user_id: str) -> DashboardRecords:
        """Load all of a user's records in one connection."""
        with self._cursor() as cur:
            return DashboardRecords(
                deposits=self._list(cur, DEPOSITS_TABLE, user_id, CASH_FLOW_ORDER, Deposit),
                withdrawals=self._list(cur, WITHDRAWALS_TABLE, user_id, CASH_FLOW_ORDER, Withdrawal),
                trade_pnl=self._list(cur, TRADE_PNL_TABLE, user_id, TRADE_PNL_ORDER, TradePnLEntry),
                wallets=self._list(cur, WALLETS_TABLE, user_id, WALLET_ORDER, Wallet),
            )


def get_record_store(settings: Settings = Depends(get_settings)) -> RecordStore:
    """FastAPI dependency; tests override it with an in-memory store."""
    return RecordStore(settings.postgres_dsn())
