"""Pytest configuration and fixtures."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Generator, List, Optional, Type

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from tradezone.core.config import Settings, get_settings
from tradezone.core.exceptions import RecordNotFoundError, UpstreamFetchError
from tradezone.core.security import create_access_token
from tradezone.schemas.records import (
    Deposit,
    PnLLimits,
    RuleHistoryAction,
    TradePnLEntry,
    TradeRule,
    TradeRuleHistoryEntry,
    Wallet,
    Withdrawal,
)
from tradezone.services.dashboard_aggregator import DashboardRecords
from tradezone.services.record_store import get_record_store


class InMemoryRecordStore:
    """Dict-backed stand-in for RecordStore with the same per-user semantics."""

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[str, BaseModel]] = {
            "deposits": {},
            "withdrawals": {},
            "trade_pnl": {},
            "wallets": {},
            "trade_rules": {},
        }
        self.rule_history: List[TradeRuleHistoryEntry] = []
        self.pnl_limits: Dict[str, PnLLimits] = {}
        self.fetch_calls = 0

    # --- generic helpers ---

    def _list(self, table: str, user_id: str) -> List[BaseModel]:
        return [r for r in self._tables[table].values() if r.user_id == user_id]

    def _get(self, table: str, user_id: str, record_id: str) -> BaseModel:
        record = self._tables[table].get(record_id)
        if record is None or record.user_id != user_id:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return record

    def _insert(self, table: str, user_id: str, values: dict, model: Type[BaseModel]) -> BaseModel:
        now = datetime.now(timezone.utc)
        record = model.model_validate(
            {"id": uuid.uuid4().hex, "user_id": user_id, **values, "created_at": now, "updated_at": now}
        )
        self._tables[table][record.id] = record
        return record

    def _update(self, table: str, user_id: str, record_id: str, payload: BaseModel, model: Type[BaseModel]) -> BaseModel:
        existing = self._get(table, user_id, record_id)
        values = payload.model_dump(exclude_unset=True)
        if not values:
            return existing
        record = model.model_validate(
            {**existing.model_dump(), **values, "updated_at": datetime.now(timezone.utc)}
        )
        self._tables[table][record_id] = record
        return record

    def _delete(self, table: str, user_id: str, record_id: str) -> None:
        self._get(table, user_id, record_id)
        del self._tables[table][record_id]

    def add(self, table: str, record: BaseModel) -> BaseModel:
        """Seed a record as-is, bypassing create validation."""
        self._tables[table][record.id] = record
        return record

    # --- deposits ---

    def list_deposits(self, user_id):
        return self._list("deposits", user_id)

    def get_deposit(self, user_id, record_id):
        return self._get("deposits", user_id, record_id)

    def create_deposit(self, user_id, payload):
        values = payload.model_dump()
        values["requested_at"] = values["requested_at"] or datetime.now(timezone.utc)
        return self._insert("deposits", user_id, values, Deposit)

    def update_deposit(self, user_id, record_id, payload):
        return self._update("deposits", user_id, record_id, payload, Deposit)

    def delete_deposit(self, user_id, record_id):
        self._delete("deposits", user_id, record_id)

    # --- withdrawals ---

    def list_withdrawals(self, user_id):
        return self._list("withdrawals", user_id)

    def get_withdrawal(self, user_id, record_id):
        return self._get("withdrawals", user_id, record_id)

    def create_withdrawal(self, user_id, payload):
        values = payload.model_dump()
        values["requested_at"] = values["requested_at"] or datetime.now(timezone.utc)
        return self._insert("withdrawals", user_id, values, Withdrawal)

    def update_withdrawal(self, user_id, record_id, payload):
        return self._update("withdrawals", user_id, record_id, payload, Withdrawal)

    def delete_withdrawal(self, user_id, record_id):
        self._delete("withdrawals", user_id, record_id)

    # --- trade P&L ---

    def list_trade_pnl(self, user_id, days: Optional[int] = None):
        entries = self._list("trade_pnl", user_id)
        if days:
            cutoff = datetime.now(timezone.utc).date() - timedelta(days=days)
            entries = [e for e in entries if e.date is not None and e.date >= cutoff]
        return sorted(entries, key=lambda e: e.date or date.min, reverse=True)

    def get_trade_pnl(self, user_id, record_id):
        return self._get("trade_pnl", user_id, record_id)

    def create_trade_pnl(self, user_id, payload):
        return self._insert("trade_pnl", user_id, payload.model_dump(), TradePnLEntry)

    def update_trade_pnl(self, user_id, record_id, payload):
        return self._update("trade_pnl", user_id, record_id, payload, TradePnLEntry)

    def delete_trade_pnl(self, user_id, record_id):
        self._delete("trade_pnl", user_id, record_id)

    # --- wallets ---

    def list_wallets(self, user_id):
        return self._list("wallets", user_id)

    def get_wallet(self, user_id, record_id):
        return self._get("wallets", user_id, record_id)

    def create_wallet(self, user_id, payload):
        return self._insert("wallets", user_id, payload.model_dump(), Wallet)

    def update_wallet(self, user_id, record_id, payload):
        return self._update("wallets", user_id, record_id, payload, Wallet)

    def delete_wallet(self, user_id, record_id):
        self._delete("wallets", user_id, record_id)

    # --- trade rules ---

    def _log_history(self, user_id, rule, action, details):
        self.rule_history.append(
            TradeRuleHistoryEntry(
                id=uuid.uuid4().hex,
                user_id=user_id,
                rule_id=rule.id,
                rule_title=rule.title,
                action=action,
                details=details,
                occurred_at=datetime.now(timezone.utc),
            )
        )

    def list_trade_rules(self, user_id, category=None, is_active=None):
        rules = self._list("trade_rules", user_id)
        if category is not None:
            rules = [r for r in rules if r.category == category]
        if is_active is not None:
            rules = [r for r in rules if r.is_active == is_active]
        return sorted(rules, key=lambda r: r.created_at, reverse=True)

    def get_trade_rule(self, user_id, record_id):
        return self._get("trade_rules", user_id, record_id)

    def create_trade_rule(self, user_id, payload):
        rule = self._insert("trade_rules", user_id, payload.model_dump(), TradeRule)
        self._log_history(user_id, rule, RuleHistoryAction.CREATED, f"Created rule: {rule.title}")
        return rule

    def update_trade_rule(self, user_id, record_id, payload):
        rule = self._update("trade_rules", user_id, record_id, payload, TradeRule)
        fields = ", ".join(sorted(payload.model_dump(exclude_unset=True)))
        if fields:
            self._log_history(user_id, rule, RuleHistoryAction.UPDATED, f"Updated fields: {fields}")
        return rule

    def delete_trade_rule(self, user_id, record_id):
        rule = self._get("trade_rules", user_id, record_id)
        self._delete("trade_rules", user_id, record_id)
        self._log_history(user_id, rule, RuleHistoryAction.DELETED, f"Deleted rule: {rule.title}")

    def log_trade_rule_violation(self, user_id, record_id):
        rule = self._get("trade_rules", user_id, record_id)
        now = datetime.now(timezone.utc)
        rule = rule.model_copy(
            update={"violations": rule.violations + 1, "last_violation": now, "updated_at": now}
        )
        self._tables["trade_rules"][record_id] = rule
        self._log_history(
            user_id, rule, RuleHistoryAction.VIOLATION_RECORDED,
            f"Broke rule: {rule.title} ({rule.violations} times total)",
        )
        return rule

    def list_trade_rule_history(self, user_id, limit=20):
        entries = [e for e in reversed(self.rule_history) if e.user_id == user_id]
        return entries if limit is None else entries[:limit]

    def get_pnl_limits(self, user_id):
        return self.pnl_limits.get(user_id, PnLLimits())

    def update_pnl_limits(self, user_id, payload):
        current = self.get_pnl_limits(user_id)
        limits = current.model_copy(
            update={**payload.model_dump(exclude_unset=True), "updated_at": datetime.now(timezone.utc)}
        )
        self.pnl_limits[user_id] = limits
        return limits

    # --- dashboard ---

    def fetch_dashboard_records(self, user_id):
        self.fetch_calls += 1
        return DashboardRecords(
            deposits=self.list_deposits(user_id),
            withdrawals=self.list_withdrawals(user_id),
            trade_pnl=self.list_trade_pnl(user_id),
            wallets=self.list_wallets(user_id),
        )


class UnavailableRecordStore:
    """Every read fails the way an unreachable database does."""

    def _fail(self, *args, **kwargs):
        raise UpstreamFetchError("Record store connection failed: connection refused")

    fetch_dashboard_records = _fail
    list_deposits = _fail
    list_withdrawals = _fail
    list_trade_pnl = _fail
    list_wallets = _fail
    list_trade_rules = _fail
    list_trade_rule_history = _fail


@pytest.fixture
def settings() -> Settings:
    s = Settings()
    s.JWT_SECRET = "test-secret"
    s.JWT_ALGORITHM = "HS256"
    s.JWT_EXPIRE_MINUTES = 60
    s.PLATFORM_START_DATE = "2020-01-01"
    return s


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def app(settings: Settings, store: InMemoryRecordStore):
    from tradezone.main import create_app

    application = create_app()
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_record_store] = lambda: store
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_headers(settings: Settings):
    def _make(user_id: str = "user-1") -> dict:
        token = create_access_token(user_id, settings=settings)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def auth_headers(make_headers) -> dict:
    return make_headers("user-1")


@pytest.fixture
def unavailable_store() -> UnavailableRecordStore:
    return UnavailableRecordStore()
