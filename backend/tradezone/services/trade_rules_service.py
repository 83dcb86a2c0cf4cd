"""
Trade rule violation analysis.

analyze_violations is a pure function of the rules and their history; the
store-backed wrapper only fetches both for one user.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Sequence

from ..core.logging_config import get_logger
from ..schemas.dashboard import (
    CategoryViolations,
    DailyViolations,
    RecentViolation,
    RuleViolationCount,
    ViolationAnalysis,
)
from ..schemas.records import RuleHistoryAction, TradeRule, TradeRuleHistoryEntry
from .record_store import RecordStore

logger = get_logger(__name__)

RECENT_VIOLATIONS_LIMIT = 10


def analyze_violations(
    rules: Sequence[TradeRule],
    history: Iterable[TradeRuleHistoryEntry] = (),
) -> ViolationAnalysis:
    total_rules = len(rules)
    total_violations = sum(r.violations for r in rules)
    violated = [r for r in rules if r.violations > 0]

    most_violated = None
    if violated:
        # Ties go to the alphabetically first title so the result ignores input order
        top = min(violated, key=lambda r: (-r.violations, r.title, r.id))
        most_violated = RuleViolationCount(id=top.id, title=top.title, violations=top.violations)

    breakdown: Dict[str, CategoryViolations] = defaultdict(CategoryViolations)
    for rule in rules:
        bucket = breakdown[rule.category.value]
        bucket.rules += 1
        bucket.violations += rule.violations

    recent = sorted(
        (r for r in rules if r.last_violation is not None),
        key=lambda r: (r.last_violation, r.id),
        reverse=True,
    )[:RECENT_VIOLATIONS_LIMIT]

    per_day = Counter(
        e.occurred_at.date().isoformat()
        for e in history
        if e.action is RuleHistoryAction.VIOLATION_RECORDED and e.occurred_at is not None
    )

    return ViolationAnalysis(
        totalViolations=total_violations,
        totalRules=total_rules,
        activeRules=sum(1 for r in rules if r.is_active),
        violatedRules=len(violated),
        averageViolationsPerRule=total_violations / total_rules if total_rules else 0.0,
        mostViolatedRule=most_violated,
        categoryBreakdown={k: breakdown[k] for k in sorted(breakdown)},
        dailyViolations=[DailyViolations(date=d, count=per_day[d]) for d in sorted(per_day)],
        recentViolations=[
            RecentViolation(ruleId=r.id, ruleTitle=r.title, violationDate=r.last_violation.isoformat())
            for r in recent
        ],
    )


def get_violation_analysis(store: RecordStore, user_id: str) -> ViolationAnalysis:
    rules = store.list_trade_rules(user_id)
    history: List[TradeRuleHistoryEntry] = store.list_trade_rule_history(user_id, limit=None)
    result = analyze_violations(rules, history)
    logger.info(
        f"Violation analysis: user={user_id} rules={result.totalRules} "
        f"violations={result.totalViolations}"
    )
    return result
