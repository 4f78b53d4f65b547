from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from models import (
    Frequency,
    Goal,
    IntervalKind,
    SkippedDate,
    Transaction,
    TransactionKind,
)
from periods import Period, window_for
from recurrence import (
    DateLike,
    SkipRegistry,
    local_today,
    next_occurrence,
    occurrences_in_interval,
    to_calendar_date,
    total_in_interval,
)
from schemas import GoalIn, TransactionIn

logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


def budget_alert_color(percent: float) -> str:
    if percent < 75:
        return "green"
    if percent < 90:
        return "yellow"
    return "red"


def goal_alert_color(percent: float) -> str:
    if percent < 50:
        return "red"
    if percent < 80:
        return "yellow"
    return "green"


@dataclass(frozen=True)
class TransactionView:
    transaction: Transaction
    next_recurrence: Optional[date]


@dataclass(frozen=True)
class GoalProgress:
    kind: TransactionKind
    period: Period
    total_cents: int
    target_cents: int
    percent: float
    alert: str
    breakdown: dict[str, dict[str, int]]


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            kind=data.kind,
            label=data.label.strip(),
            description=data.description,
            amount_cents=data.amount_cents,
            anchor_date=data.anchor_date,
            frequency=data.frequency,
            is_original=True,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        if data.anchor_date != txn.anchor_date or data.frequency != txn.frequency:
            # a new date or cadence starts a new series; old skips no longer apply
            if txn.skips:
                logger.info(
                    f"series_restarted: transaction_id={txn.id} cleared_skips={len(txn.skips)}"
                )
            txn.skips.clear()
        for field, value in data.model_dump().items():
            setattr(txn, field, value)
        txn.label = data.label.strip()
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.execute(
            delete(Transaction).where(
                Transaction.user_id == self.user_id,
                Transaction.original_id == txn.id,
            )
        )
        self.session.delete(txn)
        self.session.commit()

    def list(
        self,
        kind: Optional[TransactionKind] = None,
        *,
        include_materialized: bool = False,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.skips))
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.anchor_date.desc(), Transaction.id.desc())
        )
        if kind is not None:
            stmt = stmt.where(Transaction.kind == kind)
        if not include_materialized:
            stmt = stmt.where(Transaction.is_original.is_(True))
        return list(self.session.scalars(stmt).all())

    def list_with_next(
        self,
        kind: Optional[TransactionKind] = None,
        as_of: Optional[DateLike] = None,
    ) -> list[TransactionView]:
        reference = local_today() if as_of is None else to_calendar_date(as_of)
        return [
            TransactionView(txn, next_occurrence(txn, reference))
            for txn in self.list(kind)
        ]

    def total_in_period(self, kind: TransactionKind, period: Period) -> int:
        return total_in_interval(self.list(kind), period.start, period.end)

    def skip_registry(self, txn: Transaction) -> SkipRegistry:
        def persist(day: date) -> None:
            txn.skips.append(SkippedDate(skipped_on=day))
            self.session.flush()

        return SkipRegistry(txn.skipped_dates, persist=persist)

    def skip_date(self, transaction_id: int, day: DateLike) -> bool:
        txn = self.get(transaction_id)
        if txn.frequency == Frequency.once:
            raise ValueError("Only recurring transactions can be skipped")
        value = to_calendar_date(day)
        try:
            added = self.skip_registry(txn).add(value)
        except IntegrityError:
            # a concurrent request stored the same day first
            self.session.rollback()
            added = False
        if not added:
            logger.warning(
                f"duplicate_skip: transaction_id={transaction_id} date={value.isoformat()}"
            )
            return False
        self.session.commit()
        logger.info(f"skip_added: transaction_id={transaction_id} date={value.isoformat()}")
        return True

    def skip_next(
        self, transaction_id: int, as_of: Optional[DateLike] = None
    ) -> Optional[date]:
        """Skip the upcoming recurrence and return the one after it."""
        txn = self.get(transaction_id)
        reference = local_today() if as_of is None else to_calendar_date(as_of)
        upcoming = next_occurrence(txn, reference)
        if upcoming is None:
            raise ValueError("No upcoming recurrence to skip")
        self.skip_date(transaction_id, upcoming)
        return next_occurrence(self.get(transaction_id), reference)

    def retire_materialized(self) -> int:
        legacy_ids = select(Transaction.id).where(
            Transaction.user_id == self.user_id,
            Transaction.is_original.is_(False),
        )
        self.session.execute(
            delete(SkippedDate).where(SkippedDate.transaction_id.in_(legacy_ids))
        )
        result = self.session.execute(
            delete(Transaction).where(
                Transaction.user_id == self.user_id,
                Transaction.is_original.is_(False),
            )
        )
        self.session.commit()
        count = result.rowcount or 0
        logger.info(f"retire_materialized: user_id={self.user_id} rows_deleted={count}")
        return count


class GoalService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.transactions = TransactionService(session, self.user_id)

    def find(self, kind: TransactionKind) -> Optional[Goal]:
        return self.session.scalar(
            select(Goal).where(Goal.user_id == self.user_id, Goal.kind == kind)
        )

    def get(self, kind: TransactionKind) -> Goal:
        goal = self.find(kind)
        if goal is None:
            raise ValueError(f"No {kind.value} goal record found")
        return goal

    def upsert(self, data: GoalIn) -> Goal:
        goal = self.find(data.kind)
        if goal is None:
            goal = Goal(user_id=self.user_id, kind=data.kind)
            self.session.add(goal)
        goal.interval = data.interval
        goal.total_cents = data.resolved_total()
        goal.label_targets_json = json.dumps(data.label_targets, sort_keys=True)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def delete(self, kind: TransactionKind) -> None:
        self.session.delete(self.get(kind))
        self.session.commit()

    def progress(
        self, kind: TransactionKind, reference: Optional[DateLike] = None
    ) -> GoalProgress:
        goal = self.get(kind)
        period = window_for(goal.interval, reference)
        items = self.transactions.list(kind)

        actual: dict[str, int] = {}
        for txn, _day in occurrences_in_interval(items, period.start, period.end):
            actual[txn.label] = actual.get(txn.label, 0) + txn.amount_cents
        total = sum(actual.values())

        targets = goal.label_targets
        breakdown = {
            label: {
                "actual_cents": actual.get(label, 0),
                "target_cents": targets.get(label, 0),
            }
            for label in sorted(set(targets) | set(actual))
        }
        percent = (total / goal.total_cents * 100) if goal.total_cents > 0 else 0.0
        alert = (
            budget_alert_color(percent)
            if kind == TransactionKind.expense
            else goal_alert_color(percent)
        )
        return GoalProgress(
            kind=kind,
            period=period,
            total_cents=total,
            target_cents=goal.total_cents,
            percent=percent,
            alert=alert,
            breakdown=breakdown,
        )

    def savings_summary(
        self,
        interval: Union[IntervalKind, str] = IntervalKind.monthly,
        reference: Optional[DateLike] = None,
    ) -> dict[str, object]:
        period = window_for(interval, reference)
        income = self.transactions.total_in_period(TransactionKind.income, period)
        expense = self.transactions.total_in_period(TransactionKind.expense, period)
        return {
            "interval": period.slug,
            "start": period.start,
            "end": period.end,
            "income_cents": income,
            "expense_cents": expense,
            "net_cents": income - expense,
        }
