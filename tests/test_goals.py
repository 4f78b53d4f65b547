from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import Frequency, IntervalKind, TransactionKind
from schemas import GoalIn, TransactionIn
from services import (
    GoalService,
    TransactionService,
    budget_alert_color,
    goal_alert_color,
)


def _seed(session: Session) -> None:
    txns = TransactionService(session)
    txns.create(
        TransactionIn(
            kind=TransactionKind.expense,
            label="Rent",
            amount_cents=120_000,
            anchor_date=date(2025, 1, 1),
            frequency=Frequency.monthly,
        )
    )
    txns.create(
        TransactionIn(
            kind=TransactionKind.expense,
            label="Food",
            amount_cents=10_000,
            anchor_date=date(2025, 1, 6),
            frequency=Frequency.weekly,
        )
    )
    txns.create(
        TransactionIn(
            kind=TransactionKind.income,
            label="Salary",
            amount_cents=150_000,
            anchor_date=date(2025, 1, 3),
            frequency=Frequency.biweekly,
        )
    )


def test_budget_progress_counts_virtual_occurrences() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _seed(session)
        goals = GoalService(session)
        goals.upsert(
            GoalIn(
                kind=TransactionKind.expense,
                interval=IntervalKind.monthly,
                label_targets={"Rent": 150_000, "Food": 50_000},
            )
        )

        progress = goals.progress(TransactionKind.expense, date(2025, 2, 10))

        assert (progress.period.start, progress.period.end) == (
            date(2025, 2, 1),
            date(2025, 2, 28),
        )
        assert progress.total_cents == 160_000
        assert progress.target_cents == 200_000
        assert progress.percent == pytest.approx(80.0)
        assert progress.alert == "yellow"
        assert progress.breakdown == {
            "Food": {"actual_cents": 40_000, "target_cents": 50_000},
            "Rent": {"actual_cents": 120_000, "target_cents": 150_000},
        }


def test_income_goal_progress_includes_target_only_sources() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _seed(session)
        goals = GoalService(session)
        goals.upsert(
            GoalIn(
                kind=TransactionKind.income,
                label_targets={"Freelance": 0},
                total_cents=300_000,
            )
        )

        progress = goals.progress(TransactionKind.income, date(2025, 2, 10))

        assert progress.total_cents == 300_000
        assert progress.percent == pytest.approx(100.0)
        assert progress.alert == "green"
        assert progress.breakdown["Freelance"] == {"actual_cents": 0, "target_cents": 0}
        assert progress.breakdown["Salary"]["actual_cents"] == 300_000


def test_goal_upsert_replaces_existing_record() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        goals = GoalService(session)
        first = goals.upsert(
            GoalIn(kind=TransactionKind.expense, label_targets={"Rent": 1_000})
        )
        second = goals.upsert(
            GoalIn(
                kind=TransactionKind.expense,
                interval=IntervalKind.weekly,
                label_targets={"Food": 2_000},
            )
        )
        assert first.id == second.id
        assert second.interval == IntervalKind.weekly
        assert second.total_cents == 2_000
        assert second.label_targets == {"Food": 2_000}


def test_zero_target_reports_zero_percent() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _seed(session)
        goals = GoalService(session)
        goals.upsert(GoalIn(kind=TransactionKind.expense))
        progress = goals.progress(TransactionKind.expense, date(2025, 2, 10))
        assert progress.target_cents == 0
        assert progress.percent == 0.0
        assert progress.alert == "green"


def test_missing_goal_raises() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        with pytest.raises(ValueError):
            GoalService(session).progress(TransactionKind.income, date(2025, 2, 10))


def test_negative_targets_are_rejected() -> None:
    with pytest.raises(ValueError):
        GoalIn(kind=TransactionKind.expense, label_targets={"Rent": -1})


def test_savings_summary_nets_income_against_expenses() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        _seed(session)
        summary = GoalService(session).savings_summary("monthly", date(2025, 2, 10))
        assert summary["income_cents"] == 300_000
        assert summary["expense_cents"] == 160_000
        assert summary["net_cents"] == 140_000


def test_alert_colour_thresholds() -> None:
    assert budget_alert_color(74.9) == "green"
    assert budget_alert_color(75) == "yellow"
    assert budget_alert_color(90) == "red"
    assert goal_alert_color(49.9) == "red"
    assert goal_alert_color(50) == "yellow"
    assert goal_alert_color(80) == "green"
