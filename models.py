import json
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionKind(str, Enum):
    income = "income"
    expense = "expense"


class Frequency(str, Enum):
    once = "once"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    yearly = "yearly"


class IntervalKind(str, Enum):
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    yearly = "yearly"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(TransactionKind), nullable=False
    )
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    anchor_date: Mapped[date] = mapped_column(Date, nullable=False)
    frequency: Mapped[Frequency] = mapped_column(
        SAEnum(Frequency), nullable=False, default=Frequency.once
    )
    # rows materialized by the old twelve-instance bulk insert carry False
    is_original: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    original_id: Mapped[Optional[int]] = mapped_column(ForeignKey("transactions.id"))

    skips: Mapped[list["SkippedDate"]] = relationship(
        "SkippedDate",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="SkippedDate.skipped_on",
    )

    __table_args__ = (
        Index("ix_transactions_user_kind_anchor", "user_id", "kind", "anchor_date"),
        Index("ix_transactions_original", "original_id"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )

    @property
    def skipped_dates(self) -> list[date]:
        return [skip.skipped_on for skip in self.skips]


class SkippedDate(Base):
    __tablename__ = "skipped_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    skipped_on: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="skips"
    )

    __table_args__ = (
        UniqueConstraint(
            "transaction_id", "skipped_on", name="uq_skipped_date_transaction_day"
        ),
    )


class Goal(Base, TimestampMixin):
    """Spending budget (expense) or income goal (income) over a rolling interval."""

    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(TransactionKind), nullable=False
    )
    interval: Mapped[IntervalKind] = mapped_column(
        SAEnum(IntervalKind), nullable=False, default=IntervalKind.monthly
    )
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    label_targets_json: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("user_id", "kind", name="uq_goal_user_kind"),
        CheckConstraint("total_cents >= 0", name="ck_goal_total_positive"),
    )

    @property
    def label_targets(self) -> dict[str, int]:
        if not self.label_targets_json:
            return {}
        return {str(k): int(v) for k, v in json.loads(self.label_targets_json).items()}
