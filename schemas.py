import datetime as dt
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import Frequency, IntervalKind, TransactionKind


class TransactionIn(BaseModel):
    kind: TransactionKind
    label: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    amount_cents: int = Field(..., ge=0)
    anchor_date: date
    frequency: Frequency = Frequency.once


class SkipIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: Optional[dt.date] = None


class GoalTargetsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval: IntervalKind = IntervalKind.monthly
    label_targets: dict[str, int] = Field(default_factory=dict)
    total_cents: Optional[int] = Field(default=None, ge=0)

    @field_validator("label_targets")
    @classmethod
    def _non_negative_targets(cls, value: dict[str, int]) -> dict[str, int]:
        cleaned: dict[str, int] = {}
        for label, cents in value.items():
            name = label.strip()
            if not name:
                raise ValueError("Target labels must not be empty")
            if cents < 0:
                raise ValueError("Please ensure all goals are non-negative amounts")
            cleaned[name] = cents
        return cleaned

    def resolved_total(self) -> int:
        if self.total_cents is not None:
            return self.total_cents
        return sum(self.label_targets.values())


class GoalIn(GoalTargetsIn):
    kind: TransactionKind
