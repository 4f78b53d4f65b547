import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from sqlalchemy.orm import Session

from database import SessionLocal
from models import IntervalKind, Transaction, TransactionKind
from periods import Period, window_for
from recurrence import (
    InvalidDate,
    InvalidFrequency,
    local_today,
    next_occurrence,
    to_calendar_date,
)
from schemas import GoalIn, GoalTargetsIn, SkipIn, TransactionIn
from services import GoalService, TransactionService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Recurring Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _kind(value: Optional[str]) -> Optional[TransactionKind]:
    if not value:
        return None
    try:
        return TransactionKind(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown kind: {value}") from exc


def window_from_request(request: Request) -> Period:
    interval = request.query_params.get("interval") or IntervalKind.monthly.value
    reference = request.query_params.get("reference")
    try:
        return window_for(interval, reference)
    except (InvalidFrequency, InvalidDate) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def transaction_payload(txn: Transaction, next_recurrence=None) -> dict[str, object]:
    return {
        "id": txn.id,
        "kind": txn.kind.value,
        "label": txn.label,
        "description": txn.description,
        "amount_cents": txn.amount_cents,
        "date": txn.anchor_date.isoformat(),
        "frequency": txn.frequency.value,
        "skipped_dates": [d.isoformat() for d in txn.skipped_dates],
        "next_recurrence": next_recurrence.isoformat() if next_recurrence else None,
    }


@app.get("/api/transactions")
def api_transactions(request: Request, db: Session = Depends(get_db)):
    kind = _kind(request.query_params.get("kind"))
    as_of = request.query_params.get("as_of")
    try:
        views = TransactionService(db).list_with_next(kind, as_of)
    except InvalidDate as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "items": [transaction_payload(v.transaction, v.next_recurrence) for v in views]
    }


@app.post("/api/transactions", status_code=201)
def api_create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    txn = TransactionService(db).create(data)
    logger.info(
        f"transaction_created: id={txn.id} kind={txn.kind.value} frequency={txn.frequency.value}"
    )
    return transaction_payload(txn)


@app.post("/api/transactions/{transaction_id}/skip")
def api_skip_transaction(
    transaction_id: int,
    request: Request,
    data: Optional[SkipIn] = None,
    db: Session = Depends(get_db),
):
    service = TransactionService(db)
    as_of = request.query_params.get("as_of")
    try:
        reference = local_today() if as_of is None else to_calendar_date(as_of)
        if data is None or data.date is None:
            service.skip_next(transaction_id, reference)
        else:
            service.skip_date(transaction_id, data.date)
    except (InvalidDate, InvalidFrequency) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        status = 404 if "not found" in str(exc) else 400
        raise HTTPException(status_code=status, detail=str(exc)) from exc
    txn = service.get(transaction_id)
    return transaction_payload(txn, next_occurrence(txn, reference))


@app.get("/api/totals")
def api_totals(request: Request, db: Session = Depends(get_db)):
    kind = _kind(request.query_params.get("kind")) or TransactionKind.expense
    period = window_from_request(request)
    total = TransactionService(db).total_in_period(kind, period)
    return {
        "kind": kind.value,
        "interval": period.slug,
        "start": period.start.isoformat(),
        "end": period.end.isoformat(),
        "total_cents": total,
    }


@app.put("/api/goals/{kind}")
def api_upsert_goal(
    kind: TransactionKind, data: GoalTargetsIn, db: Session = Depends(get_db)
):
    goal = GoalService(db).upsert(GoalIn(kind=kind, **data.model_dump()))
    return {
        "kind": goal.kind.value,
        "interval": goal.interval.value,
        "total_cents": goal.total_cents,
        "label_targets": goal.label_targets,
    }


@app.get("/api/goals/{kind}/progress")
def api_goal_progress(
    kind: TransactionKind, request: Request, db: Session = Depends(get_db)
):
    reference = request.query_params.get("reference")
    try:
        progress = GoalService(db).progress(kind, reference)
    except InvalidDate as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "kind": progress.kind.value,
        "interval": progress.period.slug,
        "start": progress.period.start.isoformat(),
        "end": progress.period.end.isoformat(),
        "total_cents": progress.total_cents,
        "target_cents": progress.target_cents,
        "percent": round(progress.percent, 2),
        "alert": progress.alert,
        "breakdown": progress.breakdown,
    }


@app.get("/api/savings")
def api_savings(request: Request, db: Session = Depends(get_db)):
    period = window_from_request(request)
    summary = GoalService(db).savings_summary(period.slug, period.start)
    summary["start"] = period.start.isoformat()
    summary["end"] = period.end.isoformat()
    return summary
