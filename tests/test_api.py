import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine
from main import app, get_db


@pytest.fixture()
def client():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def _create_rent(client: TestClient) -> int:
    resp = client.post(
        "/api/transactions",
        json={
            "kind": "expense",
            "label": "Rent",
            "amount_cents": 120000,
            "anchor_date": "2025-01-05",
            "frequency": "monthly",
        },
    )
    assert resp.status_code == 201
    return resp.json()["id"]


def test_listing_reports_next_recurrence(client: TestClient) -> None:
    txn_id = _create_rent(client)

    resp = client.get("/api/transactions", params={"as_of": "2025-02-10"})

    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [item["id"] for item in items] == [txn_id]
    assert items[0]["next_recurrence"] == "2025-03-05"


def test_skip_next_recurrence(client: TestClient) -> None:
    txn_id = _create_rent(client)

    resp = client.post(
        f"/api/transactions/{txn_id}/skip", params={"as_of": "2025-02-10"}, json={}
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["skipped_dates"] == ["2025-03-05"]
    assert body["next_recurrence"] == "2025-04-05"


def test_skip_explicit_date(client: TestClient) -> None:
    txn_id = _create_rent(client)

    resp = client.post(
        f"/api/transactions/{txn_id}/skip",
        params={"as_of": "2025-02-10"},
        json={"date": "2025-04-05"},
    )

    assert resp.status_code == 200
    assert resp.json()["next_recurrence"] == "2025-03-05"


def test_skip_errors(client: TestClient) -> None:
    resp = client.post("/api/transactions/999/skip", json={})
    assert resp.status_code == 404

    once = client.post(
        "/api/transactions",
        json={
            "kind": "income",
            "label": "Bonus",
            "amount_cents": 5000,
            "anchor_date": "2025-05-01",
            "frequency": "once",
        },
    ).json()
    resp = client.post(
        f"/api/transactions/{once['id']}/skip", json={"date": "2025-05-01"}
    )
    assert resp.status_code == 400


def test_invalid_payloads_are_rejected(client: TestClient) -> None:
    resp = client.post(
        "/api/transactions",
        json={
            "kind": "expense",
            "label": "Rent",
            "amount_cents": -1,
            "anchor_date": "2025-01-05",
            "frequency": "monthly",
        },
    )
    assert resp.status_code == 422

    resp = client.post(
        "/api/transactions",
        json={
            "kind": "expense",
            "label": "Rent",
            "amount_cents": 100,
            "anchor_date": "2025-01-05",
            "frequency": "daily",
        },
    )
    assert resp.status_code == 422


def test_totals_goal_progress_and_savings(client: TestClient) -> None:
    _create_rent(client)

    resp = client.get(
        "/api/totals",
        params={"kind": "expense", "interval": "monthly", "reference": "2025-04-10"},
    )
    assert resp.status_code == 200
    assert resp.json()["total_cents"] == 120000
    assert resp.json()["start"] == "2025-04-01"

    resp = client.put(
        "/api/goals/expense",
        json={"interval": "monthly", "label_targets": {"Rent": 150000}},
    )
    assert resp.status_code == 200
    assert resp.json()["total_cents"] == 150000

    resp = client.get("/api/goals/expense/progress", params={"reference": "2025-04-10"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["percent"] == 80.0
    assert body["alert"] == "yellow"

    resp = client.get("/api/goals/income/progress", params={"reference": "2025-04-10"})
    assert resp.status_code == 404

    resp = client.get(
        "/api/savings", params={"interval": "monthly", "reference": "2025-04-10"}
    )
    assert resp.status_code == 200
    assert resp.json()["net_cents"] == -120000


def test_unknown_interval_is_a_bad_request(client: TestClient) -> None:
    resp = client.get("/api/totals", params={"interval": "daily"})
    assert resp.status_code == 400


def test_goal_kind_comes_from_the_path(client: TestClient) -> None:
    resp = client.put("/api/goals/income", json={"total_cents": 300000})
    assert resp.status_code == 200
    assert resp.json()["kind"] == "income"

    resp = client.put(
        "/api/goals/income", json={"kind": "expense", "total_cents": 300000}
    )
    assert resp.status_code == 422


def test_dates_at_the_end_of_the_calendar(client: TestClient) -> None:
    txn_id = _create_rent(client)

    resp = client.get("/api/transactions", params={"as_of": "9999-12-31"})
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [item["id"] for item in items] == [txn_id]
    assert items[0]["next_recurrence"] is None

    resp = client.get(
        "/api/totals",
        params={"kind": "expense", "interval": "yearly", "reference": "9999-06-01"},
    )
    assert resp.status_code == 200
    assert resp.json()["total_cents"] == 12 * 120000

    resp = client.get(
        "/api/totals", params={"interval": "weekly", "reference": "9999-12-31"}
    )
    assert resp.status_code == 200
    assert resp.json()["end"] == "9999-12-31"
