import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException

import app.cqrs.commands.tickets as tickets_commands
from app.models.schemas import PurchaseRequest
from conftest import step

RAFFLE_ID = uuid.UUID("7d1f0a34-3f4f-4a43-9d7e-0b0b7a0f2c11")


def _request(**overrides):
    data = {"number": 7, "name": "Ana", "email": "ana@x.com", "phone": "(123) 456-7890"}
    data.update(overrides)
    return PurchaseRequest(**data)


class RecordingFeed:
    def __init__(self):
        self.published = []

    def publish(self, raffle_id, row):
        self.published.append((raffle_id, row))
        return 1


@pytest.mark.parametrize(
    "overrides, detail",
    [
        ({"number": None}, "Select a ticket number"),
        ({"name": "   "}, "Buyer name is required"),
        ({"email": "a@b"}, "Enter a valid email"),
        ({"phone": "12345"}, "Enter a valid phone (10 digits)"),
    ],
)
def test_invalid_buyer_is_rejected_before_any_write(monkeypatch, overrides, detail):
    def fail(_handler):
        raise AssertionError("no database access expected")

    monkeypatch.setattr(tickets_commands, "run_transaction", fail)
    with pytest.raises(HTTPException) as excinfo:
        tickets_commands.reserve_ticket(RAFFLE_ID, _request(**overrides))
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == detail


def test_reserve_marks_ticket_sold_and_publishes(fake_db):
    ticket_id = uuid.uuid4()
    bought_at = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    cursor = fake_db(
        tickets_commands,
        step("FROM raffles", rows=[("active", Decimal("25.00"))]),
        step("UPDATE tickets", rows=[(ticket_id, bought_at)], rowcount=1),
    )
    feed = RecordingFeed()

    result = tickets_commands.reserve_ticket(RAFFLE_ID, _request(), feed)

    update_sql, params = cursor.executed[1]
    assert "status = 'free'" in update_sql
    assert params == ("Ana", "ana@x.com", "1234567890", RAFFLE_ID, 7)
    assert result["number"] == 7
    assert result["buyer_phone"] == "1234567890"
    assert result["price"] == Decimal("25.00")
    assert feed.published == [
        (
            str(RAFFLE_ID),
            {"id": str(ticket_id), "raffle_id": str(RAFFLE_ID), "number": 7, "status": "sold"},
        )
    ]


def test_losing_buyer_gets_conflict_not_success(fake_db):
    cursor = fake_db(
        tickets_commands,
        step("FROM raffles", rows=[("active", Decimal("25.00"))]),
        step("UPDATE tickets", rows=[], rowcount=0),
        step("SELECT status FROM tickets", rows=[("sold",)]),
    )
    feed = RecordingFeed()

    with pytest.raises(HTTPException) as excinfo:
        tickets_commands.reserve_ticket(RAFFLE_ID, _request(), feed)

    assert excinfo.value.status_code == 409
    assert excinfo.value.detail == "Ticket already taken"
    assert feed.published == []
    assert cursor.closed


def test_unknown_ticket_number_is_not_found(fake_db):
    fake_db(
        tickets_commands,
        step("FROM raffles", rows=[("active", Decimal("25.00"))]),
        step("UPDATE tickets", rows=[], rowcount=0),
        step("SELECT status FROM tickets", rows=[]),
    )
    with pytest.raises(HTTPException) as excinfo:
        tickets_commands.reserve_ticket(RAFFLE_ID, _request(number=999))
    assert excinfo.value.status_code == 404


def test_closed_raffle_does_not_accept_purchases(fake_db):
    cursor = fake_db(tickets_commands, step("FROM raffles", rows=[("closed", Decimal("25.00"))]))
    with pytest.raises(HTTPException) as excinfo:
        tickets_commands.reserve_ticket(RAFFLE_ID, _request())
    assert excinfo.value.status_code == 400
    assert not any("UPDATE" in sql for sql in cursor.statements())


class TicketRowStore:
    """Applies the conditional update atomically, the way the database does for one row."""

    def __init__(self):
        self.lock = threading.Lock()
        self.status = {7: "free"}
        self.buyers = []


class StoreCursor:
    def __init__(self, store):
        self.store = store
        self.rowcount = -1
        self._rows = []

    def execute(self, sql, params=()):
        if "FROM raffles" in sql:
            self._rows = [("active", Decimal("10.00"))]
        elif sql.lstrip().startswith("UPDATE tickets"):
            name, _, _, _, number = params
            with self.store.lock:
                if self.store.status.get(number) == "free":
                    self.store.status[number] = "sold"
                    self.store.buyers.append(name)
                    self._rows = [(uuid.uuid4(), datetime.now(timezone.utc))]
                else:
                    self._rows = []
            self.rowcount = len(self._rows)
        else:
            number = params[1]
            self._rows = [(self.store.status[number],)] if number in self.store.status else []

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def close(self):
        pass


def test_concurrent_buyers_exactly_one_wins(monkeypatch):
    store = TicketRowStore()
    barrier = threading.Barrier(2)

    def run_transaction(handler):
        barrier.wait()
        return handler(type("Conn", (), {"cursor": lambda self: StoreCursor(store)})())

    monkeypatch.setattr(tickets_commands, "run_transaction", run_transaction)
    outcomes = []

    def attempt(name):
        try:
            tickets_commands.reserve_ticket(RAFFLE_ID, _request(name=name))
            outcomes.append("ok")
        except HTTPException as exc:
            outcomes.append(exc.status_code)

    threads = [threading.Thread(target=attempt, args=(name,)) for name in ("Ana", "Luis")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes, key=str) == [409, "ok"]
    assert len(store.buyers) == 1
    assert store.status[7] == "sold"
