from __future__ import annotations

from datetime import date
import logging
import uuid

from fastapi import HTTPException

from app.cqrs.queries.raffles import RAFFLE_SELECT, raffle_row
from app.db.connection import row_dicts, run_transaction
from app.models.schemas import RaffleCreate, RaffleUpdate
from app.services.draw import pick_winner

logger = logging.getLogger(__name__)

STATUS_ORDER = ("active", "closed", "finalized")
EDITABLE_FIELDS = ("name", "price", "description", "date", "time", "status")


def _today() -> date:
    return date.today()


def _check_date(value: date) -> None:
    if value < _today():
        raise HTTPException(status_code=400, detail="Date must be today or later")


def _seed_tickets(cur, raffle_id: uuid.UUID, ticket_count: int) -> None:
    cur.execute(
        """
        INSERT INTO tickets (id, raffle_id, number, status)
        SELECT gen_random_uuid(), %s, n, 'free'
        FROM generate_series(1, %s::int) AS n
        """,
        (raffle_id, ticket_count),
    )
    if cur.rowcount != ticket_count:
        raise HTTPException(status_code=500, detail="Ticket inventory could not be created")


def create_raffle(payload: RaffleCreate) -> dict:
    _check_date(payload.date)

    def _handler(conn):
        cur = conn.cursor()
        raffle_id = uuid.uuid4()
        cur.execute(
            """
            INSERT INTO raffles (
                id, name, price, ticket_count, description, date, time, status
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id, name, price, ticket_count, description, date, time, status,
                      winner_number, created_at, updated_at
            """,
            (
                raffle_id,
                payload.name.strip(),
                payload.price,
                payload.ticket_count,
                payload.description.strip(),
                payload.date,
                payload.time,
                payload.status,
            ),
        )
        row = row_dicts(cur, [cur.fetchone()])[0]
        _seed_tickets(cur, raffle_id, payload.ticket_count)
        cur.close()
        return raffle_row({**row, "tickets_sold": 0})

    raffle = run_transaction(_handler)
    logger.info("Raffle %s created with %s tickets", raffle["id"], raffle["ticket_count"])
    return raffle


def update_raffle(raffle_id: uuid.UUID, payload: RaffleUpdate) -> dict:
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    if data.get("date") is not None:
        _check_date(data["date"])

    def _handler(conn):
        cur = conn.cursor()
        cur.execute(
            "SELECT status, ticket_count FROM raffles WHERE id = %s FOR UPDATE",
            (raffle_id,),
        )
        row = cur.fetchone()
        if not row:
            cur.close()
            raise HTTPException(status_code=404, detail="Raffle not found")
        current_status, ticket_count = row
        requested_count = data.pop("ticket_count", None)
        if requested_count is not None and requested_count != ticket_count:
            cur.close()
            raise HTTPException(status_code=400, detail="Ticket count cannot be changed")
        new_status = data.get("status")
        if new_status and STATUS_ORDER.index(new_status) < STATUS_ORDER.index(current_status):
            cur.close()
            raise HTTPException(status_code=400, detail="Raffle status cannot move backwards")
        if new_status == "finalized" and current_status != "finalized":
            cur.close()
            raise HTTPException(status_code=400, detail="Raffle is finalized by drawing a winner")
        if current_status != "active" and any(key != "status" for key in data):
            cur.close()
            raise HTTPException(status_code=400, detail="Only active raffles can be edited")

        set_clauses = []
        params: list = []
        for field in EDITABLE_FIELDS:
            if field in data and data[field] is not None:
                set_clauses.append(f"{field} = %s")
                params.append(data[field])
        if set_clauses:
            set_clauses.append("updated_at = now()")
            params.append(raffle_id)
            cur.execute(f"UPDATE raffles SET {', '.join(set_clauses)} WHERE id = %s", params)

        cur.execute(RAFFLE_SELECT + " WHERE r.id = %s", (raffle_id,))
        updated = row_dicts(cur, [cur.fetchone()])[0]
        cur.close()
        return raffle_row(updated)

    return run_transaction(_handler)


def delete_raffle(raffle_id: uuid.UUID) -> dict:
    def _handler(conn):
        cur = conn.cursor()
        cur.execute("DELETE FROM raffles WHERE id = %s RETURNING id", (raffle_id,))
        row = cur.fetchone()
        cur.close()
        if not row:
            raise HTTPException(status_code=404, detail="Raffle not found")
        return {"status": "deleted", "raffle_id": str(raffle_id)}

    result = run_transaction(_handler)
    logger.info("Raffle %s deleted", raffle_id)
    return result


def draw_winner(raffle_id: uuid.UUID) -> dict:
    def _handler(conn):
        cur = conn.cursor()
        cur.execute(
            "SELECT status, winner_number FROM raffles WHERE id = %s FOR UPDATE",
            (raffle_id,),
        )
        row = cur.fetchone()
        if not row:
            cur.close()
            raise HTTPException(status_code=404, detail="Raffle not found")
        status, winner_number = row
        if winner_number is not None:
            cur.close()
            raise HTTPException(status_code=400, detail="Winner already assigned")
        if status != "closed":
            cur.close()
            raise HTTPException(
                status_code=400, detail="Raffle must be closed before drawing a winner"
            )
        cur.execute(
            """
            SELECT number
            FROM tickets
            WHERE raffle_id = %s AND status = 'sold'
            ORDER BY number ASC
            """,
            (raffle_id,),
        )
        sold_numbers = [ticket[0] for ticket in cur.fetchall()]
        if not sold_numbers:
            cur.close()
            raise HTTPException(status_code=400, detail="No tickets sold")
        winning_number = pick_winner(sold_numbers)
        cur.execute(
            """
            UPDATE raffles
            SET winner_number = %s, status = 'finalized', updated_at = now()
            WHERE id = %s
            """,
            (winning_number, raffle_id),
        )
        cur.close()
        return {
            "raffle_id": str(raffle_id),
            "winning_number": winning_number,
            "status": "finalized",
        }

    result = run_transaction(_handler)
    logger.info("Raffle %s finalized with winning number %s", raffle_id, result["winning_number"])
    return result
