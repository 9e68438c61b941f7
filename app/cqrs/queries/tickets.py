from __future__ import annotations

import uuid

from fastapi import HTTPException

from app.db.connection import fetch_all, fetch_one
from app.services.grid import TicketGrid


def _require_raffle(raffle_id: uuid.UUID) -> dict:
    raffle = fetch_one("SELECT id, name, status FROM raffles WHERE id = %s", (raffle_id,))
    if not raffle:
        raise HTTPException(status_code=404, detail="Raffle not found")
    return raffle


def grid_row(row: dict) -> dict:
    return {"id": str(row["id"]), "number": row["number"], "status": row["status"]}


def ticket_row(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "raffle_id": str(row["raffle_id"]),
        "number": row["number"],
        "status": row["status"],
        "buyer_name": row.get("buyer_name"),
        "buyer_email": row.get("buyer_email"),
        "buyer_phone": row.get("buyer_phone"),
        "purchase_time": row.get("purchase_time"),
    }


def list_grid(raffle_id: uuid.UUID) -> dict:
    _require_raffle(raffle_id)
    rows = fetch_all(
        """
        SELECT id, number, status
        FROM tickets
        WHERE raffle_id = %s
        ORDER BY number ASC
        """,
        (raffle_id,),
    )
    grid = TicketGrid(grid_row(row) for row in rows)
    return {"raffle_id": str(raffle_id), "counts": grid.counts(), "tickets": grid.tickets}


def list_tickets(raffle_id: uuid.UUID) -> list[dict]:
    _require_raffle(raffle_id)
    rows = fetch_all(
        """
        SELECT id, raffle_id, number, status, buyer_name, buyer_email, buyer_phone,
               purchase_time
        FROM tickets
        WHERE raffle_id = %s
        ORDER BY number ASC
        """,
        (raffle_id,),
    )
    return [ticket_row(row) for row in rows]


def list_sold_tickets(raffle_id: uuid.UUID) -> tuple[dict, list[dict]]:
    raffle = _require_raffle(raffle_id)
    rows = fetch_all(
        """
        SELECT id, raffle_id, number, status, buyer_name, buyer_email, buyer_phone,
               purchase_time
        FROM tickets
        WHERE raffle_id = %s AND status = 'sold'
        ORDER BY number ASC
        """,
        (raffle_id,),
    )
    return raffle, [ticket_row(row) for row in rows]
