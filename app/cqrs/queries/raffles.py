from __future__ import annotations

import uuid

from fastapi import HTTPException

from app.db.connection import fetch_all, fetch_one

RAFFLE_SELECT = """
    SELECT r.id, r.name, r.price, r.ticket_count, r.description, r.date, r.time,
           r.status, r.winner_number, r.created_at, r.updated_at,
           COALESCE(s.sold, 0) AS tickets_sold
    FROM raffles r
    LEFT JOIN (
        SELECT raffle_id, COUNT(*) AS sold
        FROM tickets
        WHERE status = 'sold'
        GROUP BY raffle_id
    ) s ON s.raffle_id = r.id
"""


def raffle_row(row: dict) -> dict:
    ticket_count = row["ticket_count"]
    sold = row.get("tickets_sold", 0) or 0
    return {
        "id": str(row["id"]),
        "name": row["name"],
        "price": row["price"],
        "ticket_count": ticket_count,
        "description": row["description"],
        "date": row["date"],
        "time": row["time"],
        "status": row["status"],
        "winner_number": row.get("winner_number"),
        "tickets_sold": sold,
        "tickets_available": ticket_count - sold,
        "sold_percentage": round(sold * 100 / ticket_count, 1) if ticket_count else 0.0,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def list_active_raffles() -> list[dict]:
    rows = fetch_all(
        RAFFLE_SELECT + " WHERE r.status = 'active' ORDER BY r.date ASC, r.time ASC"
    )
    return [raffle_row(row) for row in rows]


def list_raffles() -> list[dict]:
    rows = fetch_all(RAFFLE_SELECT + " ORDER BY r.created_at DESC")
    return [raffle_row(row) for row in rows]


def get_raffle(raffle_id: uuid.UUID) -> dict:
    row = fetch_one(RAFFLE_SELECT + " WHERE r.id = %s", (raffle_id,))
    if not row:
        raise HTTPException(status_code=404, detail="Raffle not found")
    return raffle_row(row)
