from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import HTTPException

from app.db.connection import run_transaction
from app.models.schemas import PurchaseRequest
from app.services.feed import TicketFeed
from app.services.validation import is_valid_email, normalize_phone

logger = logging.getLogger(__name__)


def validate_buyer(payload: PurchaseRequest) -> tuple[str, str, str]:
    if payload.number is None:
        raise HTTPException(status_code=400, detail="Select a ticket number")
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Buyer name is required")
    email = payload.email.strip()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Enter a valid email")
    phone = normalize_phone(payload.phone)
    if phone is None:
        raise HTTPException(status_code=400, detail="Enter a valid phone (10 digits)")
    return name, email, phone


def reserve_ticket(
    raffle_id: uuid.UUID, payload: PurchaseRequest, feed: Optional[TicketFeed] = None
) -> dict:
    name, email, phone = validate_buyer(payload)
    number = payload.number

    def _handler(conn):
        cur = conn.cursor()
        cur.execute("SELECT status, price FROM raffles WHERE id = %s", (raffle_id,))
        raffle = cur.fetchone()
        if not raffle:
            cur.close()
            raise HTTPException(status_code=404, detail="Raffle not found")
        status, price = raffle
        if status != "active":
            cur.close()
            raise HTTPException(status_code=400, detail="Raffle is not accepting purchases")

        cur.execute(
            """
            UPDATE tickets
            SET status = 'sold',
                buyer_name = %s,
                buyer_email = %s,
                buyer_phone = %s,
                purchase_time = now()
            WHERE raffle_id = %s AND number = %s AND status = 'free'
            RETURNING id, purchase_time
            """,
            (name, email, phone, raffle_id, number),
        )
        sold = cur.fetchone()
        if cur.rowcount != 1 or sold is None:
            cur.execute(
                "SELECT status FROM tickets WHERE raffle_id = %s AND number = %s",
                (raffle_id, number),
            )
            existing = cur.fetchone()
            cur.close()
            if existing is None:
                raise HTTPException(status_code=404, detail="Ticket not found")
            logger.warning("Ticket %s of raffle %s was already taken", number, raffle_id)
            raise HTTPException(status_code=409, detail="Ticket already taken")
        ticket_id, purchase_time = sold
        cur.close()
        return {
            "raffle_id": str(raffle_id),
            "ticket_id": str(ticket_id),
            "number": number,
            "buyer_name": name,
            "buyer_email": email,
            "buyer_phone": phone,
            "purchase_time": purchase_time,
            "price": price,
        }

    purchase = run_transaction(_handler)
    if feed is not None:
        feed.publish(
            purchase["raffle_id"],
            {
                "id": purchase["ticket_id"],
                "raffle_id": purchase["raffle_id"],
                "number": purchase["number"],
                "status": "sold",
            },
        )
    return purchase
