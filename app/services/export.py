from __future__ import annotations

import csv
import io
import re
from datetime import datetime
from typing import Iterable

BUYERS_HEADER = ["Number", "Name", "Email", "Phone", "Purchase Date"]


def _format_time(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value) if value else ""


def buyers_csv(tickets: Iterable[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(BUYERS_HEADER)
    for ticket in tickets:
        if ticket.get("status") != "sold":
            continue
        writer.writerow(
            [
                ticket["number"],
                ticket.get("buyer_name") or "",
                ticket.get("buyer_email") or "",
                ticket.get("buyer_phone") or "",
                _format_time(ticket.get("purchase_time")),
            ]
        )
    return buffer.getvalue()


def buyers_filename(raffle_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", raffle_name.lower()).strip("-") or "raffle"
    return f"raffle-{slug}-buyers.csv"
