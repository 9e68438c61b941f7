from __future__ import annotations

from typing import Iterable


class TicketGrid:
    """Local copy of a raffle's tickets kept fresh from feed updates."""

    def __init__(self, tickets: Iterable[dict]) -> None:
        self._tickets: dict[str, dict] = {str(t["id"]): dict(t) for t in tickets}

    @property
    def tickets(self) -> list[dict]:
        return sorted(self._tickets.values(), key=lambda t: t["number"])

    def apply(self, row: dict) -> bool:
        ticket_id = str(row.get("id"))
        current = self._tickets.get(ticket_id)
        if current is None:
            return False
        current.update(row)
        return True

    def apply_event(self, message: dict) -> bool:
        if message.get("event") != "UPDATE" or message.get("table") != "tickets":
            return False
        return self.apply(message.get("new") or {})

    def counts(self) -> dict[str, int]:
        counts = {"free": 0, "sold": 0}
        for ticket in self._tickets.values():
            counts[ticket["status"]] = counts.get(ticket["status"], 0) + 1
        return counts

    def is_free(self, number: int) -> bool:
        return any(t["number"] == number and t["status"] == "free" for t in self._tickets.values())

    def sold_percentage(self) -> float:
        total = len(self._tickets)
        if not total:
            return 0.0
        return round(self.counts()["sold"] * 100 / total, 1)
