import uuid

from fastapi import APIRouter, Depends

from app.api.dependencies import get_ticket_feed, require_db
from app.cqrs.commands import tickets as tickets_commands
from app.cqrs.queries import raffles as raffles_queries
from app.models.schemas import PurchaseRequest, PurchaseResponse, RaffleOut
from app.services.feed import TicketFeed

router = APIRouter(prefix="/raffles", tags=["raffles"])


@router.get("", response_model=list[RaffleOut])
def list_raffles():
    require_db()
    return raffles_queries.list_active_raffles()


@router.get("/{raffle_id}", response_model=RaffleOut)
def get_raffle(raffle_id: uuid.UUID):
    require_db()
    return raffles_queries.get_raffle(raffle_id)


@router.post("/{raffle_id}/purchase", response_model=PurchaseResponse, status_code=201)
def purchase_ticket(
    raffle_id: uuid.UUID,
    payload: PurchaseRequest,
    feed: TicketFeed = Depends(get_ticket_feed),
):
    require_db()
    return tickets_commands.reserve_ticket(raffle_id, payload, feed)
