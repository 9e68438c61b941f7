import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.api.dependencies import require_admin
from app.cqrs.commands import raffles as raffles_commands
from app.cqrs.queries import raffles as raffles_queries
from app.cqrs.queries import tickets as tickets_queries
from app.models.schemas import DrawResponse, RaffleCreate, RaffleDeleted, RaffleOut, RaffleUpdate, TicketOut
from app.services.export import buyers_csv, buyers_filename

router = APIRouter(
    prefix="/admin/raffles",
    tags=["admin-raffles"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[RaffleOut])
def list_raffles():
    return raffles_queries.list_raffles()


@router.post("", response_model=RaffleOut, status_code=201)
def create_raffle(payload: RaffleCreate):
    return raffles_commands.create_raffle(payload)


@router.patch("/{raffle_id}", response_model=RaffleOut)
def update_raffle(raffle_id: uuid.UUID, payload: RaffleUpdate):
    return raffles_commands.update_raffle(raffle_id, payload)


@router.delete("/{raffle_id}", response_model=RaffleDeleted)
def delete_raffle(raffle_id: uuid.UUID):
    return raffles_commands.delete_raffle(raffle_id)


@router.post("/{raffle_id}/draw", response_model=DrawResponse)
def draw_winner(raffle_id: uuid.UUID):
    return raffles_commands.draw_winner(raffle_id)


@router.get("/{raffle_id}/tickets", response_model=list[TicketOut])
def list_tickets(raffle_id: uuid.UUID):
    return tickets_queries.list_tickets(raffle_id)


@router.get("/{raffle_id}/buyers.csv")
def export_buyers(raffle_id: uuid.UUID):
    raffle, sold = tickets_queries.list_sold_tickets(raffle_id)
    return Response(
        content=buyers_csv(sold),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{buyers_filename(raffle["name"])}"'},
    )
