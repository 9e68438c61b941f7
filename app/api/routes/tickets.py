import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException, WebSocket
from fastapi.concurrency import run_in_threadpool

from app.api.dependencies import require_db
from app.core.config import db_configured
from app.cqrs.queries import tickets as tickets_queries
from app.models.schemas import TicketGridResponse
from app.services.feed import SubscriberOverflow, Subscription, TicketFeed
from app.services.grid import TicketGrid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/raffles/{raffle_id}/tickets", tags=["tickets"])

WS_CLOSE_NOT_FOUND = 4404
WS_CLOSE_UNAVAILABLE = 1011
WS_CLOSE_TRY_AGAIN = 1013


@router.get("", response_model=TicketGridResponse)
def list_grid(raffle_id: uuid.UUID):
    require_db()
    return tickets_queries.list_grid(raffle_id)


async def _forward(websocket: WebSocket, subscription: Subscription, grid: TicketGrid) -> None:
    while True:
        try:
            event = await subscription.get()
        except SubscriberOverflow:
            await websocket.close(code=WS_CLOSE_TRY_AGAIN)
            return
        if grid.apply_event(event):
            await websocket.send_json(event)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/stream")
async def stream_tickets(websocket: WebSocket, raffle_id: uuid.UUID):
    if not db_configured():
        await websocket.close(code=WS_CLOSE_UNAVAILABLE)
        return
    feed: TicketFeed = websocket.app.state.ticket_feed
    subscription = feed.subscribe(str(raffle_id))
    try:
        try:
            snapshot = await run_in_threadpool(tickets_queries.list_grid, raffle_id)
        except HTTPException:
            await websocket.close(code=WS_CLOSE_NOT_FOUND)
            return
        await websocket.accept()
        await websocket.send_json({"event": "SNAPSHOT", "table": "tickets", **snapshot})
        grid = TicketGrid(snapshot["tickets"])
        tasks = {
            asyncio.create_task(_forward(websocket, subscription, grid)),
            asyncio.create_task(_wait_for_disconnect(websocket)),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.info("Ticket stream for raffle %s ended: %r", raffle_id, task.exception())
    finally:
        feed.unsubscribe(subscription)
