"""
View state endpoints: a snapshot and a live stream of updates
"""
import asyncio
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ....models.view import ViewState
from ....services.controller import BookmarkApp
from ..deps import get_controller

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/view", response_model=ViewState)
async def get_view(controller: BookmarkApp = Depends(get_controller)):
    """Everything needed to render the current screen"""
    return controller.view()


@router.websocket("/events")
async def view_events(websocket: WebSocket):
    """Push the view state every time it changes"""
    controller: BookmarkApp = websocket.app.state.controller
    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()
    remove_observer = controller.add_observer(queue.put_nowait)

    async def push_updates():
        await websocket.send_json(controller.view().model_dump(mode="json"))
        while True:
            state = await queue.get()
            await websocket.send_json(state.model_dump(mode="json"))

    sender = asyncio.create_task(push_updates())
    try:
        # Incoming messages are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("View event client disconnected")
    finally:
        remove_observer()
        sender.cancel()
