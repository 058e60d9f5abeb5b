"""
WebSocket API Endpoints
Live dashboard updates
"""
from __future__ import annotations

import json
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from app.config import settings
from app.core.security import user_from_connection
from app.integrations.identity import IdentityProvider, get_identity_provider
from app.websockets.connection_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    subscribe: List[str] = Query(default=["all"]),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """
    WebSocket endpoint for dashboard updates.

    Uses the same session cookie as the dashboard page; anonymous clients are
    refused with 1008 when AUTH_REQUIRED is on.

    Example:
      ws://localhost:8000/ws?subscribe=dashboard_updated&subscribe=notification
    """
    user = await user_from_connection(websocket, identity)
    if settings.auth_required and user is None:
        logger.info("Rejected anonymous websocket from %s", websocket.client)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, subscribe)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await manager.send_personal(websocket, "pong", {"status": "alive"})
    except WebSocketDisconnect:
        manager.disconnect(websocket)
