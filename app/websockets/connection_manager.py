"""
WebSocket Connection Manager
Tracks open dashboard views and pushes refreshed snapshots to them
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Set

from fastapi import WebSocket

from app.schemas.dashboard import DashboardSnapshot

DASHBOARD_UPDATED = "dashboard_updated"
NOTIFICATION = "notification"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """Manages WebSocket connections and broadcasts."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self.subscribers: Dict[str, Set[WebSocket]] = {
            DASHBOARD_UPDATED: set(),
            NOTIFICATION: set(),
            "all": set(),
        }

    async def connect(self, websocket: WebSocket, subscribe_to: List[str] | None = None):
        """Accept new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)

        subscribed = [event for event in (subscribe_to or []) if event in self.subscribers]
        if not subscribed:
            subscribed = ["all"]
        for event_type in subscribed:
            self.subscribers[event_type].add(websocket)

        await websocket.send_json(
            {
                "type": "connection_established",
                "message": "Connected to dashboard updates",
                "subscriptions": subscribed,
                "timestamp": _timestamp(),
            }
        )

    def disconnect(self, websocket: WebSocket):
        """Remove WebSocket connection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        for subscribers in self.subscribers.values():
            subscribers.discard(websocket)

    async def broadcast(self, event_type: str, data: dict):
        """Broadcast event to all subscribed connections."""
        message = {
            "type": event_type,
            "data": data,
            "timestamp": _timestamp(),
        }

        recipients = self.subscribers.get(event_type, set()) | self.subscribers.get("all", set())
        disconnected: List[WebSocket] = []
        for connection in recipients:
            try:
                await connection.send_json(message)
            except Exception:
                disconnected.append(connection)
        for connection in disconnected:
            self.disconnect(connection)

    async def broadcast_snapshot(self, snapshot: DashboardSnapshot):
        await self.broadcast(DASHBOARD_UPDATED, snapshot.model_dump(mode="json"))
        for notification in snapshot.notifications:
            await self.broadcast(NOTIFICATION, notification.model_dump())

    async def send_personal(self, websocket: WebSocket, event_type: str, data: dict):
        """Send message to specific connection."""
        try:
            await websocket.send_json(
                {
                    "type": event_type,
                    "data": data,
                    "timestamp": _timestamp(),
                }
            )
        except Exception:
            self.disconnect(websocket)


manager = ConnectionManager()
