"""
Realtime change-feed client.

Speaks the hosted realtime service's Phoenix channel protocol over a
websocket: join a channel filtered to one table, keep it alive with
heartbeats, and hand every postgres change to the registered callbacks.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from app.core.exceptions import IntegrationError

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"
ALL_EVENTS = "*"


@dataclass
class ChangeEvent:
    type: str
    table: str
    schema: str
    record: Dict[str, Any] = field(default_factory=dict)
    old_record: Dict[str, Any] = field(default_factory=dict)
    commit_timestamp: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChangeEvent":
        data = payload.get("data") or payload
        return cls(
            type=str(data.get("type") or data.get("eventType") or "").upper(),
            table=str(data.get("table", "")),
            schema=str(data.get("schema", "")),
            record=data.get("record") or data.get("new") or {},
            old_record=data.get("old_record") or data.get("old") or {},
            commit_timestamp=data.get("commit_timestamp"),
        )


ChangeCallback = Callable[[ChangeEvent], Awaitable[Any]]


class RealtimeChannel:
    """One subscription to insert/update/delete events on a single table."""

    def __init__(
        self,
        url: str,
        api_key: str,
        channel: str,
        table: str,
        schema: str = "public",
        event: str = ALL_EVENTS,
        heartbeat_seconds: float = 25,
        access_token: str | None = None,
        connector: Callable[[str], Awaitable[Any]] | None = None,
    ):
        self.url = url
        self.api_key = api_key
        self.channel = channel
        self.table = table
        self.schema = schema
        self.event = event
        self.heartbeat_seconds = heartbeat_seconds
        self.access_token = access_token or api_key
        self._connector = connector or websockets.connect
        self._callbacks: List[ChangeCallback] = []
        self._ref = 0
        self._join_ref: str | None = None
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._heartbeat: asyncio.Task | None = None
        self.joined = False

    @property
    def topic(self) -> str:
        return f"realtime:{self.channel}"

    @property
    def endpoint(self) -> str:
        return f"{self.url}?{urlencode({'apikey': self.api_key, 'vsn': PROTOCOL_VERSION})}"

    def on_change(self, callback: ChangeCallback) -> None:
        self._callbacks.append(callback)

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    def join_message(self) -> Dict[str, Any]:
        self._join_ref = self._next_ref()
        return {
            "topic": self.topic,
            "event": "phx_join",
            "payload": {
                "config": {
                    "broadcast": {"ack": False, "self": False},
                    "presence": {"key": ""},
                    "postgres_changes": [
                        {"event": self.event, "schema": self.schema, "table": self.table}
                    ],
                    "private": False,
                },
                "access_token": self.access_token,
            },
            "ref": self._join_ref,
            "join_ref": self._join_ref,
        }

    def heartbeat_message(self) -> Dict[str, Any]:
        return {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": self._next_ref()}

    def leave_message(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "event": "phx_leave",
            "payload": {},
            "ref": self._next_ref(),
            "join_ref": self._join_ref,
        }

    async def subscribe(self) -> None:
        if self._ws is not None:
            return
        try:
            self._ws = await self._connector(self.endpoint)
            await self._send(self.join_message())
        except (OSError, ConnectionClosed, InvalidHandshake) as exc:
            self._ws = None
            raise IntegrationError(f"Realtime connection failed: {exc}") from exc

        self._reader = asyncio.create_task(self._read_loop())
        self._heartbeat = asyncio.create_task(self._heartbeat_loop())
        logger.info("Realtime channel %s joining table %s.%s", self.topic, self.schema, self.table)

    async def unsubscribe(self) -> None:
        ws, self._ws = self._ws, None
        for task in (self._heartbeat, self._reader):
            if task and not task.done():
                task.cancel()
        self._heartbeat = self._reader = None
        if ws is None:
            return
        try:
            await ws.send(json.dumps(self.leave_message()))
        except ConnectionClosed:
            pass
        await ws.close()
        self.joined = False
        logger.info("Realtime channel %s left", self.topic)

    async def handle_message(self, message: Dict[str, Any]) -> None:
        event = message.get("event")
        topic = message.get("topic")
        payload = message.get("payload") or {}

        if topic != self.topic:
            return

        if event == "phx_reply" and message.get("ref") == self._join_ref:
            if payload.get("status") == "ok":
                self.joined = True
                logger.info("Realtime channel %s joined", self.topic)
            else:
                logger.error("Realtime channel %s join rejected: %s", self.topic, payload.get("response"))
            return

        if event in ("phx_error", "phx_close"):
            self.joined = False
            logger.warning("Realtime channel %s received %s", self.topic, event)
            return

        if event == "postgres_changes":
            await self._dispatch(ChangeEvent.from_payload(payload))

    async def _dispatch(self, change: ChangeEvent) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(change)
            except Exception:
                logger.exception("Realtime callback failed for %s on %s", change.type, change.table)

    async def _send(self, message: Dict[str, Any]) -> None:
        await self._ws.send(json.dumps(message))

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.debug("Ignoring non-JSON realtime frame")
                    continue
                await self.handle_message(message)
        except ConnectionClosed as exc:
            logger.warning("Realtime connection closed: %s", exc)
        finally:
            self.joined = False

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            if self._ws is None:
                return
            try:
                await self._send(self.heartbeat_message())
            except ConnectionClosed:
                logger.warning("Realtime heartbeat failed; connection closed")
                return
