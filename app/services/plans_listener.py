"""
Background listener that refetches the dashboard whenever the plans table changes.
"""
from __future__ import annotations


from app.config import settings
from app.core.logger import get_logger
from app.integrations.realtime import ChangeEvent, RealtimeChannel
from app.services.dashboard_loader import DashboardLoader

logger = get_logger(__name__)


class PlansChangeListener:
    """Wires a realtime channel to full dashboard refetches."""

    def __init__(self, loader: DashboardLoader, channel: RealtimeChannel | None = None):
        self.loader = loader
        self.channel = channel or RealtimeChannel(
            url=settings.realtime_url,
            api_key=settings.supabase_anon_key.get_secret_value(),
            channel=settings.realtime_channel,
            table=settings.realtime_table,
            schema=settings.realtime_schema,
            heartbeat_seconds=settings.realtime_heartbeat_seconds,
        )
        self.channel.on_change(self.handle_change)
        self.events_seen = 0

    async def handle_change(self, change: ChangeEvent) -> None:
        self.events_seen += 1
        logger.info("Change %s on %s.%s; refetching dashboard", change.type, change.schema, change.table)
        self.loader.refresh()

    async def start(self) -> None:
        await self.channel.subscribe()

    async def stop(self) -> None:
        await self.channel.unsubscribe()
