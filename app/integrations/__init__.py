"""External integration adapters."""

from .identity import IdentityProvider
from .realtime import ChangeEvent, RealtimeChannel
from .weather import WeatherClient

__all__ = [
    "IdentityProvider",
    "ChangeEvent",
    "RealtimeChannel",
    "WeatherClient",
]
