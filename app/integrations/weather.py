from __future__ import annotations

from typing import Any

import httpx

from app.config import settings
from app.core.exceptions import IntegrationError
from app.schemas.dashboard import WeatherSnapshot


class WeatherClient:
    """OpenWeatherMap current-conditions client."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openweathermap_api_key.get_secret_value()
        self.base_url = (base_url or str(settings.weather_base_url)).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    async def current(self, city: str) -> WeatherSnapshot:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/data/2.5/weather",
                    params={"q": city, "appid": self.api_key, "units": "metric"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise IntegrationError(self._error_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise IntegrationError(str(exc) or exc.__class__.__name__) from exc
        except ValueError as exc:
            raise IntegrationError(f"Invalid weather response: {exc}") from exc

        return self.parse(data)

    @staticmethod
    def parse(data: dict[str, Any]) -> WeatherSnapshot:
        try:
            return WeatherSnapshot(
                temperature=float(data["main"]["temp"]),
                description=str(data["weather"][0]["description"]),
                location=str(data["name"]),
            )
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise IntegrationError(f"Unexpected weather payload: missing {exc}") from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        # OpenWeatherMap errors look like {"cod": 401, "message": "Invalid API key. ..."}
        try:
            data = response.json()
        except ValueError:
            data = None
        message = data.get("message") if isinstance(data, dict) else None
        return f"Request failed with status code {response.status_code}" + (f": {message}" if message else "")


def get_weather_client() -> WeatherClient:
    return WeatherClient()
