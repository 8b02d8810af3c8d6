"""
Infrastructure layer - External API client implementations.
Following SOLID: Single Responsibility - each client handles one external service.
Open/Closed Principle - easy to add new tool clients without modifying existing ones.
"""
import httpx
from collections import Counter
from typing import Dict, Any, List, Optional
from domain.interfaces import IGeocodeClient, IWeatherClient, ICityDirectoryClient
from domain.exceptions import ConfigurationError, ToolExecutionError
from domain.models import CityCandidate
from config import WeatherConfig
import logging

logger = logging.getLogger(__name__)


def _require_key(config: WeatherConfig) -> str:
    if not config.api_key:
        raise ConfigurationError("OPENWEATHER_API_KEY missing")
    return config.api_key


class OpenWeatherGeocodeClient(IGeocodeClient):
    """OpenWeather direct geocoding client."""

    def __init__(self, config: WeatherConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    async def search(self, query: str, limit: int = 5) -> List[CityCandidate]:
        """Convert free text to candidate places, in provider order."""
        query = (query or "").strip()
        if not query:
            return []

        api_key = _require_key(self.config)
        async with httpx.AsyncClient(timeout=self.config.search_timeout_seconds, transport=self.transport) as client:
            response = await client.get(
                self.config.geocode_url,
                params={"q": query, "limit": limit, "appid": api_key}
            )
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, list):
            return []

        candidates = []
        for item in data[:limit]:
            try:
                candidates.append(CityCandidate(
                    name=item["name"],
                    state=item.get("state"),
                    country=item.get("country", ""),
                    lat=item["lat"],
                    lon=item["lon"]
                ))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed geocoding entry for '{query}': {e}")

        logger.info(f"Geocoded '{query}' to {len(candidates)} candidates")
        return candidates


class OpenWeatherClient(IWeatherClient):
    """OpenWeather current conditions + 5-day forecast client."""

    FORECAST_DAYS = 5

    def __init__(self, config: WeatherConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    async def get_weather(self, lat: float, lon: float) -> Dict[str, Any]:
        """Get current weather and a daily forecast summary."""
        api_key = _require_key(self.config)
        params = {"lat": lat, "lon": lon, "units": self.config.units, "appid": api_key}

        async with httpx.AsyncClient(timeout=self.config.weather_timeout_seconds, transport=self.transport) as client:
            current_response = await client.get(self.config.current_url, params=params)
            current_response.raise_for_status()
            forecast_response = await client.get(self.config.forecast_url, params=params)
            forecast_response.raise_for_status()

        current = current_response.json()
        forecast = forecast_response.json()

        logger.info(f"Fetched weather for coords ({lat}, {lon})")

        return {
            "location": {"lat": lat, "lon": lon},
            "units": self.config.units,
            "current": self._parse_current(current),
            "forecast": self._summarize_forecast(forecast.get("list", [])),
        }

    @staticmethod
    def _parse_current(data: Dict[str, Any]) -> Dict[str, Any]:
        main = data.get("main", {})
        weather = (data.get("weather") or [{}])[0]
        return {
            "temp": main.get("temp"),
            "feels_like": main.get("feels_like"),
            "humidity": main.get("humidity"),
            "wind_speed": data.get("wind", {}).get("speed"),
            "description": weather.get("description"),
            "icon": weather.get("icon"),
            "dt": data.get("dt"),
        }

    def _summarize_forecast(self, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Collapse 3-hourly entries into one summary per calendar day."""
        days: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            date = (entry.get("dt_txt") or "")[:10]
            if not date:
                continue
            main = entry.get("main", {})
            weather = (entry.get("weather") or [{}])[0]
            day = days.setdefault(date, {"mins": [], "maxs": [], "descriptions": Counter(), "icons": Counter()})
            day["mins"].append(main.get("temp_min", main.get("temp")))
            day["maxs"].append(main.get("temp_max", main.get("temp")))
            if weather.get("description"):
                day["descriptions"][weather["description"]] += 1
            if weather.get("icon"):
                day["icons"][weather["icon"]] += 1

        summary = []
        for date in sorted(days)[:self.FORECAST_DAYS]:
            day = days[date]
            mins = [t for t in day["mins"] if t is not None]
            maxs = [t for t in day["maxs"] if t is not None]
            summary.append({
                "date": date,
                "min": min(mins) if mins else None,
                "max": max(maxs) if maxs else None,
                "description": day["descriptions"].most_common(1)[0][0] if day["descriptions"] else None,
                "icon": day["icons"].most_common(1)[0][0] if day["icons"] else None,
            })
        return summary


class CityDirectoryClient(ICityDirectoryClient):
    """
    HTTP client for this application's own API.

    The assistant tools go through the same endpoints as the frontend,
    so saved cities look identical regardless of who created them.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 8.0,
        weather_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.weather_timeout = weather_timeout
        self.transport = transport

    async def _request(
        self,
        tool_name: str,
        method: str,
        path: str,
        user_id: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs
    ) -> Any:
        headers = {"x-user-id": user_id} if user_id else {}
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self.transport
        ) as client:
            try:
                response = await client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ToolExecutionError(
                    tool_name,
                    f"Request failed with status code {e.response.status_code}: {self._error_detail(e.response)}",
                    status_code=e.response.status_code
                ) from e
            except httpx.HTTPError as e:
                raise ToolExecutionError(tool_name, f"{type(e).__name__}: {e}") from e
            return response.json()

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("error")
            if detail is not None:
                return detail if isinstance(detail, str) else str(detail)
        return response.text

    async def search_cities(self, query: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        data = await self._request("searchCities", "GET", "/api/search", user_id=user_id, params={"q": query})
        return (data if isinstance(data, list) else [])[:5]

    async def list_cities(self, user_id: str) -> List[Dict[str, Any]]:
        data = await self._request("listCities", "GET", "/api/cities", user_id=user_id)
        return data if isinstance(data, list) else []

    async def add_city(self, user_id: str, city: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("addCity", "POST", "/api/cities", user_id=user_id, json=city)

    async def delete_city(self, user_id: str, city_id: str) -> Dict[str, Any]:
        return await self._request("deleteCity", "DELETE", "/api/cities", user_id=user_id, params={"id": city_id})

    async def get_weather(self, user_id: str, city_id: str) -> Dict[str, Any]:
        return await self._request(
            "getWeather", "GET", "/api/weather",
            user_id=user_id,
            timeout=self.weather_timeout,
            params={"cityId": city_id}
        )
