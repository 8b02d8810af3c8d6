"""Tests for the OpenWeather and City Directory HTTP clients."""

import httpx
import pytest

from config import WeatherConfig
from domain.exceptions import ConfigurationError, ToolExecutionError
from infrastructure.tool_clients import CityDirectoryClient, OpenWeatherClient, OpenWeatherGeocodeClient


def forecast_entry(date, hour, temp_min, temp_max, description="clear sky", icon="01d"):
    return {
        "dt_txt": f"{date} {hour:02d}:00:00",
        "main": {"temp": (temp_min + temp_max) / 2, "temp_min": temp_min, "temp_max": temp_max},
        "weather": [{"description": description, "icon": icon}],
    }


class TestGeocode:

    @pytest.mark.asyncio
    async def test_search_parses_candidates(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[
                {"name": "Ranchi", "state": "Jharkhand", "country": "IN", "lat": 23.34, "lon": 85.31},
                {"name": "Broken", "country": "IN"},
                {"name": "Ranchi Hills", "country": "IN", "lat": 23.0, "lon": 85.0},
            ])

        client = OpenWeatherGeocodeClient(WeatherConfig(api_key="k"), transport=httpx.MockTransport(handler))

        candidates = await client.search("Ranchi", limit=3)

        assert [c.name for c in candidates] == ["Ranchi", "Ranchi Hills"]
        assert candidates[1].state is None
        params = seen[0].url.params
        assert (params["q"], params["limit"], params["appid"]) == ("Ranchi", "3", "k")

    @pytest.mark.asyncio
    async def test_empty_query_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = OpenWeatherGeocodeClient(WeatherConfig(api_key="k"), transport=httpx.MockTransport(handler))

        assert await client.search("  ") == []

    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = OpenWeatherGeocodeClient(WeatherConfig(api_key=""))

        with pytest.raises(ConfigurationError):
            await client.search("Ranchi")

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        client = OpenWeatherGeocodeClient(
            WeatherConfig(api_key="k"),
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "Invalid API key"}))
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.search("Ranchi")


class TestWeather:

    @pytest.mark.asyncio
    async def test_current_and_daily_forecast(self):
        entries = [
            forecast_entry("2024-05-01", 9, 20.0, 24.0),
            forecast_entry("2024-05-01", 12, 22.0, 30.5, description="few clouds", icon="02d"),
            forecast_entry("2024-05-01", 15, 23.0, 29.0, description="few clouds", icon="02d"),
        ] + [forecast_entry(f"2024-05-0{day}", 12, 18.0, 25.0) for day in range(2, 8)]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["units"] == "metric"
            if request.url.path.endswith("/weather"):
                return httpx.Response(200, json={
                    "dt": 1714550400,
                    "main": {"temp": 27.1, "feels_like": 28.0, "humidity": 40},
                    "wind": {"speed": 3.2},
                    "weather": [{"description": "haze", "icon": "50d"}],
                })
            return httpx.Response(200, json={"list": entries})

        client = OpenWeatherClient(WeatherConfig(api_key="k"), transport=httpx.MockTransport(handler))

        data = await client.get_weather(23.34, 85.31)

        assert data["location"] == {"lat": 23.34, "lon": 85.31}
        assert data["current"] == {
            "temp": 27.1, "feels_like": 28.0, "humidity": 40, "wind_speed": 3.2,
            "description": "haze", "icon": "50d", "dt": 1714550400,
        }
        assert len(data["forecast"]) == 5
        assert data["forecast"][0] == {
            "date": "2024-05-01", "min": 20.0, "max": 30.5, "description": "few clouds", "icon": "02d",
        }
        assert data["forecast"][-1]["date"] == "2024-05-05"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            await OpenWeatherClient(WeatherConfig(api_key="")).get_weather(0, 0)


class TestCityDirectoryClient:

    @pytest.mark.asyncio
    async def test_requests_carry_user_and_params(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.method == "POST":
                return httpx.Response(201, json={"id": "c1", "name": "Ranchi"})
            if request.method == "DELETE":
                return httpx.Response(200, json={"ok": True, "id": request.url.params["id"]})
            return httpx.Response(200, json=[])

        client = CityDirectoryClient("http://api.test/", transport=httpx.MockTransport(handler))

        assert await client.add_city("u1", {"name": "Ranchi", "lat": 1.0, "lon": 2.0}) == {"id": "c1", "name": "Ranchi"}
        assert await client.delete_city("u1", "c1") == {"ok": True, "id": "c1"}
        assert await client.list_cities("u1") == []

        assert [r.url.path for r in seen] == ["/api/cities"] * 3
        assert all(r.headers["x-user-id"] == "u1" for r in seen)
        assert seen[0].url.host == "api.test"

    @pytest.mark.asyncio
    async def test_search_is_capped_at_five(self):
        results = [{"name": f"Springfield {i}"} for i in range(8)]
        client = CityDirectoryClient(
            "http://api.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=results))
        )

        assert len(await client.search_cities("Springfield")) == 5

    @pytest.mark.asyncio
    async def test_status_error_keeps_detail(self):
        client = CityDirectoryClient(
            "http://api.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"detail": "City not found"}))
        )

        with pytest.raises(ToolExecutionError) as exc_info:
            await client.get_weather("u1", "missing")

        assert str(exc_info.value) == "Request failed with status code 404: City not found"
        assert exc_info.value.status_code == 404
        assert exc_info.value.tool_name == "getWeather"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = CityDirectoryClient("http://api.test", transport=httpx.MockTransport(handler))

        with pytest.raises(ToolExecutionError) as exc_info:
            await client.search_cities("Paris")

        assert str(exc_info.value) == "ConnectError: connection refused"
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_search_is_sent_under_the_user(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        client = CityDirectoryClient("http://api.test", transport=httpx.MockTransport(handler))

        await client.search_cities("Ranchi", user_id="u1")
        await client.search_cities("Ranchi")

        assert seen[0].headers["x-user-id"] == "u1"
        assert seen[0].url.params["q"] == "Ranchi"
        assert "x-user-id" not in seen[1].headers
