"""
Service layer - Assistant tools (operations the model may request).
Following SOLID: Single Responsibility - the adapter only translates tool calls
into City Directory / search / weather requests and normalizes the outcome.
"""
from typing import Dict, Any, List, Optional, Tuple
import logging

from domain.interfaces import ICityDirectoryClient
from domain.exceptions import ToolExecutionError
from domain.models import OperationResult

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "IN"

# Declared to the model once per process; never mutated.
OPERATION_DECLARATIONS: Tuple[Dict[str, Any], ...] = (
    {
        "name": "searchCities",
        "description": "Search worldwide cities by text query",
        "parameters": {
            "type": "object",
            "properties": {"q": {"type": "string"}},
            "required": ["q"],
        },
    },
    {
        "name": "addCity",
        "description": (
            "Add a city to the user's saved list. If lat/lon are omitted, the server will geocode "
            "automatically. Default country=IN if not provided."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "state": {"type": "string"},
                "country": {"type": "string"},
                "lat": {"type": "number"},
                "lon": {"type": "number"},
            },
            "required": ["name"],
        },
    },
    {
        "name": "deleteCity",
        "description": "Delete a saved city by name and optional state/country (default country=IN).",
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "state": {"type": "string"},
                "country": {"type": "string"},
            },
            "required": ["name"],
        },
    },
    {
        "name": "getWeather",
        "description": "Fetch current weather + 5-day forecast for a saved city",
        "parameters": {
            "type": "object",
            "properties": {"cityId": {"type": "string"}},
            "required": ["cityId"],
        },
    },
)


def _norm(value: Any) -> str:
    return str(value or "").strip().lower()


class ToolAdapter:
    """Executes assistant operations against the application's HTTP API."""

    def __init__(self, directory: ICityDirectoryClient, default_country: str = DEFAULT_COUNTRY):
        self.directory = directory
        self.default_country = default_country
        self._handlers = {
            "searchCities": self._run_search,
            "addCity": self._run_add,
            "deleteCity": self._run_delete,
            "getWeather": self._run_weather,
        }

    @property
    def tool_names(self) -> List[str]:
        return list(self._handlers)

    async def search_cities(self, query: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Up to 5 candidates in provider order. Empty query gives []."""
        if not (query or "").strip():
            return []
        return await self.directory.search_cities(query, user_id=user_id)

    async def list_cities(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.directory.list_cities(user_id)

    async def resolve_coordinates(self, args: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Fill lat/lon (and missing state/country) from the best geocoding match.

        Best effort: a geocoding failure leaves args as they are and is
        logged, so the save the user asked for is still attempted.
        """
        resolved = dict(args)
        if resolved.get("lat") is not None and resolved.get("lon") is not None:
            return resolved

        query = ", ".join(str(p) for p in (resolved.get("name"), resolved.get("state"), resolved.get("country")) if p)
        try:
            candidates = await self.search_cities(query or resolved.get("name") or "", user_id=user_id)
        except (ToolExecutionError, ValueError) as e:
            logger.warning(f"Geocoding failed for '{query}', saving without coordinates: {e}")
            return resolved

        if not candidates:
            logger.warning(f"Geocoding found no match for '{query}', saving without coordinates")
            return resolved

        best = candidates[0]
        resolved["lat"] = best.get("lat")
        resolved["lon"] = best.get("lon")
        resolved["country"] = resolved.get("country") or best.get("country") or self.default_country
        resolved["state"] = resolved.get("state") or best.get("state")
        return resolved

    async def add_city(self, user_id: str, args: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Save a city, geocoding it first when coordinates are absent.

        Returns (repaired args, saved city).
        """
        fixed = {"country": self.default_country, **{k: v for k, v in args.items() if v is not None}}
        fixed = await self.resolve_coordinates(fixed, user_id=user_id)
        body = {
            "name": fixed.get("name"),
            "state": fixed.get("state"),
            "country": fixed.get("country"),
            "lat": fixed.get("lat"),
            "lon": fixed.get("lon"),
        }
        saved = await self.directory.add_city(user_id, body)
        return fixed, saved

    async def delete_city(self, user_id: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """Delete the first saved city matching name (and state/country when given)."""
        name = args.get("name")
        state = args.get("state")
        country = args.get("country", self.default_country)

        cities = await self.list_cities(user_id)
        target = next(
            (
                c for c in cities
                if _norm(c.get("name")) == _norm(name)
                and (not state or _norm(c.get("state")) == _norm(state))
                and (not country or _norm(c.get("country")) == _norm(country))
            ),
            None
        )
        if not target or not target.get("id"):
            return {"ok": False, "reason": "not_found"}

        api = await self.directory.delete_city(user_id, target["id"])
        return {"ok": True, "removed": target, "api": api}

    async def get_weather(self, city_id: str, user_id: str) -> Dict[str, Any]:
        return await self.directory.get_weather(user_id, city_id)

    async def dispatch(self, name: str, args: Optional[Dict[str, Any]], user_id: str) -> OperationResult:
        """Run one operation. Never raises: failures become ok=False results."""
        args = dict(args or {})
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return OperationResult(name=name, args=args, ok=False, error="Unknown tool")

        logger.info(f"Tool called: {name} args={args}")
        try:
            return await handler(args, user_id)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return OperationResult(name=name, args=args, ok=False, error=str(e) or "Tool failed")

    async def _run_search(self, args: Dict[str, Any], user_id: str) -> OperationResult:
        output = await self.search_cities(args.get("q") or "", user_id=user_id)
        return OperationResult(name="searchCities", args=args, ok=True, output=output)

    async def _run_add(self, args: Dict[str, Any], user_id: str) -> OperationResult:
        fixed, saved = await self.add_city(user_id, args)
        return OperationResult(name="addCity", args=fixed, ok=True, output=saved)

    async def _run_delete(self, args: Dict[str, Any], user_id: str) -> OperationResult:
        fixed = {"country": self.default_country, **args}
        output = await self.delete_city(user_id, fixed)
        return OperationResult(name="deleteCity", args=fixed, ok=output["ok"], output=output)

    async def _run_weather(self, args: Dict[str, Any], user_id: str) -> OperationResult:
        output = await self.get_weather(str(args.get("cityId") or ""), user_id)
        return OperationResult(name="getWeather", args=args, ok=True, output=output)
