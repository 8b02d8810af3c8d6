"""
Service layer - Chat turn handling.

Serves the common requests recognized by the intent pre-filter directly
through the tool adapter, and hands everything else to the assistant.
"""
import logging
from typing import Optional

from domain.exceptions import ConfigurationError, ToolExecutionError
from domain.models import (
    AddCityIntent, ChatRequest, ChatResponse, DeleteCityIntent,
    OperationResult, WeatherQueryIntent
)
from services.agent import WeatherAssistant
from services.intent import detect_intent
from services.tools import ToolAdapter

logger = logging.getLogger(__name__)


def _place(name: str, state: Optional[str]) -> str:
    return f"**{name}**{', ' + state if state else ''}"


class ChatService:
    """Entry point for one chat turn."""

    def __init__(
        self,
        assistant: WeatherAssistant,
        tools: ToolAdapter,
        api_key: str,
        default_country: str = "IN"
    ):
        self.assistant = assistant
        self.tools = tools
        self.api_key = api_key
        self.default_country = default_country

    async def process_message(self, request: ChatRequest, user_id: str) -> ChatResponse:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY missing")

        intent = detect_intent(request.last_user_text, default_country=self.default_country)
        if intent.type != "none":
            logger.info(f"Fast path '{intent.type}' for user {user_id}")

        if isinstance(intent, AddCityIntent):
            return await self._add_city(intent, user_id)
        if isinstance(intent, DeleteCityIntent):
            return await self._delete_city(intent, user_id)
        if isinstance(intent, WeatherQueryIntent):
            return await self._find_city(intent, user_id)

        return await self.assistant.run(request.messages, user_id)

    async def _add_city(self, intent: AddCityIntent, user_id: str) -> ChatResponse:
        args = {"name": intent.name, "state": intent.state, "country": intent.country}
        try:
            fixed, saved = await self.tools.add_city(user_id, args)
        except ToolExecutionError as e:
            logger.warning(f"Fast-path add of {intent.name} failed: {e}")
            result = OperationResult(name="addCity", args=args, ok=False, error=str(e))
            return ChatResponse.from_results(
                f"I couldn't add {_place(intent.name, intent.state)}: {e}", [result]
            )

        result = OperationResult(name="addCity", args=fixed, ok=True, output=saved)
        reply = f"Added {_place(saved.get('name', intent.name), saved.get('state'))} ({saved.get('country')})."
        return ChatResponse.from_results(reply, [result])

    async def _delete_city(self, intent: DeleteCityIntent, user_id: str) -> ChatResponse:
        args = {"name": intent.name, "state": intent.state, "country": intent.country}
        output = await self.tools.delete_city(user_id, args)
        result = OperationResult(name="deleteCity", args=args, ok=output["ok"], output=output)

        if output["ok"]:
            removed = output["removed"]
            reply = f"Deleted {_place(removed.get('name'), removed.get('state'))} ({removed.get('country')})."
        else:
            reply = f"I couldn't find {_place(intent.name, intent.state)} in your list."
        return ChatResponse.from_results(reply, [result])

    async def _find_city(self, intent: WeatherQueryIntent, user_id: str) -> ChatResponse:
        candidates = await self.tools.search_cities(intent.name, user_id=user_id)
        result = OperationResult(
            name="searchCities", args={"q": intent.name}, ok=True, output=candidates[:5]
        )
        if not candidates:
            return ChatResponse.from_results(
                f"I couldn't find “{intent.name}”. Try with state name too.", [result]
            )

        top = candidates[0]
        place = f"{top.get('name')}{', ' + top['state'] if top.get('state') else ''}"
        reply = (
            f"Found {_place(top.get('name'), top.get('state'))} ({top.get('country')}). "
            f"You can say “Add city: {place}”."
        )
        return ChatResponse.from_results(reply, [result])
