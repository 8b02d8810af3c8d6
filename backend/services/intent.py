"""
Local intent detection for the chat endpoint.

Recognizes the three most common requests (add a city, delete a city,
weather for a place) so they can be served without a model call.
Pure functions only: no I/O.
"""
import re
from typing import List, Optional, Tuple

from domain.models import (
    Intent, NoIntent, AddCityIntent, DeleteCityIntent, WeatherQueryIntent
)

DEFAULT_COUNTRY = "IN"

ADD_PATTERN = re.compile(r"^\s*(add\s+city|add)\s*[:\-]?\s*", re.IGNORECASE)
DELETE_PATTERN = re.compile(r"^\s*(delete\s+city|delete|remove)\s*[:\-]?\s*", re.IGNORECASE)
WEATHER_PATTERN = re.compile(r"\b(weather\s+for|show\s+weather\s+for|forecast\s+for)\s+(.+)", re.IGNORECASE)


def _split_place(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Split 'Name, State, ...' into (name, state); extra parts are ignored."""
    parts: List[str] = [p.strip() for p in text.split(",")]
    parts = [p for p in parts if p]
    name = parts[0] if parts else None
    state = parts[1] if len(parts) > 1 else None
    return name, state


def detect_intent(user_text: str, default_country: str = DEFAULT_COUNTRY) -> Intent:
    """Classify the latest user message. Rules are tried in priority order."""
    text = user_text or ""

    if ADD_PATTERN.match(text):
        name, state = _split_place(ADD_PATTERN.sub("", text, count=1).strip())
        if name:
            return AddCityIntent(name=name, state=state, country=default_country)

    if DELETE_PATTERN.match(text):
        name, state = _split_place(DELETE_PATTERN.sub("", text, count=1).strip())
        if name:
            return DeleteCityIntent(name=name, state=state, country=default_country)

    match = WEATHER_PATTERN.search(text.strip())
    if match:
        name = match.group(2).split(",")[0].strip()
        if name:
            return WeatherQueryIntent(name=name)

    return NoIntent()
