"""
Domain models - Core business entities.
Following SOLID: Single Responsibility Principle - each model has one clear purpose.
"""
from typing import List, Dict, Any, Optional, Literal, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Represents a single message in the client's transcript."""
    role: Optional[str] = "user"
    content: Optional[str] = ""


class ChatRequest(BaseModel):
    """Incoming chat request from frontend."""
    messages: List[ChatMessage] = Field(default_factory=list)
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def last_user_text(self) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].content or ""


class OperationResult(BaseModel):
    """Outcome of one tool invocation. Produced even when the tool fails."""
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    ok: bool
    output: Optional[Any] = None
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Wire shape: {name, args, ok, output|error}."""
        payload: Dict[str, Any] = {"name": self.name, "args": self.args, "ok": self.ok}
        if self.error is not None:
            payload["error"] = self.error
        else:
            payload["output"] = self.output
        return payload


class ChatResponse(BaseModel):
    """Response sent back to frontend."""
    reply: str
    tools_used: List[str] = Field(default_factory=list, alias="toolsUsed")
    data: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_results(cls, reply: str, results: List[OperationResult]) -> "ChatResponse":
        return cls(
            reply=reply,
            tools_used=[r.name for r in results],
            data=[r.to_payload() for r in results],
        )


class ErrorResponse(BaseModel):
    """Structured error body returned by the chat endpoint."""
    error: str
    detail: Optional[str] = None


class CityCandidate(BaseModel):
    """A geocoding match returned by the weather provider."""
    name: str
    state: Optional[str] = None
    country: str = ""
    lat: float
    lon: float


class CityCreate(BaseModel):
    """Request body for saving a city. Coordinates are mandatory."""
    name: str = Field(min_length=1)
    state: Optional[str] = None
    country: str = "IN"
    lat: float
    lon: float


class SavedCity(BaseModel):
    """A user's persisted location record."""
    id: str
    user_id: str = Field(alias="userId")
    name: str
    state: Optional[str] = None
    country: str
    lat: float
    lon: float
    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class NoIntent(BaseModel):
    type: Literal["none"] = "none"


class AddCityIntent(BaseModel):
    type: Literal["add"] = "add"
    name: str
    state: Optional[str] = None
    country: str = "IN"


class DeleteCityIntent(BaseModel):
    type: Literal["delete"] = "delete"
    name: str
    state: Optional[str] = None
    country: str = "IN"


class WeatherQueryIntent(BaseModel):
    type: Literal["weather_query_name"] = "weather_query_name"
    name: str


Intent = Union[NoIntent, AddCityIntent, DeleteCityIntent, WeatherQueryIntent]
