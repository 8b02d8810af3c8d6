"""
API layer - FastAPI application with city, weather and assistant endpoints.
Following SOLID:
- Single Responsibility - Controllers are thin, delegate to services.
- Dependency Inversion - Controllers depend on service abstractions.
"""
import os
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from config import AppConfig
from domain.exceptions import WeatherDeckError
from domain.interfaces import ICityRepository, IGeocodeClient, IWeatherClient
from domain.models import ChatRequest, ChatResponse, CityCandidate, CityCreate, SavedCity
from infrastructure.llm import gemini_model_factory
from infrastructure.repositories import FileCityRepository
from infrastructure.tool_clients import CityDirectoryClient, OpenWeatherClient, OpenWeatherGeocodeClient
from middleware.cooldown import Cooldown
from services.agent import AssistantSettings, WeatherAssistant
from services.chat_service import ChatService
from services.tools import ToolAdapter

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - initialize services on startup."""
    config: AppConfig = app.state.config

    logger.info("Initializing application...")

    if not config.model.api_key:
        logger.warning("GEMINI_API_KEY not set - /api/ai/chat will fail until it is configured")
    if not config.weather.api_key:
        logger.warning("OPENWEATHER_API_KEY not set - search and weather endpoints will fail")

    # Initialize repositories
    app.state.city_repo = FileCityRepository(data_dir=str(config.server.data_dir / "cities"))

    # Initialize provider clients
    app.state.geocode_client = OpenWeatherGeocodeClient(config.weather)
    app.state.weather_client = OpenWeatherClient(config.weather)
    app.state.search_cooldown = Cooldown(config.server.search_cooldown_ms)

    # Assistant tools call back into this API
    directory_client = CityDirectoryClient(
        base_url=config.server.self_base_url,
        timeout=config.server.directory_timeout_seconds,
        weather_timeout=config.server.weather_timeout_seconds
    )
    tools = ToolAdapter(directory_client, default_country=config.server.default_country)
    logger.info(f"Initialized tool adapter against {config.server.self_base_url}")

    app.state.assistant = WeatherAssistant(
        settings=AssistantSettings.from_model_config(config.model),
        tools=tools,
        model_factory=gemini_model_factory(config.model)
    )
    logger.info(
        f"Assistant models: primary={config.model.primary_model}, fallback={config.model.fallback_model}"
    )

    app.state.chat_service = ChatService(
        assistant=app.state.assistant,
        tools=tools,
        api_key=config.model.api_key,
        default_country=config.server.default_country
    )

    logger.info("Application initialized successfully")

    yield

    logger.info("Application shutting down...")


# ============================================================================
# Dependencies
# ============================================================================

def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_city_repository(request: Request) -> ICityRepository:
    return request.app.state.city_repo


def get_geocode_client(request: Request) -> IGeocodeClient:
    return request.app.state.geocode_client


def get_weather_client(request: Request) -> IWeatherClient:
    return request.app.state.weather_client


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_assistant(request: Request) -> WeatherAssistant:
    return request.app.state.assistant


def get_user_id(
    x_user_id: Optional[str] = Header(default=None),
    config: AppConfig = Depends(get_config)
) -> str:
    """Caller id from the x-user-id header, else the configured demo user."""
    return (x_user_id or "").strip() or config.server.default_user_id


async def search_throttle(request: Request) -> None:
    await request.app.state.search_cooldown(request)


# ============================================================================
# Application
# ============================================================================

def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application for the given configuration."""
    config = config or AppConfig.from_env()

    app = FastAPI(
        title="WeatherDeck API",
        description="Saved cities, weather and an AI assistant with tool calling",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.server.cors_allow_all else config.server.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-user-id"],
    )

    @app.exception_handler(WeatherDeckError)
    async def weatherdeck_exception_handler(request: Request, exc: WeatherDeckError):
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message} {exc.detail or ''}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        """Friendly root message."""
        return "WeatherDeck API • Try /api/health"

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {"ok": True}

    # ------------------------------------------------------------------
    # City Directory
    # ------------------------------------------------------------------

    @app.get("/api/cities", response_model=List[SavedCity])
    async def list_cities(
        user_id: str = Depends(get_user_id),
        repo: ICityRepository = Depends(get_city_repository)
    ):
        """List the caller's saved cities."""
        try:
            return await repo.list_cities(user_id)
        except Exception as e:
            logger.error(f"List cities error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/api/cities", response_model=SavedCity, status_code=201)
    async def create_city(
        city: CityCreate,
        user_id: str = Depends(get_user_id),
        repo: ICityRepository = Depends(get_city_repository)
    ):
        """Save a city for the caller. Coordinates are required."""
        try:
            return await repo.add_city(user_id, city)
        except Exception as e:
            logger.error(f"Create city error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    @app.delete("/api/cities")
    async def delete_city(
        id: str = Query(..., min_length=1),
        user_id: str = Depends(get_user_id),
        repo: ICityRepository = Depends(get_city_repository)
    ):
        """Delete one of the caller's cities by id."""
        try:
            deleted = await repo.delete_city(user_id, id)
        except Exception as e:
            logger.error(f"Delete city error: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))
        if not deleted:
            raise HTTPException(status_code=404, detail="City not found")
        return {"ok": True, "id": id}

    # ------------------------------------------------------------------
    # Geocoding / weather
    # ------------------------------------------------------------------

    @app.get("/api/search", response_model=List[CityCandidate], dependencies=[Depends(search_throttle)])
    async def search(
        q: str = "",
        geocoder: IGeocodeClient = Depends(get_geocode_client),
        config: AppConfig = Depends(get_config)
    ):
        """Search places by free text (throttled per caller)."""
        if not q.strip():
            return []
        try:
            return await geocoder.search(q, limit=config.weather.search_limit)
        except httpx.HTTPError as e:
            logger.error(f"Search error for '{q}': {e}")
            raise HTTPException(status_code=502, detail=f"Geocoding failed: {e}")

    @app.get("/api/weather")
    async def weather(
        cityId: str = Query(..., min_length=1),
        user_id: str = Depends(get_user_id),
        repo: ICityRepository = Depends(get_city_repository),
        weather_client: IWeatherClient = Depends(get_weather_client)
    ):
        """Current conditions and 5-day forecast for a saved city."""
        city = await repo.get_city(user_id, cityId)
        if city is None:
            raise HTTPException(status_code=404, detail="City not found")
        try:
            data = await weather_client.get_weather(city.lat, city.lon)
        except httpx.HTTPError as e:
            logger.error(f"Weather error for city {cityId}: {e}")
            raise HTTPException(status_code=502, detail=f"Weather provider failed: {e}")
        return {"city": city.model_dump(mode="json", by_alias=True), **data}

    # ------------------------------------------------------------------
    # Assistant
    # ------------------------------------------------------------------

    @app.post("/api/ai/chat", response_model=ChatResponse)
    async def chat(
        request: ChatRequest,
        x_user_id: Optional[str] = Header(default=None),
        chat_service: ChatService = Depends(get_chat_service),
        config: AppConfig = Depends(get_config)
    ):
        """
        Process one chat turn.

        Handles:
        - Add / delete / "weather for" fast paths without a model call
        - Tool invocations via the assistant
        - Fallback model on quota errors
        """
        user_id = (x_user_id or "").strip() or (request.user_id or "").strip() or config.server.default_user_id
        try:
            logger.info(f"Chat request from user {user_id} ({len(request.messages)} messages)")
            return await chat_service.process_message(request, user_id)
        except WeatherDeckError:
            raise
        except Exception as e:
            logger.error(f"AI chat error: {e}", exc_info=True)
            return JSONResponse(status_code=500, content={"error": str(e) or "AI service failed"})

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @app.get("/api/_diag/openweather")
    async def diag_openweather(
        geocoder: IGeocodeClient = Depends(get_geocode_client),
        config: AppConfig = Depends(get_config)
    ):
        """Check that the OpenWeather key works."""
        if not config.weather.api_key:
            return JSONResponse(status_code=500, content={"ok": False, "reason": "no_openweather_key"})
        try:
            sample = await geocoder.search("Paris", limit=1)
        except httpx.HTTPError as e:
            return JSONResponse(status_code=500, content={"ok": False, "key": config.weather.masked_key, "err": str(e)})
        return {"ok": True, "key": config.weather.masked_key, "sample": isinstance(sample, list)}

    @app.get("/api/_diag/ai")
    async def diag_ai(
        assistant: WeatherAssistant = Depends(get_assistant),
        config: AppConfig = Depends(get_config)
    ):
        """Check that the primary model answers."""
        if not config.model.api_key:
            return JSONResponse(status_code=500, content={"ok": False, "reason": "no_gemini_key"})
        try:
            reply = await assistant.ping()
        except Exception as e:
            return JSONResponse(status_code=500, content={"ok": False, "err": str(e) or "gemini failed"})
        return {"ok": True, "reply": reply}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.config.server.port)
