"""
Application configuration dataclasses.

Provides centralized configuration with sensible defaults for:
- Model provider (Gemini credentials, primary/fallback model, timeouts)
- Weather provider (OpenWeather credentials, endpoints, timeouts)
- Server (port, CORS, data directory, search cooldown)

Built once at startup via AppConfig.from_env() and passed to services.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import os


SYSTEM_INSTRUCTION = (
    "You are WeatherDeck Assistant. You can answer ANY general question (science, math, history, writing, "
    "and coding in ANY language including C++, Java, JavaScript, Python, Go, Rust, etc.). "
    "You ALSO have tools for weather: add/delete cities and fetch weather. "
    "Default country is India (IN) if country is not specified. "
    "Call tools ONLY when the user asks about weather or managing cities; otherwise answer directly. "
    "When returning code, always use proper markdown fences with the correct language tag (```cpp, ```java, ```js, etc.). "
    "Never claim you are restricted to Python or any single library. "
    "Use concise answers unless the user asks for more detail. Use metric (°C) for weather."
)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class ModelConfig:
    """Configuration for the generative model provider."""

    api_key: str = ""
    primary_model: str = "gemini-2.5-flash"
    fallback_model: str = "gemini-2.5-flash-lite"
    timeout_seconds: float = 30.0
    temperature: float = 0.7
    history_window: int = 10  # Most recent messages submitted to the model
    system_instruction: str = SYSTEM_INSTRUCTION

    def __post_init__(self):
        """Validate configuration."""
        self.api_key = (self.api_key or "").strip()
        if self.history_window <= 0:
            raise ValueError("history_window must be positive")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @classmethod
    def from_env(cls) -> "ModelConfig":
        return cls(
            api_key=os.getenv("GEMINI_API_KEY", ""),
            primary_model=os.getenv("GEMINI_MODEL") or cls.primary_model,
            fallback_model=os.getenv("GEMINI_FALLBACK_MODEL") or cls.fallback_model,
            timeout_seconds=_env_float("MODEL_TIMEOUT_SECONDS", cls.timeout_seconds),
            temperature=_env_float("MODEL_TEMPERATURE", cls.temperature),
            history_window=_env_int("HISTORY_WINDOW", cls.history_window),
        )


@dataclass
class WeatherConfig:
    """Configuration for the OpenWeather geocoding and weather APIs."""

    api_key: str = ""
    geocode_url: str = "https://api.openweathermap.org/geo/1.0/direct"
    current_url: str = "https://api.openweathermap.org/data/2.5/weather"
    forecast_url: str = "https://api.openweathermap.org/data/2.5/forecast"
    units: str = "metric"
    search_limit: int = 5
    search_timeout_seconds: float = 8.0
    weather_timeout_seconds: float = 10.0

    def __post_init__(self):
        self.api_key = (self.api_key or "").strip()

    @property
    def masked_key(self) -> str:
        """Key with the middle hidden, safe to return from diagnostics."""
        if len(self.api_key) >= 8:
            return f"{self.api_key[:4]}...{self.api_key[-4:]}"
        return "short"

    @classmethod
    def from_env(cls) -> "WeatherConfig":
        return cls(
            api_key=os.getenv("OPENWEATHER_API_KEY", ""),
            units=os.getenv("OPENWEATHER_UNITS") or cls.units,
        )


@dataclass
class ServerConfig:
    """Configuration for the HTTP server and the self-call tool client."""

    port: int = 4000
    self_base_url: str = ""
    cors_origin: str = "*"
    data_dir: Path = field(default_factory=lambda: Path("data"))
    search_cooldown_ms: int = 500
    default_user_id: str = "demo-user"
    default_country: str = "IN"
    directory_timeout_seconds: float = 8.0
    weather_timeout_seconds: float = 10.0

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if not self.self_base_url:
            self.self_base_url = f"http://127.0.0.1:{self.port}"
        self.self_base_url = self.self_base_url.rstrip("/")

    @property
    def cors_allow_all(self) -> bool:
        return self.cors_origin.strip() == "*"

    @property
    def cors_origins(self) -> List[str]:
        """Explicit allow-list; empty when every origin is allowed."""
        if self.cors_allow_all:
            return []
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    @classmethod
    def from_env(cls) -> "ServerConfig":
        return cls(
            port=_env_int("PORT", cls.port),
            self_base_url=os.getenv("SELF_BASE_URL", ""),
            cors_origin=(os.getenv("CORS_ORIGIN") or "*").strip(),
            data_dir=Path(os.getenv("DATA_DIR") or "data"),
            search_cooldown_ms=_env_int("SEARCH_COOLDOWN_MS", cls.search_cooldown_ms),
            default_user_id=os.getenv("DEFAULT_USER_ID") or cls.default_user_id,
            default_country=os.getenv("DEFAULT_COUNTRY") or cls.default_country,
        )


@dataclass
class AppConfig:
    """Aggregated application configuration."""

    model: ModelConfig = field(default_factory=ModelConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls(
            model=ModelConfig.from_env(),
            weather=WeatherConfig.from_env(),
            server=ServerConfig.from_env(),
        )
