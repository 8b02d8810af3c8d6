"""
Domain interfaces - Abstractions for repositories and services.
Following SOLID: Dependency Inversion Principle - depend on abstractions, not concrete implementations.
Interface Segregation Principle - specific interfaces for different concerns.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from domain.models import CityCandidate, CityCreate, SavedCity


class ICityRepository(ABC):
    """Interface for saved-city persistence (the City Directory store)."""

    @abstractmethod
    async def list_cities(self, user_id: str) -> List[SavedCity]:
        """List a user's saved cities, oldest first."""
        pass

    @abstractmethod
    async def get_city(self, user_id: str, city_id: str) -> Optional[SavedCity]:
        """Load one saved city, or None if the user has no such city."""
        pass

    @abstractmethod
    async def add_city(self, user_id: str, city: CityCreate) -> SavedCity:
        """Persist a new city and return it with its id."""
        pass

    @abstractmethod
    async def delete_city(self, user_id: str, city_id: str) -> bool:
        """Delete a city by id. Returns False if not found."""
        pass


class IGeocodeClient(ABC):
    """Interface for free-text place search."""

    @abstractmethod
    async def search(self, query: str, limit: int = 5) -> List[CityCandidate]:
        """Return candidate places in provider relevance order."""
        pass


class IWeatherClient(ABC):
    """Interface for weather by coordinates."""

    @abstractmethod
    async def get_weather(self, lat: float, lon: float) -> Dict[str, Any]:
        """Get current conditions plus a multi-day forecast."""
        pass


class ICityDirectoryClient(ABC):
    """Interface for the application's own HTTP API, as used by the assistant tools."""

    @abstractmethod
    async def search_cities(self, query: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Geocoding candidates, throttled under the given user."""
        pass

    @abstractmethod
    async def list_cities(self, user_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def add_city(self, user_id: str, city: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def delete_city(self, user_id: str, city_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_weather(self, user_id: str, city_id: str) -> Dict[str, Any]:
        pass
