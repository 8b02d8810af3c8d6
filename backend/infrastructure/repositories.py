"""
Infrastructure layer - File-based document store for saved cities.

Directory structure:
data/cities/{sha256(user_id)}.json  - one JSON document (list of cities) per user
"""
import hashlib
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict, Any

from domain.interfaces import ICityRepository
from domain.models import CityCreate, SavedCity

logger = logging.getLogger(__name__)


class FileCityRepository(ICityRepository):
    """
    File-based saved-city persistence.

    Reads and writes never await in between, so a single event loop
    sees each update as atomic.
    """

    def __init__(self, data_dir: str = "data/cities"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _get_user_path(self, user_id: str) -> Path:
        """Build path to the user's document (one file per distinct user id)"""
        user_hash = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return self.data_dir / f"{user_hash}.json"

    def _load(self, user_id: str) -> List[Dict[str, Any]]:
        path = self._get_user_path(user_id)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, user_id: str, documents: List[Dict[str, Any]]) -> None:
        path = self._get_user_path(user_id)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(documents, f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)

    async def list_cities(self, user_id: str) -> List[SavedCity]:
        return [SavedCity.model_validate(doc) for doc in self._load(user_id)]

    async def get_city(self, user_id: str, city_id: str) -> Optional[SavedCity]:
        for doc in self._load(user_id):
            if doc.get("id") == city_id:
                return SavedCity.model_validate(doc)
        return None

    async def add_city(self, user_id: str, city: CityCreate) -> SavedCity:
        saved = SavedCity(
            id=uuid.uuid4().hex,
            user_id=user_id,
            created_at=datetime.now(),
            **city.model_dump(),
        )
        documents = self._load(user_id)
        documents.append(saved.model_dump(mode="json", by_alias=True))
        self._save(user_id, documents)
        logger.info(f"Saved city {saved.name} ({saved.country}) for user {user_id}")
        return saved

    async def delete_city(self, user_id: str, city_id: str) -> bool:
        documents = self._load(user_id)
        remaining = [doc for doc in documents if doc.get("id") != city_id]
        if len(remaining) == len(documents):
            return False
        self._save(user_id, remaining)
        logger.info(f"Deleted city {city_id} for user {user_id}")
        return True
