"""Shared pytest fixtures."""

import pytest

from config import AppConfig, ModelConfig, ServerConfig, WeatherConfig
from fakes import InMemoryDirectory, PARIS, RANCHI


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory(search_results={
        "Ranchi, Jharkhand, IN": [RANCHI],
        "Paris": [PARIS],
    })


@pytest.fixture
def test_config(tmp_path) -> AppConfig:
    return AppConfig(
        model=ModelConfig(api_key="test-gemini-key", primary_model="primary-model", fallback_model="fallback-model"),
        weather=WeatherConfig(api_key="test-openweather-key"),
        server=ServerConfig(data_dir=tmp_path, search_cooldown_ms=0),
    )
