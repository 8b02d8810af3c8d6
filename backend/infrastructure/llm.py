"""
Infrastructure layer - Chat model construction for the Gemini provider.
"""
import logging
from typing import Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI

from config import ModelConfig

logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[str], BaseChatModel]


def gemini_model_factory(config: ModelConfig) -> ChatModelFactory:
    """Return a factory building a Gemini chat model for a given model id."""

    def create(model_id: str) -> BaseChatModel:
        logger.info(f"Creating Gemini chat model {model_id}")
        return ChatGoogleGenerativeAI(
            model=model_id,
            google_api_key=config.api_key,
            temperature=config.temperature,
            timeout=config.timeout_seconds,
            max_retries=0,  # Fallback model handles rate limits
        )

    return create
