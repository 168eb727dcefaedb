from abc import ABC, abstractmethod
from typing import Optional

from langchain_core.language_models.chat_models import BaseChatModel

from app.shared.core.exceptions import ConfigurationError

PLACEHOLDER_MARKERS = ("xxx", "change-me", "your-api-key")
MIN_API_KEY_LENGTH = 20


class BaseProvider(ABC):
    """Builds a langchain chat model for one LLM vendor."""

    @abstractmethod
    def create_model(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> BaseChatModel:
        raise NotImplementedError

    @staticmethod
    def validate_api_key(api_key: Optional[str], provider: str) -> str:
        """
        Validates the format and presence of an LLM API key.
        Rejects placeholders so misconfiguration fails before the first call.
        """
        if not api_key:
            raise ConfigurationError(f"LLM API key for provider '{provider}' is not configured.")

        lowered = api_key.lower()
        if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
            raise ConfigurationError(
                f"LLM API key for '{provider}' contains a placeholder. Use a real key."
            )

        if len(api_key) < MIN_API_KEY_LENGTH:
            raise ConfigurationError(f"LLM API key for '{provider}' is too short.")
        return api_key
