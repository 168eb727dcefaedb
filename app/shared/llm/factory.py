from typing import Dict, Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from app.shared.core.config import get_settings
from app.shared.core.exceptions import ConfigurationError
from app.shared.llm.providers import AnthropicProvider, BaseProvider, OpenAIProvider

logger = structlog.get_logger()

PROVIDERS: Dict[str, type[BaseProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
}


class LLMFactory:
    @staticmethod
    def validate_api_key(provider: str, api_key: Optional[str]) -> None:
        BaseProvider.validate_api_key(api_key, provider)

    @staticmethod
    def create(
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> BaseChatModel:
        """
        Create an LLM client for the specified provider and model.
        Falls back to the configured provider and output limit.
        """
        settings = get_settings()
        effective_provider = (provider or settings.LLM_PROVIDER or "openai").lower()
        if effective_provider not in PROVIDERS:
            raise ConfigurationError(f"Unsupported provider: {effective_provider}")

        limit = max_output_tokens or settings.LLM_MAX_OUTPUT_TOKENS
        logger.info(
            "llm_initializing",
            provider=effective_provider,
            model=model,
            max_output_tokens=limit,
        )
        return PROVIDERS[effective_provider]().create_model(
            model=model, api_key=api_key, max_output_tokens=limit
        )
