from typing import Any, Optional, cast

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI

from app.shared.core.config import get_settings
from app.shared.llm.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    def create_model(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> BaseChatModel:
        settings = get_settings()
        key = self.validate_api_key(api_key or settings.OPENAI_API_KEY, "openai")

        kwargs: dict[str, Any] = {
            "api_key": key,
            "model": model or settings.OPENAI_MODEL,
            "temperature": settings.LLM_TEMPERATURE,
            "timeout": settings.LLM_TIMEOUT_SECONDS,
            "max_retries": settings.LLM_MAX_RETRIES,
        }
        if isinstance(max_output_tokens, int) and max_output_tokens > 0:
            kwargs["max_tokens"] = max_output_tokens

        openai_cls = cast(Any, ChatOpenAI)
        return cast(BaseChatModel, openai_cls(**kwargs))
