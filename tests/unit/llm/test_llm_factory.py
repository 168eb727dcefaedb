import pytest
from unittest.mock import patch

from app.shared.core.exceptions import ConfigurationError
from app.shared.llm.factory import LLMFactory

VALID_KEY = "sk-test-0123456789abcdefghij"


@pytest.mark.parametrize(
    "key,message",
    [
        (None, "not configured"),
        ("sk-xxx-0123456789abcdefghij", "placeholder"),
        ("short-key", "too short"),
    ],
)
def test_validate_api_key_rejects_bad_keys(key, message):
    with pytest.raises(ConfigurationError, match=message):
        LLMFactory.validate_api_key("openai", key)


def test_create_rejects_unknown_provider():
    with pytest.raises(ConfigurationError, match="Unsupported provider"):
        LLMFactory.create(provider="carrier-pigeon", api_key=VALID_KEY)


def test_create_openai_passes_limits(settings):
    with patch("app.shared.llm.providers.openai.ChatOpenAI") as chat_cls:
        LLMFactory.create(provider="openai", api_key=VALID_KEY, max_output_tokens=256)

    kwargs = chat_cls.call_args.kwargs
    assert kwargs["api_key"] == VALID_KEY
    assert kwargs["model"] == settings.OPENAI_MODEL
    assert kwargs["max_tokens"] == 256
    assert kwargs["temperature"] == settings.LLM_TEMPERATURE
    assert kwargs["timeout"] == settings.LLM_TIMEOUT_SECONDS
    assert kwargs["max_retries"] == settings.LLM_MAX_RETRIES


def test_create_defaults_to_configured_output_limit(settings):
    with patch("app.shared.llm.providers.anthropic.ChatAnthropic") as chat_cls:
        LLMFactory.create(provider="claude", model="claude-test", api_key=VALID_KEY)

    kwargs = chat_cls.call_args.kwargs
    assert kwargs["model"] == "claude-test"
    assert kwargs["max_tokens"] == settings.LLM_MAX_OUTPUT_TOKENS


def test_create_without_key_fails_fast(settings):
    with patch("app.shared.llm.providers.openai.ChatOpenAI") as chat_cls:
        with pytest.raises(ConfigurationError, match="not configured"):
            LLMFactory.create(provider="openai")
    chat_cls.assert_not_called()


def test_missing_key_carries_config_error_code():
    with pytest.raises(ConfigurationError) as exc_info:
        LLMFactory.validate_api_key("anthropic", None)

    assert exc_info.value.code == "config_error"
