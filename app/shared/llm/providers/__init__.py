from .anthropic import AnthropicProvider
from .base import BaseProvider
from .openai import OpenAIProvider

__all__ = ["BaseProvider", "OpenAIProvider", "AnthropicProvider"]
