from .factory import LLMFactory
from .guardrails import LLMGuardrails

__all__ = ["LLMFactory", "LLMGuardrails"]
