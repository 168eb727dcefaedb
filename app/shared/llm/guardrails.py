import re
import unicodedata
from typing import Any

import structlog

logger = structlog.get_logger()


class LLMGuardrails:
    """
    Sanitizes account data before it is embedded in a prompt.

    Resource names and tag values are user-controlled, so they are scrubbed
    of instruction-like phrases. The user's own question is never passed here.
    """

    # Patterns commonly used in prompt injection
    INJECTION_PATTERNS = [
        r"ignore previous instructions",
        r"ignore all previous instructions",
        r"system prompt",
        r"you are now",
        r"forget what you",
        r"<script>",
        r"javascript:",
    ]

    @classmethod
    def sanitize_input(cls, data: Any) -> Any:
        """
        Recursively sanitizes input data to strip prompt injection attempts.
        Harden against:
        - Case variations (handled by IGNORECASE)
        - Whitespace obfuscation
        - Unicode normalization bypasses
        """
        if isinstance(data, str):
            normalized = unicodedata.normalize("NFKC", data)
            collapsed = re.sub(r"\s+", "", normalized).lower()

            for pattern in cls.INJECTION_PATTERNS:
                clean_pattern = re.sub(r"\s+", "", pattern).lower()
                if clean_pattern in collapsed:
                    logger.warning("prompt_injection_pattern_detected", pattern=pattern)
                    return "[REDACTED]"
            return data

        if isinstance(data, list):
            return [cls.sanitize_input(item) for item in data]
        if isinstance(data, dict):
            return {cls.sanitize_input(k): cls.sanitize_input(v) for k, v in data.items()}
        return data
