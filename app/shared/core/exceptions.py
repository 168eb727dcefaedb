from typing import Optional, Dict, Any


class StratusException(Exception):
    """Base exception for all Stratus errors."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class AdapterError(StratusException):
    """Raised when an external cloud adapter fails."""

    def __init__(
        self,
        message: str,
        code: str = "adapter_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, status_code=502, details=details)


class ConfigurationError(StratusException):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        code: str = "config_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, status_code=500, details=details)


class CostRangeError(StratusException):
    """Raised when a cost query reaches past the Cost Explorer retention window."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="cost_range_error", status_code=400, details=details
        )


class AIAnalysisError(StratusException):
    """Raised when LLM/AI analysis fails."""

    def __init__(
        self,
        message: str,
        code: str = "ai_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, status_code=500, details=details)
