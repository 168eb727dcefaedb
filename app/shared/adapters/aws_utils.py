import aioboto3
from typing import Any, Dict, Optional
from botocore.config import Config as BotoConfig
from app.shared.core.config import Settings, get_settings

# Mapping CamelCase to snake_case for aioboto3/boto3 credentials
AWS_CREDENTIAL_MAPPING = {
    "AccessKeyId": "aws_access_key_id",
    "SecretAccessKey": "aws_secret_access_key",
    "SessionToken": "aws_session_token",
    "aws_access_key_id": "aws_access_key_id",
    "aws_secret_access_key": "aws_secret_access_key",
    "aws_session_token": "aws_session_token",
}


def map_aws_credentials(credentials: Dict[str, Optional[str]]) -> Dict[str, str]:
    """
    Maps credentials dictionary to valid boto3/aioboto3 kwargs.
    Handles both CamelCase (AWS standard) and snake_case (boto3) keys.
    Empty values are dropped so the default credential chain stays in charge.
    """
    mapped: Dict[str, str] = {}
    if not credentials:
        return mapped

    for src, dst in AWS_CREDENTIAL_MAPPING.items():
        value = credentials.get(src)
        if value:
            mapped[dst] = value

    return mapped


def resolve_aws_region_hint(region: Any, settings: Optional[Settings] = None) -> str:
    """
    Resolve AWS region hints to a concrete supported region.

    - Explicit non-global region wins (if supported list is empty or includes it)
    - Otherwise use configured AWS_DEFAULT_REGION (if valid)
    - Final fallback is us-east-1 for endpoint compatibility
    """
    settings = settings or get_settings()
    supported = {
        str(r).strip()
        for r in getattr(settings, "AWS_SUPPORTED_REGIONS", [])
        if str(r).strip()
    }
    configured_default = str(getattr(settings, "AWS_DEFAULT_REGION", "") or "").strip()
    candidate = str(region or "").strip()

    if candidate and candidate != "global":
        if not supported or candidate in supported:
            return candidate

    if configured_default and (not supported or configured_default in supported):
        return configured_default

    return "us-east-1"


def build_boto_config(settings: Settings) -> BotoConfig:
    """Standardized boto config with timeouts to prevent indefinite hangs."""
    return BotoConfig(
        connect_timeout=settings.AWS_CONNECT_TIMEOUT_SECONDS,
        read_timeout=settings.AWS_READ_TIMEOUT_SECONDS,
        retries={"max_attempts": settings.AWS_MAX_ATTEMPTS, "mode": "adaptive"},
    )


class AWSClientProvider:
    """
    Owns the aioboto3 session used by every scanner and fetcher.

    Built once at process start and injected where needed; each call to
    `client()` hands out a fresh async context manager so callers control the
    client lifetime with `async with`.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        credentials: Optional[Dict[str, Optional[str]]] = None,
        session: Any = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.region = resolve_aws_region_hint(region, self.settings)
        self.credentials = map_aws_credentials(credentials or {})
        self.session = session or aioboto3.Session()
        self.config = build_boto_config(self.settings)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AWSClientProvider":
        settings = settings or get_settings()
        return cls(
            region=settings.AWS_DEFAULT_REGION,
            credentials={
                "aws_access_key_id": settings.AWS_ACCESS_KEY_ID,
                "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY,
                "aws_session_token": settings.AWS_SESSION_TOKEN,
            },
            settings=settings,
        )

    def client_kwargs(self, region: Optional[str] = None) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "region_name": region or self.region,
            "config": self.config,
        }
        if self.settings.AWS_ENDPOINT_URL:
            kwargs["endpoint_url"] = self.settings.AWS_ENDPOINT_URL
        kwargs.update(self.credentials)
        return kwargs

    def client(self, service_name: str, region: Optional[str] = None) -> Any:
        """Returns an async client context manager for the specified service."""
        return self.session.client(service_name, **self.client_kwargs(region))
