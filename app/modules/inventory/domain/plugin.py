from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, Iterable, List, Optional, TypeVar

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.schemas.inventory import ResourceKind
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.exceptions import AdapterError

logger = structlog.get_logger()

T = TypeVar("T")


class ResourceScanner(ABC):
    """
    Abstract base class for resource inventory plugins.
    Each plugin lists one kind of resource and enriches every item it finds.

    Listing failures are fatal for the plugin and surface as `AdapterError`.
    Per-item lookups go through `_best_effort`, so a failed lookup only
    leaves one field at its default.
    """

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """The resource kind this plugin produces."""
        raise NotImplementedError

    @abstractmethod
    async def scan(self, provider: AWSClientProvider) -> List[Any]:
        """List every resource of this kind, in listing order."""
        raise NotImplementedError

    async def _best_effort(
        self,
        lookup: Awaitable[T],
        default: T,
        *,
        lookup_name: str,
        resource_id: str,
    ) -> T:
        """Await a secondary lookup, collapsing any failure to `default`."""
        try:
            return await lookup
        except Exception as e:
            logger.warning(
                "resource_enrichment_failed",
                kind=self.kind.value,
                lookup=lookup_name,
                resource_id=resource_id,
                error=str(e),
            )
            return default

    def _listing_error(self, exc: Exception) -> AdapterError:
        code = "scan_failed"
        if isinstance(exc, ClientError):
            code = exc.response.get("Error", {}).get("Code", code)
        elif isinstance(exc, BotoCoreError):
            code = type(exc).__name__
        logger.error("resource_listing_failed", kind=self.kind.value, error=str(exc))
        return AdapterError(
            message=f"{self.kind.value} scan failed: {exc}",
            code=code,
            details={"kind": self.kind.value},
        )

    @staticmethod
    def tags_to_dict(tags: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, str]:
        """
        Convert AWS tag list format to dictionary.
        Accepts both `Key`/`Value` and lowercase `key`/`value` entries.
        """
        result: Dict[str, str] = {}
        for tag in tags or []:
            key = tag.get("Key") or tag.get("key")
            if key:
                result[str(key)] = str(tag.get("Value", tag.get("value", "")) or "")
        return result
