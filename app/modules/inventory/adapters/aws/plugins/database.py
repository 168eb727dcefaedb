from typing import Any, Dict, List, Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.modules.inventory.adapters.aws.metrics import MetricReducer
from app.modules.inventory.domain.plugin import ResourceScanner
from app.modules.inventory.domain.registry import registry
from app.schemas.inventory import DatabaseEndpoint, DatabaseInstance, ResourceKind
from app.shared.adapters.aws_pagination import iter_token_pages
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.retry import with_aws_retry

logger = structlog.get_logger()


@registry.register
class DatabaseScanner(ResourceScanner):
    """RDS instances, each carrying its latest CloudWatch metric samples."""

    def __init__(self, metric_reducer: Optional[MetricReducer] = None):
        self.metric_reducer = metric_reducer

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.DATABASE

    async def scan(self, provider: AWSClientProvider) -> List[DatabaseInstance]:
        try:
            async with provider.client("rds") as rds:
                raw = await self._describe_db_instances(
                    rds, provider.settings.SCAN_MAX_PAGES
                )
        except (ClientError, BotoCoreError) as e:
            raise self._listing_error(e) from e

        reducer = self.metric_reducer or MetricReducer(provider)
        ids = [item["DBInstanceIdentifier"] for item in raw]
        metrics = await reducer.fetch_for_entities(ids)

        instances = [
            self._to_record(item, provider.region, metrics.get(item["DBInstanceIdentifier"], {}))
            for item in raw
        ]
        logger.info("database_scan_complete", region=provider.region, count=len(instances))
        return instances

    @with_aws_retry
    async def _describe_db_instances(self, rds: Any, max_pages: int) -> List[Dict[str, Any]]:
        found: List[Dict[str, Any]] = []
        async for page in iter_token_pages(
            rds.describe_db_instances,
            operation_name="rds.describe_db_instances",
            request_token_key="Marker",
            response_token_key="Marker",
            max_pages=max_pages,
        ):
            found.extend(page.get("DBInstances", []))
        return found

    def _to_record(
        self, item: Dict[str, Any], region: str, metrics: Dict[str, Any]
    ) -> DatabaseInstance:
        endpoint = item.get("Endpoint")
        return DatabaseInstance(
            id=item["DBInstanceIdentifier"],
            state=item.get("DBInstanceStatus"),
            region=region,
            tags=self.tags_to_dict(item.get("TagList")),
            engine=item.get("Engine"),
            engine_version=item.get("EngineVersion"),
            instance_class=item.get("DBInstanceClass"),
            multi_az=bool(item.get("MultiAZ", False)),
            storage_type=item.get("StorageType"),
            allocated_storage_gb=item.get("AllocatedStorage"),
            endpoint=(
                DatabaseEndpoint(address=endpoint.get("Address"), port=endpoint.get("Port"))
                if endpoint
                else None
            ),
            availability_zone=item.get("AvailabilityZone"),
            publicly_accessible=bool(item.get("PubliclyAccessible", False)),
            storage_encrypted=bool(item.get("StorageEncrypted", False)),
            metrics=metrics,
        )
