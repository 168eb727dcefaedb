from typing import Any, Dict, List

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.modules.inventory.domain.plugin import ResourceScanner
from app.modules.inventory.domain.registry import registry
from app.schemas.inventory import ComputeInstance, ResourceKind
from app.shared.adapters.aws_pagination import iter_token_pages
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.retry import with_aws_retry

logger = structlog.get_logger()


@registry.register
class ComputeScanner(ResourceScanner):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.COMPUTE

    async def scan(self, provider: AWSClientProvider) -> List[ComputeInstance]:
        try:
            async with provider.client("ec2") as ec2:
                raw = await self._describe_instances(
                    ec2, provider.settings.SCAN_MAX_PAGES
                )
        except (ClientError, BotoCoreError) as e:
            raise self._listing_error(e) from e

        instances = [self._to_record(item, provider.region) for item in raw]
        logger.info("compute_scan_complete", region=provider.region, count=len(instances))
        return instances

    @with_aws_retry
    async def _describe_instances(self, ec2: Any, max_pages: int) -> List[Dict[str, Any]]:
        found: List[Dict[str, Any]] = []
        async for page in iter_token_pages(
            ec2.describe_instances,
            operation_name="ec2.describe_instances",
            request_token_key="NextToken",
            response_token_key="NextToken",
            max_pages=max_pages,
        ):
            for reservation in page.get("Reservations", []):
                found.extend(reservation.get("Instances", []))
        return found

    def _to_record(self, instance: Dict[str, Any], region: str) -> ComputeInstance:
        tags = self.tags_to_dict(instance.get("Tags"))
        return ComputeInstance(
            id=instance["InstanceId"],
            name=tags.get("Name", ""),
            state=(instance.get("State") or {}).get("Name"),
            region=region,
            tags=tags,
            instance_type=instance.get("InstanceType"),
            availability_zone=(instance.get("Placement") or {}).get("AvailabilityZone"),
            private_ip=instance.get("PrivateIpAddress"),
            public_ip=instance.get("PublicIpAddress"),
            launch_time=instance.get("LaunchTime"),
            platform=instance.get("Platform") or "linux",
            root_device_type=instance.get("RootDeviceType"),
            vpc_id=instance.get("VpcId"),
            subnet_id=instance.get("SubnetId"),
        )
