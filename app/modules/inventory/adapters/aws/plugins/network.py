import asyncio
from typing import Any, Dict, List

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.modules.inventory.domain.plugin import ResourceScanner
from app.modules.inventory.domain.registry import registry
from app.schemas.inventory import LoadBalancer, ResourceKind
from app.shared.adapters.aws_pagination import iter_token_pages
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.retry import with_aws_retry

logger = structlog.get_logger()

TYPE_LABELS = {
    "application": "Application Load Balancer",
    "network": "Network Load Balancer",
    "gateway": "Gateway Load Balancer",
}


@registry.register
class LoadBalancerScanner(ResourceScanner):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.LOAD_BALANCER

    async def scan(self, provider: AWSClientProvider) -> List[LoadBalancer]:
        try:
            async with provider.client("elbv2") as elb:
                raw = await self._describe_load_balancers(
                    elb, provider.settings.SCAN_MAX_PAGES
                )
                semaphore = asyncio.Semaphore(provider.settings.ENRICHMENT_CONCURRENCY)
                balancers = await asyncio.gather(
                    *(self._describe(elb, item, provider.region, semaphore) for item in raw)
                )
        except (ClientError, BotoCoreError) as e:
            raise self._listing_error(e) from e

        logger.info("load_balancer_scan_complete", region=provider.region, count=len(balancers))
        return list(balancers)

    @with_aws_retry
    async def _describe_load_balancers(self, elb: Any, max_pages: int) -> List[Dict[str, Any]]:
        found: List[Dict[str, Any]] = []
        async for page in iter_token_pages(
            elb.describe_load_balancers,
            operation_name="elbv2.describe_load_balancers",
            request_token_key="Marker",
            response_token_key="NextMarker",
            max_pages=max_pages,
        ):
            found.extend(page.get("LoadBalancers", []))
        return found

    async def _describe(
        self,
        elb: Any,
        item: Dict[str, Any],
        region: str,
        semaphore: asyncio.Semaphore,
    ) -> LoadBalancer:
        arn = item["LoadBalancerArn"]
        async with semaphore:
            tags = await self._best_effort(
                self._tags(elb, arn), {}, lookup_name="tags", resource_id=arn
            )
        lb_type = item.get("Type")
        return LoadBalancer(
            id=arn,
            name=item.get("LoadBalancerName", ""),
            state=(item.get("State") or {}).get("Code"),
            region=region,
            tags=tags,
            dns_name=item.get("DNSName"),
            type=lb_type,
            type_label=TYPE_LABELS.get(lb_type or "", "Load Balancer"),
            scheme=item.get("Scheme"),
            vpc_id=item.get("VpcId"),
            created_time=item.get("CreatedTime"),
        )

    async def _tags(self, elb: Any, arn: str) -> Dict[str, str]:
        response = await elb.describe_tags(ResourceArns=[arn])
        for description in response.get("TagDescriptions", []):
            if description.get("ResourceArn") == arn:
                return self.tags_to_dict(description.get("Tags"))
        return {}
