import asyncio
from typing import Any, Dict, List

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.modules.inventory.domain.plugin import ResourceScanner
from app.modules.inventory.domain.registry import registry
from app.schemas.inventory import ResourceKind, StorageBucket
from app.shared.adapters.aws_pagination import iter_token_pages
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.retry import with_aws_retry

logger = structlog.get_logger()

# GetBucketLocation returns these legacy constraints instead of region names
LEGACY_LOCATIONS = {None: "us-east-1", "": "us-east-1", "EU": "eu-west-1"}


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


@registry.register
class StorageScanner(ResourceScanner):
    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.STORAGE

    async def scan(self, provider: AWSClientProvider) -> List[StorageBucket]:
        settings = provider.settings
        try:
            async with provider.client("s3") as s3:
                raw = await self._list_buckets(
                    s3, settings.S3_LIST_PAGE_SIZE, settings.SCAN_MAX_PAGES
                )
                semaphore = asyncio.Semaphore(settings.ENRICHMENT_CONCURRENCY)
                buckets = await asyncio.gather(
                    *(self._describe_bucket(s3, bucket, semaphore) for bucket in raw)
                )
        except (ClientError, BotoCoreError) as e:
            raise self._listing_error(e) from e

        logger.info("storage_scan_complete", count=len(buckets))
        return list(buckets)

    @with_aws_retry
    async def _list_buckets(
        self, s3: Any, page_size: int, max_pages: int
    ) -> List[Dict[str, Any]]:
        found: List[Dict[str, Any]] = []
        async for page in iter_token_pages(
            s3.list_buckets,
            operation_name="s3.list_buckets",
            request_token_key="ContinuationToken",
            response_token_key="ContinuationToken",
            request_kwargs={"MaxBuckets": page_size},
            max_pages=max_pages,
        ):
            found.extend(page.get("Buckets", []))
        return found

    async def _describe_bucket(
        self, s3: Any, bucket: Dict[str, Any], semaphore: asyncio.Semaphore
    ) -> StorageBucket:
        name = bucket["Name"]
        async with semaphore:
            region, versioning, website, tags = await asyncio.gather(
                self._best_effort(
                    self._bucket_region(s3, name),
                    "",
                    lookup_name="location",
                    resource_id=name,
                ),
                self._best_effort(
                    self._bucket_versioning(s3, name),
                    False,
                    lookup_name="versioning",
                    resource_id=name,
                ),
                self._best_effort(
                    self._bucket_website(s3, name),
                    False,
                    lookup_name="website",
                    resource_id=name,
                ),
                self._best_effort(
                    self._bucket_tags(s3, name),
                    {},
                    lookup_name="tagging",
                    resource_id=name,
                ),
            )
        return StorageBucket(
            id=name,
            region=region,
            creation_date=bucket.get("CreationDate"),
            versioning=versioning,
            website_enabled=website,
            tags=tags,
        )

    async def _bucket_region(self, s3: Any, name: str) -> str:
        response = await s3.get_bucket_location(Bucket=name)
        constraint = response.get("LocationConstraint")
        return LEGACY_LOCATIONS.get(constraint, constraint)

    async def _bucket_versioning(self, s3: Any, name: str) -> bool:
        response = await s3.get_bucket_versioning(Bucket=name)
        return response.get("Status") == "Enabled"

    async def _bucket_website(self, s3: Any, name: str) -> bool:
        try:
            await s3.get_bucket_website(Bucket=name)
        except ClientError as e:
            if _error_code(e) == "NoSuchWebsiteConfiguration":
                return False
            raise
        return True

    async def _bucket_tags(self, s3: Any, name: str) -> Dict[str, str]:
        try:
            response = await s3.get_bucket_tagging(Bucket=name)
        except ClientError as e:
            if _error_code(e) == "NoSuchTagSet":
                return {}
            raise
        return self.tags_to_dict(response.get("TagSet"))
