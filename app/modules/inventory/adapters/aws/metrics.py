import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from app.schemas.inventory import MetricSample
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.constants import RDS_METRICS

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricReducer:
    """
    Reduces CloudWatch statistics to the single most recent datapoint per metric.

    All metrics fetched for one entity share one observation window, so the
    samples in a set are comparable with each other.
    """

    def __init__(
        self,
        provider: AWSClientProvider,
        namespace: str = "AWS/RDS",
        dimension_name: str = "DBInstanceIdentifier",
        metrics: Sequence[Tuple[str, str]] = tuple(RDS_METRICS),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        self.namespace = namespace
        self.dimension_name = dimension_name
        self.metrics = list(metrics)
        self._clock = clock

    def window(self) -> Tuple[datetime, datetime]:
        end = self._clock()
        start = end - timedelta(minutes=self.provider.settings.METRIC_WINDOW_MINUTES)
        return start, end

    async def latest(
        self,
        cloudwatch: Any,
        entity_id: str,
        metric_name: str,
        statistic: str,
        window: Optional[Tuple[datetime, datetime]] = None,
    ) -> MetricSample:
        """
        Fetch one metric and keep the datapoint with the greatest timestamp.
        An empty result is a sample with no value; API errors propagate.
        """
        start, end = window or self.window()
        period = self.provider.settings.METRIC_PERIOD_SECONDS
        response = await cloudwatch.get_metric_statistics(
            Namespace=self.namespace,
            MetricName=metric_name,
            Dimensions=[{"Name": self.dimension_name, "Value": entity_id}],
            StartTime=start,
            EndTime=end,
            Period=period,
            Statistics=[statistic],
        )
        sample = {
            "name": metric_name,
            "statistic": statistic,
            "window_start": start,
            "window_end": end,
            "period_seconds": period,
        }
        datapoints = response.get("Datapoints") or []
        if not datapoints:
            return MetricSample(**sample)

        newest = max(datapoints, key=lambda dp: dp["Timestamp"])
        value = newest.get(statistic)
        return MetricSample(
            **sample,
            value=float(value) if value is not None else None,
            unit=newest.get("Unit"),
            timestamp=newest["Timestamp"],
        )

    async def fetch_metric_set(
        self, cloudwatch: Any, entity_id: str
    ) -> Dict[str, MetricSample]:
        """Fetch every configured metric for one entity; failures stay per-metric."""
        window = self.window()

        async def _one(metric_name: str, statistic: str) -> MetricSample:
            try:
                return await self.latest(
                    cloudwatch, entity_id, metric_name, statistic, window=window
                )
            except Exception as e:
                logger.warning(
                    "metric_fetch_failed",
                    entity_id=entity_id,
                    metric=metric_name,
                    error=str(e),
                )
                return self._failed_sample(metric_name, statistic, window, e)

        samples = await asyncio.gather(
            *(_one(name, statistic) for name, statistic in self.metrics)
        )
        return {sample.name: sample for sample in samples}

    async def fetch_for_entities(
        self, entity_ids: Iterable[str]
    ) -> Dict[str, Dict[str, MetricSample]]:
        """
        Fetch metric sets for many entities over one CloudWatch client,
        bounded by ENRICHMENT_CONCURRENCY.
        """
        ids: List[str] = list(entity_ids)
        if not ids:
            return {}

        semaphore = asyncio.Semaphore(self.provider.settings.ENRICHMENT_CONCURRENCY)

        async def _bounded(cloudwatch: Any, entity_id: str) -> Dict[str, MetricSample]:
            async with semaphore:
                return await self.fetch_metric_set(cloudwatch, entity_id)

        try:
            async with self.provider.client("cloudwatch") as cloudwatch:
                sets = await asyncio.gather(*(_bounded(cloudwatch, i) for i in ids))
        except Exception as e:
            # Client could not be opened at all: every sample carries the error.
            logger.warning("metric_client_failed", namespace=self.namespace, error=str(e))
            window = self.window()
            return {
                entity_id: {
                    name: self._failed_sample(name, statistic, window, e)
                    for name, statistic in self.metrics
                }
                for entity_id in ids
            }
        return dict(zip(ids, sets))

    def _failed_sample(
        self,
        metric_name: str,
        statistic: str,
        window: Tuple[datetime, datetime],
        error: Exception,
    ) -> MetricSample:
        return MetricSample(
            name=metric_name,
            statistic=statistic,
            window_start=window[0],
            window_end=window[1],
            period_seconds=self.provider.settings.METRIC_PERIOD_SECONDS,
            error=str(error),
        )
