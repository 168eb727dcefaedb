"""
Cost Explorer Fetcher

Retrieves monthly spend from AWS Cost Explorer, optionally filtered to a
single service. Ranges are half-open `[start, end)` and must not start
before the retention boundary; that check happens before any network call.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.schemas.costs import CostPeriod, DateRange
from app.shared.adapters.aws_pagination import iter_token_pages
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.exceptions import AdapterError, CostRangeError
from app.shared.core.retry import with_aws_retry

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def shift_months(day: date, months: int) -> date:
    """First day of the month `months` away from `day`'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_range(year: int, month: int) -> DateRange:
    start = date(year, month, 1)
    return DateRange(start=start, end=shift_months(start, 1))


def previous_month_range(today: date) -> DateRange:
    return DateRange(start=shift_months(today, -1), end=shift_months(today, 0))


def retention_boundary(today: date, months: int) -> date:
    return shift_months(today, -months)


class CostFetcher:
    def __init__(
        self,
        provider: AWSClientProvider,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        self.settings = provider.settings
        self._clock = clock

    def default_range(self) -> DateRange:
        return previous_month_range(self._clock().date())

    def ensure_within_retention(self, date_range: DateRange) -> None:
        boundary = retention_boundary(
            self._clock().date(), self.settings.COST_RETENTION_MONTHS
        )
        if date_range.start < boundary:
            raise CostRangeError(
                f"Cost data is only available from {boundary.isoformat()} onwards "
                f"(requested start {date_range.start.isoformat()})",
                details={
                    "requested_start": date_range.start.isoformat(),
                    "earliest_start": boundary.isoformat(),
                },
            )

    async def fetch(
        self,
        service: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ) -> List[CostPeriod]:
        """
        Monthly cost periods in chronological order, defaulting to the
        previous calendar month. Raises CostRangeError for ranges past
        retention and AdapterError when Cost Explorer fails.
        """
        resolved = date_range or self.default_range()
        self.ensure_within_retention(resolved)

        params: Dict[str, Any] = {
            "TimePeriod": {
                "Start": resolved.start.isoformat(),
                "End": resolved.end.isoformat(),
            },
            "Granularity": "MONTHLY",
            "Metrics": [self.settings.COST_METRIC],
        }
        if service:
            params["Filter"] = {
                "Dimensions": {"Key": "SERVICE", "Values": [service]}
            }

        try:
            async with self.provider.client(
                "ce", region=self.settings.COST_EXPLORER_REGION
            ) as ce:
                results = await self._results_by_time(ce, params)
        except (ClientError, BotoCoreError) as e:
            logger.error("cost_fetch_failed", service=service, error=str(e))
            code = "cost_fetch_failed"
            if isinstance(e, ClientError):
                code = e.response.get("Error", {}).get("Code", code)
            raise AdapterError(f"Cost Explorer request failed: {e}", code=code) from e

        periods = [self._to_period(result, service) for result in results]
        logger.info(
            "cost_fetch_complete",
            service=service,
            start=resolved.start.isoformat(),
            end=resolved.end.isoformat(),
            periods=len(periods),
        )
        return periods

    @with_aws_retry
    async def _results_by_time(self, ce: Any, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        async for page in iter_token_pages(
            ce.get_cost_and_usage,
            operation_name="ce.get_cost_and_usage",
            request_token_key="NextPageToken",
            response_token_key="NextPageToken",
            request_kwargs=params,
            max_pages=self.settings.SCAN_MAX_PAGES,
        ):
            results.extend(page.get("ResultsByTime", []))
        return results

    def _to_period(self, result: Dict[str, Any], service: Optional[str]) -> CostPeriod:
        """
        A period's amount is its reported total. Only when the total is
        missing does the first group's amount stand in for it.
        """
        metric = self.settings.COST_METRIC
        cost = (result.get("Total") or {}).get(metric)
        if not cost or cost.get("Amount") is None:
            groups = result.get("Groups") or []
            cost = (groups[0].get("Metrics") or {}).get(metric) if groups else None

        amount = Decimal("0")
        unit = "USD"
        if cost:
            unit = cost.get("Unit") or unit
            try:
                amount = Decimal(str(cost.get("Amount", "0")))
            except InvalidOperation:
                logger.warning("cost_amount_unparseable", amount=cost.get("Amount"))

        time_period = result.get("TimePeriod", {})
        return CostPeriod(
            start=date.fromisoformat(time_period["Start"]),
            end=date.fromisoformat(time_period["End"]),
            amount=amount,
            unit=unit,
            estimated=bool(result.get("Estimated", False)),
            service=service,
        )
