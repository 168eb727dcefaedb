import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from botocore.exceptions import ClientError

from app.modules.reporting.domain.cost_fetcher import (
    CostFetcher,
    month_range,
    previous_month_range,
    retention_boundary,
    shift_months,
)
from app.schemas.costs import DateRange
from app.shared.core.constants import CostService
from app.shared.core.exceptions import AdapterError, CostRangeError

NOW = datetime(2025, 3, 15, 9, 30, tzinfo=timezone.utc)


def _result(start, end, total=None, groups=None, estimated=False):
    result = {"TimePeriod": {"Start": start, "End": end}, "Estimated": estimated}
    if total is not None:
        result["Total"] = {"UnblendedCost": {"Amount": total, "Unit": "USD"}}
    else:
        result["Total"] = {}
    if groups is not None:
        result["Groups"] = [
            {"Keys": [key], "Metrics": {"UnblendedCost": {"Amount": amount, "Unit": "USD"}}}
            for key, amount in groups
        ]
    return result


@pytest.fixture
def fetcher(aws_provider):
    return CostFetcher(aws_provider, clock=lambda: NOW)


def test_month_helpers():
    assert shift_months(date(2025, 1, 31), -1) == date(2024, 12, 1)
    assert shift_months(date(2025, 11, 5), 2) == date(2026, 1, 1)
    assert month_range(2024, 12) == DateRange(start=date(2024, 12, 1), end=date(2025, 1, 1))
    assert previous_month_range(date(2025, 1, 20)) == DateRange(
        start=date(2024, 12, 1), end=date(2025, 1, 1)
    )
    assert retention_boundary(date(2025, 3, 15), 14) == date(2024, 1, 1)


@pytest.mark.asyncio
async def test_range_past_retention_rejected_before_any_call(fetcher, aws_provider, aws_clients):
    too_old = DateRange(start=date(2023, 12, 1), end=date(2024, 1, 1))

    with pytest.raises(CostRangeError) as exc_info:
        await fetcher.fetch(date_range=too_old)

    assert exc_info.value.status_code == 400
    assert exc_info.value.details["earliest_start"] == "2024-01-01"
    aws_provider.session.client.assert_not_called()
    assert "ce" not in aws_clients


@pytest.mark.asyncio
async def test_range_on_retention_boundary_is_allowed(fetcher, aws_clients):
    aws_clients["ce"].get_cost_and_usage.return_value = {"ResultsByTime": []}

    await fetcher.fetch(date_range=DateRange(start=date(2024, 1, 1), end=date(2024, 2, 1)))

    aws_clients["ce"].get_cost_and_usage.assert_awaited_once()


@pytest.mark.asyncio
async def test_default_range_is_previous_month(fetcher, aws_clients):
    ce = aws_clients["ce"]
    ce.get_cost_and_usage.return_value = {
        "ResultsByTime": [_result("2025-02-01", "2025-03-01", total="12.34")]
    }

    (period,) = await fetcher.fetch()

    kwargs = ce.get_cost_and_usage.await_args.kwargs
    assert kwargs["TimePeriod"] == {"Start": "2025-02-01", "End": "2025-03-01"}
    assert kwargs["Granularity"] == "MONTHLY"
    assert kwargs["Metrics"] == ["UnblendedCost"]
    assert "Filter" not in kwargs
    assert period.amount == Decimal("12.34")
    assert period.start == date(2025, 2, 1)


@pytest.mark.asyncio
async def test_service_filter_is_sent(fetcher, aws_clients):
    ce = aws_clients["ce"]
    ce.get_cost_and_usage.return_value = {"ResultsByTime": []}

    await fetcher.fetch(service=CostService.COMPUTE.value)

    assert ce.get_cost_and_usage.await_args.kwargs["Filter"] == {
        "Dimensions": {"Key": "SERVICE", "Values": ["Amazon Elastic Compute Cloud - Compute"]}
    }


@pytest.mark.asyncio
async def test_total_is_preferred_over_first_group(fetcher, aws_clients):
    aws_clients["ce"].get_cost_and_usage.return_value = {
        "ResultsByTime": [
            _result("2025-02-01", "2025-03-01", total="100", groups=[("EC2", "40"), ("S3", "60")])
        ]
    }

    (period,) = await fetcher.fetch()

    assert period.amount == Decimal("100")


@pytest.mark.asyncio
async def test_first_group_used_only_without_total(fetcher, aws_clients):
    aws_clients["ce"].get_cost_and_usage.return_value = {
        "ResultsByTime": [
            _result("2025-01-01", "2025-02-01", groups=[("EC2", "40"), ("S3", "60")]),
            _result("2025-02-01", "2025-03-01", total="7.5", estimated=True),
            _result("2024-12-01", "2025-01-01"),
        ]
    }

    periods = await fetcher.fetch(
        date_range=DateRange(start=date(2024, 12, 1), end=date(2025, 3, 1))
    )

    assert [p.amount for p in periods] == [Decimal("40"), Decimal("7.5"), Decimal("0")]
    assert periods[1].estimated is True


@pytest.mark.asyncio
async def test_results_are_collected_across_pages(fetcher, aws_clients):
    ce = aws_clients["ce"]
    ce.get_cost_and_usage.side_effect = [
        {"ResultsByTime": [_result("2025-01-01", "2025-02-01", total="1")], "NextPageToken": "p2"},
        {"ResultsByTime": [_result("2025-02-01", "2025-03-01", total="2")]},
    ]

    periods = await fetcher.fetch(
        date_range=DateRange(start=date(2025, 1, 1), end=date(2025, 3, 1))
    )

    assert [p.amount for p in periods] == [Decimal("1"), Decimal("2")]
    assert ce.get_cost_and_usage.await_args_list[1].kwargs["NextPageToken"] == "p2"


@pytest.mark.asyncio
async def test_cost_explorer_errors_become_adapter_errors(fetcher, aws_clients):
    aws_clients["ce"].get_cost_and_usage.side_effect = ClientError(
        {"Error": {"Code": "DataUnavailableException", "Message": "no data"}},
        "GetCostAndUsage",
    )

    with pytest.raises(AdapterError) as exc_info:
        await fetcher.fetch()

    assert exc_info.value.code == "DataUnavailableException"
