import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from botocore.exceptions import ClientError

from app.modules.inventory.adapters.aws.metrics import MetricReducer
from app.shared.core.constants import RDS_METRICS

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def reducer(aws_provider):
    return MetricReducer(aws_provider, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_latest_keeps_newest_datapoint(reducer):
    cloudwatch = AsyncMock()
    cloudwatch.get_metric_statistics.return_value = {
        "Datapoints": [
            {"Timestamp": NOW - timedelta(minutes=10), "Average": 40.0, "Unit": "Percent"},
            {"Timestamp": NOW - timedelta(minutes=5), "Average": 55.5, "Unit": "Percent"},
            {"Timestamp": NOW - timedelta(minutes=30), "Average": 99.0, "Unit": "Percent"},
        ]
    }

    sample = await reducer.latest(cloudwatch, "db-1", "CPUUtilization", "Average")

    assert sample.value == 55.5
    assert sample.unit == "Percent"
    assert sample.timestamp == NOW - timedelta(minutes=5)
    kwargs = cloudwatch.get_metric_statistics.await_args.kwargs
    assert kwargs["Namespace"] == "AWS/RDS"
    assert kwargs["Dimensions"] == [{"Name": "DBInstanceIdentifier", "Value": "db-1"}]
    assert kwargs["Period"] == 300
    assert kwargs["StartTime"] == NOW - timedelta(hours=1)
    assert kwargs["EndTime"] == NOW
    assert kwargs["Statistics"] == ["Average"]


@pytest.mark.asyncio
async def test_latest_with_no_datapoints_has_no_value(reducer):
    cloudwatch = AsyncMock()
    cloudwatch.get_metric_statistics.return_value = {"Datapoints": []}

    sample = await reducer.latest(cloudwatch, "db-1", "ReadIOPS", "Average")

    assert sample.value is None
    assert sample.has_data is False
    assert sample.error is None
    assert sample.window_start == NOW - timedelta(hours=1)


@pytest.mark.asyncio
async def test_metric_set_isolates_single_metric_failure(reducer):
    cloudwatch = AsyncMock()

    async def _stats(**kwargs):
        if kwargs["MetricName"] == "FreeableMemory":
            raise ClientError({"Error": {"Code": "Throttling", "Message": "slow"}}, "GetMetricStatistics")
        return {"Datapoints": [{"Timestamp": NOW, "Average": 1.0, "Unit": "Count"}]}

    cloudwatch.get_metric_statistics.side_effect = _stats

    samples = await reducer.fetch_metric_set(cloudwatch, "db-1")

    assert set(samples) == {
        "CPUUtilization",
        "FreeableMemory",
        "ReadIOPS",
        "WriteIOPS",
        "DatabaseConnections",
        "FreeStorageSpace",
    }
    assert samples["FreeableMemory"].value is None
    assert "Throttling" in samples["FreeableMemory"].error
    assert samples["CPUUtilization"].value == 1.0
    assert samples["CPUUtilization"].error is None


@pytest.mark.asyncio
async def test_fetch_for_entities_marks_every_sample_when_client_fails(aws_provider):
    aws_provider.session.client.side_effect = RuntimeError("no cloudwatch endpoint")
    reducer = MetricReducer(aws_provider, clock=lambda: NOW)

    metrics = await reducer.fetch_for_entities(["db-1", "db-2"])

    assert set(metrics) == {"db-1", "db-2"}
    for samples in metrics.values():
        assert all(s.value is None and s.error for s in samples.values())


@pytest.mark.asyncio
async def test_fetch_for_entities_without_entities_skips_client(aws_provider):
    reducer = MetricReducer(aws_provider, clock=lambda: NOW)

    assert await reducer.fetch_for_entities([]) == {}
    aws_provider.session.client.assert_not_called()


@pytest.mark.asyncio
async def test_stalled_metric_does_not_hold_back_siblings(reducer):
    never = asyncio.Event()
    siblings_done = asyncio.Event()
    answered = []

    async def _statistics(**kwargs):
        if kwargs["MetricName"] == "CPUUtilization":
            await never.wait()
        answered.append(kwargs["MetricName"])
        if len(answered) == len(RDS_METRICS) - 1:
            siblings_done.set()
        return {"Datapoints": [{"Timestamp": NOW, "Average": 1.0, "Unit": "Count"}]}

    cloudwatch = AsyncMock()
    cloudwatch.get_metric_statistics.side_effect = _statistics

    fetch = asyncio.create_task(reducer.fetch_metric_set(cloudwatch, "db-1"))
    try:
        await asyncio.wait_for(siblings_done.wait(), timeout=1)
        assert sorted(answered) == sorted(
            name for name, _ in RDS_METRICS if name != "CPUUtilization"
        )
        assert not fetch.done()
    finally:
        fetch.cancel()
        with pytest.raises(asyncio.CancelledError):
            await fetch
