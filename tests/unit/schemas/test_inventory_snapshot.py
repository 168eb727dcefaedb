import pytest
from datetime import date, datetime, timezone
from pydantic import ValidationError

from app.schemas.assistant import CostScope
from app.schemas.costs import DateRange
from app.schemas.inventory import (
    ComputeInstance,
    InventorySnapshot,
    ResourceKind,
    ScanFailure,
)

NOW = datetime(2025, 6, 10, tzinfo=timezone.utc)


def test_snapshot_rejects_kind_both_scanned_and_failed():
    with pytest.raises(ValidationError, match="both scanned and failed"):
        InventorySnapshot(
            captured_at=NOW,
            records={ResourceKind.COMPUTE: []},
            failures={ResourceKind.COMPUTE: ScanFailure(kind=ResourceKind.COMPUTE, error="x")},
        )


def test_snapshot_distinguishes_empty_from_failed_and_unscanned():
    snapshot = InventorySnapshot(
        captured_at=NOW,
        records={ResourceKind.COMPUTE: []},
        failures={ResourceKind.STORAGE: ScanFailure(kind=ResourceKind.STORAGE, error="denied")},
    )

    assert snapshot.get(ResourceKind.COMPUTE) == []
    assert snapshot.get(ResourceKind.STORAGE) is None
    assert snapshot.get(ResourceKind.DATABASE) is None
    assert snapshot.kinds == [ResourceKind.COMPUTE, ResourceKind.STORAGE]


def test_snapshot_records_are_discriminated_by_kind():
    snapshot = InventorySnapshot.model_validate(
        {
            "captured_at": NOW.isoformat(),
            "records": {"compute": [{"kind": "compute", "id": "i-1", "name": "web"}]},
        }
    )

    (record,) = snapshot.records[ResourceKind.COMPUTE]
    assert isinstance(record, ComputeInstance)
    assert record.name == "web"


def test_date_range_must_be_ordered():
    with pytest.raises(ValidationError):
        DateRange(start=date(2025, 2, 1), end=date(2025, 2, 1))


def test_cost_scope_service_names():
    assert CostScope.DATABASE.service == "Amazon Relational Database Service"
    assert CostScope.STORAGE.service == "Amazon Simple Storage Service"
    assert CostScope.ALL.service is None
