"""
Resource Inventory Schemas

Immutable per-scan snapshots of the account's compute, storage, database and
load-balancing resources. Nothing here tracks identity across scans.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ResourceKind(str, Enum):
    COMPUTE = "compute"
    STORAGE = "storage"
    DATABASE = "database"
    LOAD_BALANCER = "load_balancer"


# Keys used for each kind in snapshot payloads and normalized answers
KIND_PAYLOAD_KEYS: Dict[ResourceKind, str] = {
    ResourceKind.COMPUTE: "compute",
    ResourceKind.STORAGE: "storage",
    ResourceKind.DATABASE: "database",
    ResourceKind.LOAD_BALANCER: "load_balancers",
}


class MetricSample(BaseModel):
    """
    Latest datapoint of one metric inside a fixed observation window.

    `value` stays None when no datapoint fell into the window or when the
    fetch failed (then `error` says why); it is never filled in.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    value: Optional[float] = None
    unit: Optional[str] = None
    statistic: str
    window_start: datetime
    window_end: datetime
    period_seconds: int
    timestamp: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return self.value is not None


class _ResourceBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    state: Optional[str] = None
    region: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)


class ComputeInstance(_ResourceBase):
    kind: Literal[ResourceKind.COMPUTE] = ResourceKind.COMPUTE
    name: str = ""
    instance_type: Optional[str] = None
    availability_zone: Optional[str] = None
    private_ip: Optional[str] = None
    public_ip: Optional[str] = None
    launch_time: Optional[datetime] = None
    platform: str = "linux"
    root_device_type: Optional[str] = None
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None


class StorageBucket(_ResourceBase):
    kind: Literal[ResourceKind.STORAGE] = ResourceKind.STORAGE
    creation_date: Optional[datetime] = None
    versioning: bool = False
    website_enabled: bool = False


class DatabaseEndpoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: Optional[str] = None
    port: Optional[int] = None


class DatabaseInstance(_ResourceBase):
    kind: Literal[ResourceKind.DATABASE] = ResourceKind.DATABASE
    engine: Optional[str] = None
    engine_version: Optional[str] = None
    instance_class: Optional[str] = None
    multi_az: bool = False
    storage_type: Optional[str] = None
    allocated_storage_gb: Optional[int] = None
    endpoint: Optional[DatabaseEndpoint] = None
    availability_zone: Optional[str] = None
    publicly_accessible: bool = False
    storage_encrypted: bool = False
    metrics: Dict[str, MetricSample] = Field(default_factory=dict)


class LoadBalancer(_ResourceBase):
    kind: Literal[ResourceKind.LOAD_BALANCER] = ResourceKind.LOAD_BALANCER
    name: str = ""
    dns_name: Optional[str] = None
    type: Optional[str] = None
    type_label: str = "Load Balancer"
    scheme: Optional[str] = None
    vpc_id: Optional[str] = None
    created_time: Optional[datetime] = None


ResourceRecord = Annotated[
    Union[ComputeInstance, StorageBucket, DatabaseInstance, LoadBalancer],
    Field(discriminator="kind"),
]


class ScanFailure(BaseModel):
    """Explicit marker for a resource kind whose listing call failed outright."""

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    error: str
    code: str = "scan_failed"


class InventorySnapshot(BaseModel):
    """
    One read of the account, timestamped at scan start.

    Every scanned kind lands in exactly one of `records` (possibly an empty
    list) or `failures`, so "zero resources" and "scan failed" never look alike.
    """

    captured_at: datetime
    records: Dict[ResourceKind, List[ResourceRecord]] = Field(default_factory=dict)
    failures: Dict[ResourceKind, ScanFailure] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _kinds_are_disjoint(self) -> "InventorySnapshot":
        overlap = set(self.records) & set(self.failures)
        if overlap:
            raise ValueError(
                f"kinds reported as both scanned and failed: {sorted(k.value for k in overlap)}"
            )
        return self

    @property
    def kinds(self) -> List[ResourceKind]:
        return [k for k in ResourceKind if k in self.records or k in self.failures]

    def is_failed(self, kind: ResourceKind) -> bool:
        return kind in self.failures

    def get(self, kind: ResourceKind) -> Optional[List[ResourceRecord]]:
        """Records for `kind`, or None when that kind failed or was not scanned."""
        return self.records.get(kind)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"captured_at": self.captured_at.isoformat()}
        for kind in self.kinds:
            key = KIND_PAYLOAD_KEYS[kind]
            if kind in self.records:
                payload[key] = [
                    record.model_dump(mode="json") for record in self.records[kind]
                ]
        if self.failures:
            payload["errors"] = {
                KIND_PAYLOAD_KEYS[kind]: failure.error
                for kind, failure in self.failures.items()
            }
        return payload
