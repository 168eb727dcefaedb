from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.costs import CostPeriod, DateRange
from app.schemas.inventory import (
    ComputeInstance,
    DatabaseInstance,
    LoadBalancer,
    ResourceKind,
    StorageBucket,
)
from app.shared.core.constants import CostService


class Domain(str, Enum):
    """Slices of account data a question can ask about."""

    COST = "cost"
    COMPUTE = "compute"
    STORAGE = "storage"
    DATABASE = "database"
    LOAD_BALANCER = "load_balancer"


INVENTORY_DOMAINS: Dict[Domain, ResourceKind] = {
    Domain.COMPUTE: ResourceKind.COMPUTE,
    Domain.STORAGE: ResourceKind.STORAGE,
    Domain.DATABASE: ResourceKind.DATABASE,
    Domain.LOAD_BALANCER: ResourceKind.LOAD_BALANCER,
}


class CostScope(str, Enum):
    """Which Cost Explorer SERVICE filter a cost question resolves to."""

    ALL = "all"
    DATABASE = "database"
    COMPUTE = "compute"
    STORAGE = "storage"

    @property
    def service(self) -> Optional[str]:
        return {
            CostScope.DATABASE: CostService.DATABASE.value,
            CostScope.COMPUTE: CostService.COMPUTE.value,
            CostScope.STORAGE: CostService.STORAGE.value,
        }.get(self)


class QueryClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    domains: FrozenSet[Domain] = frozenset()
    cost_scope: Optional[CostScope] = None
    date_range: Optional[DateRange] = None

    @property
    def inventory_kinds(self) -> List[ResourceKind]:
        return [kind for domain, kind in INVENTORY_DOMAINS.items() if domain in self.domains]


class QueryContext(BaseModel):
    """
    Data gathered for a single question. Domains that were not selected stay
    None and are left out of the payload entirely; failed ones are listed in
    `errors`.
    """

    query: str
    classification: QueryClassification
    captured_at: datetime
    costs: Optional[List[CostPeriod]] = None
    database_costs: Optional[List[CostPeriod]] = None
    compute: Optional[List[ComputeInstance]] = None
    storage: Optional[List[StorageBucket]] = None
    database: Optional[List[DatabaseInstance]] = None
    load_balancers: Optional[List[LoadBalancer]] = None
    errors: Dict[str, str] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"timestamp": self.captured_at.isoformat()}
        for key in (
            "costs",
            "database_costs",
            "compute",
            "storage",
            "database",
            "load_balancers",
        ):
            items = getattr(self, key)
            if items is not None:
                payload[key] = [item.model_dump(mode="json") for item in items]
        if self.errors:
            payload["errors"] = dict(self.errors)
        return payload


class AssistantAnswer(BaseModel):
    answer: str
    inventory: Dict[str, Any]
    error: Optional[str] = None
    error_code: Optional[str] = None
