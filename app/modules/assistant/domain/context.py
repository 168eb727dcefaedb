import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from app.modules.assistant.domain.classifier import QueryClassifier
from app.modules.inventory.domain.service import ScanOrchestrator
from app.modules.reporting.domain.cost_fetcher import CostFetcher
from app.schemas.assistant import CostScope, Domain, QueryClassification, QueryContext
from app.schemas.costs import CostPeriod
from app.schemas.inventory import KIND_PAYLOAD_KEYS, InventorySnapshot
from app.shared.core.exceptions import CostRangeError

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cost_field(scope: Optional[CostScope]) -> str:
    return "database_costs" if scope == CostScope.DATABASE else "costs"


class ContextAssembler:
    """
    Gathers only the data a classified question needs.

    Cost and inventory retrieval run concurrently; a failure in either is
    recorded under `errors` for that field and the rest of the context is
    still returned.
    """

    def __init__(
        self,
        classifier: QueryClassifier,
        orchestrator: ScanOrchestrator,
        cost_fetcher: CostFetcher,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.classifier = classifier
        self.orchestrator = orchestrator
        self.cost_fetcher = cost_fetcher
        self._clock = clock

    async def assemble(self, query: str) -> QueryContext:
        classification = self.classifier.classify(query)
        captured_at = self._clock()
        logger.info(
            "query_classified",
            domains=sorted(d.value for d in classification.domains),
            cost_scope=classification.cost_scope.value if classification.cost_scope else None,
        )

        costs, snapshot = await asyncio.gather(
            self._costs(classification), self._inventory(classification)
        )

        fields: Dict[str, object] = {}
        errors: Dict[str, str] = {}

        if costs is not None:
            key = cost_field(classification.cost_scope)
            periods, error = costs
            if error is None:
                fields[key] = periods
            else:
                errors[key] = error

        if snapshot is not None:
            captured_at = snapshot.captured_at
            for kind in classification.inventory_kinds:
                key = KIND_PAYLOAD_KEYS[kind]
                if snapshot.is_failed(kind):
                    errors[key] = snapshot.failures[kind].error
                else:
                    fields[key] = snapshot.get(kind) or []

        return QueryContext(
            query=query,
            classification=classification,
            captured_at=captured_at,
            errors=errors,
            **fields,
        )

    async def _costs(
        self, classification: QueryClassification
    ) -> Optional[Tuple[Optional[List[CostPeriod]], Optional[str]]]:
        if Domain.COST not in classification.domains:
            return None
        scope = classification.cost_scope or CostScope.ALL
        try:
            periods = await self.cost_fetcher.fetch(
                service=scope.service, date_range=classification.date_range
            )
        except CostRangeError as e:
            logger.info("cost_range_rejected", error=e.message, **e.details)
            return None, e.message
        except Exception as e:
            logger.error("cost_context_failed", scope=scope.value, error=str(e))
            return None, str(e)
        return periods, None

    async def _inventory(
        self, classification: QueryClassification
    ) -> Optional[InventorySnapshot]:
        kinds = classification.inventory_kinds
        if not kinds:
            return None
        return await self.orchestrator.scan(kinds)
