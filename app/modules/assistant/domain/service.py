from typing import Any, Dict, Optional

import structlog

from app.modules.assistant.domain.connections import verify_connections
from app.modules.assistant.domain.context import ContextAssembler
from app.modules.assistant.domain.responder import NarrativeResponder
from app.modules.audit.query_audit import QueryAuditLogger
from app.modules.inventory.domain.service import ScanOrchestrator
from app.schemas.assistant import AssistantAnswer, QueryContext
from app.schemas.inventory import InventorySnapshot
from app.shared.adapters.aws_utils import AWSClientProvider

logger = structlog.get_logger()


class AssistantService:
    """
    Answers natural-language questions about the account.

    Flow: classify, gather only the data the question needs, ask the chat
    model, then append the exchange to the audit trail.
    """

    def __init__(
        self,
        assembler: ContextAssembler,
        responder: NarrativeResponder,
        orchestrator: ScanOrchestrator,
        audit_logger: Optional[QueryAuditLogger] = None,
    ):
        self.assembler = assembler
        self.responder = responder
        self.orchestrator = orchestrator
        self.audit_logger = audit_logger

    @property
    def provider(self) -> AWSClientProvider:
        return self.orchestrator.provider

    async def answer(self, query: str, client_id: Optional[str] = None) -> AssistantAnswer:
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        context = await self.assembler.assemble(query)
        result = await self.responder.respond(context)
        await self._record(client_id, query, result, context)
        return result

    async def scan_inventory(self) -> InventorySnapshot:
        return await self.orchestrator.scan_all()

    async def verify_connections(self) -> Dict[str, Dict[str, Any]]:
        return await verify_connections(self.provider, lambda: self.responder.llm)

    async def _record(
        self,
        client_id: Optional[str],
        query: str,
        result: AssistantAnswer,
        context: QueryContext,
    ) -> None:
        if self.audit_logger is None:
            return

        metadata: Dict[str, Any] = {
            "domains": sorted(d.value for d in context.classification.domains),
            "errors": sorted(context.errors),
            "llm_failed": result.error is not None,
        }
        if result.error_code is not None:
            metadata["error_code"] = result.error_code
        if context.classification.cost_scope is not None:
            metadata["cost_scope"] = context.classification.cost_scope.value
        try:
            await self.audit_logger.record(
                client_id=client_id,
                query=query,
                response=result.answer,
                metadata=metadata,
            )
        except Exception as e:
            # Audit failures never change the answer.
            logger.warning("query_audit_failed", client_id=client_id, error=str(e))
