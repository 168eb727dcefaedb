from typing import Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.modules.assistant.domain.classifier import QueryClassifier
from app.modules.assistant.domain.context import ContextAssembler
from app.modules.assistant.domain.responder import NarrativeResponder
from app.modules.assistant.domain.service import AssistantService
from app.modules.audit.query_audit import QueryAuditLogger
from app.modules.inventory.domain.service import ScanOrchestrator
from app.modules.reporting.domain.cost_fetcher import CostFetcher
from app.shared.adapters.aws_utils import AWSClientProvider
from app.shared.core.config import Settings, get_settings
from app.shared.db.session import get_session_maker
from app.shared.llm.factory import LLMFactory

logger = structlog.get_logger()


def build_assistant(
    settings: Optional[Settings] = None,
    provider: Optional[AWSClientProvider] = None,
    llm: Optional[BaseChatModel] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AssistantService:
    """
    Wires the assistant once per process. Every collaborator can be
    passed in, which is how tests swap in fakes.
    """
    settings = settings or get_settings()
    provider = provider or AWSClientProvider.from_settings(settings)
    llm = llm or LLMFactory.create(
        provider=settings.LLM_PROVIDER,
        max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
    )

    orchestrator = ScanOrchestrator(provider)
    assembler = ContextAssembler(
        classifier=QueryClassifier(),
        orchestrator=orchestrator,
        cost_fetcher=CostFetcher(provider),
    )

    audit_logger = None
    if settings.AUDIT_ENABLED:
        audit_logger = QueryAuditLogger(session_maker or get_session_maker())

    logger.info(
        "assistant_built",
        region=provider.region,
        llm_provider=settings.LLM_PROVIDER,
        audit_enabled=audit_logger is not None,
    )
    return AssistantService(
        assembler=assembler,
        responder=NarrativeResponder(llm),
        orchestrator=orchestrator,
        audit_logger=audit_logger,
    )
