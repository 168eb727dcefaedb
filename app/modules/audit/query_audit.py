from typing import Any, Dict, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.query_history import QueryHistory
from app.shared.core.logging import audit_log

logger = structlog.get_logger()


class QueryAuditLogger:
    """
    Writes one `QueryHistory` row per answered question.

    Usage:
        audit = QueryAuditLogger(session_maker)
        await audit.record(
            client_id="client-1",
            query="how many buckets do we have?",
            response="You have 3 buckets...",
            metadata={"domains": ["storage"], "errors": [], "llm_failed": False},
        )
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def record(
        self,
        client_id: Optional[str],
        query: str,
        response: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> QueryHistory:
        entry = QueryHistory(
            client_id=client_id,
            query=query,
            response=response,
            query_metadata=metadata or {},
        )
        async with self.session_maker() as session:
            session.add(entry)
            await session.flush()
            await session.commit()

        audit_log("query_answered", client_id or "anonymous", metadata)
        logger.debug("query_history_recorded", entry_id=str(entry.id))
        return entry
