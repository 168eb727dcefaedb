from .query_audit import QueryAuditLogger

__all__ = ["QueryAuditLogger"]
