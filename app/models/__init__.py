from .query_history import QueryHistory

__all__ = ["QueryHistory"]
