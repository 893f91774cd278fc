"""Query execution package."""

from finance_tracker.queries.executor import GroupedEntriesExecutor, QueryExecutionError

__all__ = ["GroupedEntriesExecutor", "QueryExecutionError"]
