"""Report query execution over the in-memory record snapshot."""

from src.queries.executor import ReportExecutor, ReportQueryError

__all__ = ["ReportExecutor", "ReportQueryError"]
