"""Observability helpers."""

from .logging import JsonFormatter, RequestIdFilter, configure_logging
from .queries import add_query_logger

__all__ = ["JsonFormatter", "RequestIdFilter", "configure_logging", "add_query_logger"]
