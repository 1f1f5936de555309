"""
Logging utilities for the follow-graph crawler.

Provides structured logging with JSON output for better observability.
"""

import logging
import sys
from typing import Any, List

import structlog


def setup_crawler_logger(name: str, level: str = "INFO", json_logs: bool = True) -> structlog.BoundLogger:
    """
    Set up structured logging for the crawler.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to output JSON format logs

    Returns:
        Configured structlog logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    if json_logs:
        processors += [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(name)


def get_crawler_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return structlog.get_logger(name)


class TraversalLoggerAdapter:
    """
    Logger adapter that adds traversal run context to all log messages.
    """

    def __init__(self, logger: structlog.BoundLogger, run_id: str):
        self.logger = logger.bind(run_id=run_id)
        self.run_id = run_id

    def log_item_started(self, handle: str, depth: int, worker_id: int, **kwargs: Any) -> None:
        """Log start of work on a frontier item"""
        self.logger.info("identity_started", handle=handle, depth=depth, worker_id=worker_id, **kwargs)

    def log_identity_persisted(self, handle: str, internal_id: int, depth: int, **kwargs: Any) -> None:
        """Log a successfully recorded identity"""
        self.logger.info("identity_persisted", handle=handle, internal_id=internal_id, depth=depth, **kwargs)

    def log_identity_abandoned(self, handle: str, stage: str, error_type: str, **kwargs: Any) -> None:
        """Log an identity dropped from exploration after a failure"""
        self.logger.warning("identity_abandoned", handle=handle, stage=stage, error_type=error_type, **kwargs)

    def log_edges_discovered(self, handle: str, depth: int, edge_count: int, **kwargs: Any) -> None:
        """Log a follow list handed to the aggregator"""
        self.logger.info("edges_discovered", handle=handle, depth=depth, edge_count=edge_count, **kwargs)

    def log_batch_aggregated(self, handle: str, admitted: int, duplicates: int, **kwargs: Any) -> None:
        """Log dedup results for one follow list"""
        self.logger.debug("batch_aggregated", handle=handle, admitted=admitted, duplicates=duplicates, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message"""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message"""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message"""
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message"""
        self.logger.debug(message, **kwargs)
