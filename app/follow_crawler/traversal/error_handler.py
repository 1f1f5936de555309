"""
Error classification for per-identity traversal failures.

Every failure is recoverable from the run's point of view: the identity is
abandoned for this run and traversal of the rest of the graph continues.
The handler decides how a failure is reported, not whether it is retried.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from aiohttp import ClientError, ServerTimeoutError
from pydantic import BaseModel, ValidationError

from ..core.exceptions import TraversalError
from ..core.types import CrawlErrorType, CrawlStage, IdentityKey

logger = logging.getLogger(__name__)


class ErrorClassification(BaseModel):
    """Classification of an error for reporting purposes"""

    error_type: CrawlErrorType
    stage: CrawlStage
    abandons_identity: bool
    description: str


class TraversalErrorHandler:
    """
    Classifies and records failures raised by fetchers and sinks.

    Failures during profile fetch, identity persistence and edge fetch
    abandon the identity. A failure to persist edges is logged but the
    follow list is still handed to the aggregator.
    """

    def __init__(self):
        self.stats: Dict[str, Any] = {
            "errors_handled": 0,
            "identities_abandoned": 0,
            "errors_by_type": {},
            "errors_by_stage": {},
        }

    def handle_error(
        self, error: Exception, key: IdentityKey, stage: CrawlStage, worker_id: Optional[int] = None
    ) -> ErrorClassification:
        """
        Classify, log and count a failure.

        Args:
            error: The exception that occurred
            key: Identity being processed
            stage: Worker pipeline step that failed
            worker_id: Worker that observed the failure (for logging)

        Returns:
            ErrorClassification for the failure
        """
        classification = self.classify_error(error, stage)

        self.stats["errors_handled"] += 1
        self._count("errors_by_type", classification.error_type.value)
        self._count("errors_by_stage", stage.value)
        if classification.abandons_identity:
            self.stats["identities_abandoned"] += 1

        logger.warning(
            f"Failed to {stage.value.replace('_', ' ')} for {key}: {classification.description}",
            extra={
                "handle": key,
                "stage": stage.value,
                "worker_id": worker_id,
                "error_type": classification.error_type.value,
                "abandoned": classification.abandons_identity,
            },
        )
        return classification

    def classify_error(self, error: Exception, stage: CrawlStage) -> ErrorClassification:
        """
        Classify an error by type and pipeline stage.

        Args:
            error: Exception to classify
            stage: Worker pipeline step that raised it

        Returns:
            ErrorClassification with handling details
        """
        abandons = stage is not CrawlStage.PERSIST_EDGES

        if isinstance(error, TraversalError):
            error_type = error.error_type
            description = str(error)
        elif isinstance(error, ValidationError):
            error_type = CrawlErrorType.PARSE_ERROR
            description = f"Malformed data: {error.error_count()} validation errors"
        elif isinstance(error, (TimeoutError, ServerTimeoutError, asyncio.TimeoutError)):
            error_type = CrawlErrorType.TIMEOUT
            description = f"Timeout error: {str(error) or type(error).__name__}"
        elif isinstance(error, (ClientError, ConnectionError)):
            error_type = CrawlErrorType.CONNECTION_ERROR
            description = f"Network/connection error: {str(error)}"
        else:
            error_type = CrawlErrorType.UNKNOWN
            description = f"Unknown error: {type(error).__name__}: {str(error)}"

        # Anything raised by a sink is a persistence failure regardless of its class
        if stage in (CrawlStage.PERSIST_IDENTITY, CrawlStage.PERSIST_EDGES) and error_type not in (
            CrawlErrorType.PERSISTENCE_ERROR,
            CrawlErrorType.TIMEOUT,
        ):
            error_type = CrawlErrorType.PERSISTENCE_ERROR

        return ErrorClassification(
            error_type=error_type,
            stage=stage,
            abandons_identity=abandons,
            description=description,
        )

    def _count(self, bucket: str, name: str) -> None:
        counts = self.stats[bucket]
        counts[name] = counts.get(name, 0) + 1

    def get_stats(self) -> Dict[str, Any]:
        """Get error handler statistics"""
        return {
            "errors_handled": self.stats["errors_handled"],
            "identities_abandoned": self.stats["identities_abandoned"],
            "errors_by_type": dict(self.stats["errors_by_type"]),
            "errors_by_stage": dict(self.stats["errors_by_stage"]),
        }

    def reset_stats(self):
        """Reset error handler statistics"""
        self.stats = {
            "errors_handled": 0,
            "identities_abandoned": 0,
            "errors_by_type": {},
            "errors_by_stage": {},
        }
