"""
Core types for the follow-graph traversal engine.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Platform handle uniquely identifying a graph node
IdentityKey = str


class TraversalStatus(str, Enum):
    """Lifecycle of a single traversal run"""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class CrawlErrorType(str, Enum):
    """Types of per-identity failures"""

    FETCH_ERROR = "fetch_error"
    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    PERSISTENCE_ERROR = "persistence_error"
    UNKNOWN = "unknown"


class CrawlStage(str, Enum):
    """Step of the worker pipeline where a failure happened"""

    FETCH_PROFILE = "fetch_profile"
    PERSIST_IDENTITY = "persist_identity"
    FETCH_EDGES = "fetch_edges"
    PERSIST_EDGES = "persist_edges"


class WorkItem(BaseModel):
    """Pending identity on the frontier"""

    model_config = ConfigDict(frozen=True)

    key: IdentityKey
    depth: int = Field(0, ge=0)


class EdgeBatch(BaseModel):
    """Follow list of one processed identity, handed to the edge aggregator"""

    model_config = ConfigDict(frozen=True)

    source_key: IdentityKey
    source_internal_id: int
    parent_depth: int = Field(0, ge=0)
    targets: List[IdentityKey] = Field(default_factory=list)


class TraversalStats(BaseModel):
    """Statistics for a traversal run"""

    run_id: str = ""
    status: TraversalStatus = TraversalStatus.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    items_processed: int = 0
    identities_persisted: int = 0
    identities_explored: int = 0
    batches_aggregated: int = 0
    edges_discovered: int = 0
    identities_admitted: int = 0
    duplicate_targets: int = 0
    max_depth_reached: int = 0
    errors_by_type: Dict[str, int] = Field(default_factory=dict)

    def mark_started(self, run_id: str) -> None:
        self.run_id = run_id
        self.status = TraversalStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

    def mark_finished(self) -> None:
        self.status = TraversalStatus.TERMINATED
        self.finished_at = datetime.now(timezone.utc)

    def record_error(self, error_type: CrawlErrorType) -> None:
        self.errors_by_type[error_type.value] = self.errors_by_type.get(error_type.value, 0) + 1

    @property
    def failures(self) -> int:
        return sum(self.errors_by_type.values())

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def get_summary(self) -> Dict[str, object]:
        """Get summary statistics for reporting"""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "duration_seconds": self.duration_seconds,
            "items_processed": self.items_processed,
            "identities_persisted": self.identities_persisted,
            "identities_explored": self.identities_explored,
            "edges_discovered": self.edges_discovered,
            "identities_admitted": self.identities_admitted,
            "duplicate_targets": self.duplicate_targets,
            "max_depth_reached": self.max_depth_reached,
            "failures": self.failures,
            "errors_by_type": dict(self.errors_by_type),
        }
