"""
Result models for the trackdown index.

Value objects returned by the index, relationship and transition managers.
They are plain pydantic models so front ends can render them or dump them
as JSON.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from trackdown.utils import parse_timestamp

from .base import ItemRecord, ItemType


# =============================================================================
# Index health
# =============================================================================


class IndexedEntry(BaseModel):
    """An id present in the index."""

    type: ItemType
    id: str
    file_path: str


class DiskEntry(BaseModel):
    """A document file present on disk."""

    type: ItemType
    file_path: str


class HealthStats(BaseModel):
    file_count: int = 0
    indexed_count: int = 0
    missing_count: int = 0
    orphaned_count: int = 0


class HealthReport(BaseModel):
    """Outcome of comparing the index against the documents on disk.

    - orphaned: indexed ids whose backing document is gone
    - missing: documents on disk that have no index entry
    """

    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    stats: HealthStats = Field(default_factory=HealthStats)
    orphaned: List[IndexedEntry] = Field(default_factory=list)
    missing: List[DiskEntry] = Field(default_factory=list)


class RepairReport(BaseModel):
    """What auto-repair did and whether the index is healthy afterwards."""

    repaired: bool
    actions: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class HealthCheckOutcome(BaseModel):
    """Health check run by a front end, with its exit code."""

    exit_code: int
    health: Optional[HealthReport] = None
    repair: Optional[RepairReport] = None
    rebuilt: bool = False


class IndexStats(BaseModel):
    """Index statistics and cache information."""

    total_epics: int = 0
    total_issues: int = 0
    total_tasks: int = 0
    total_prs: int = 0
    last_updated: Optional[datetime] = None
    last_full_scan: Optional[datetime] = None
    last_rebuild_ms: float = 0.0
    index_file_exists: bool = False
    index_file_modified: Optional[datetime] = None
    cache_hit: bool = False
    generation: int = 0


class ProjectOverview(BaseModel):
    """Aggregate counts over every indexed item."""

    total_items: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_type: Dict[str, int] = Field(default_factory=dict)
    completion_rate: int = 0
    recent_activity: List[ItemRecord] = Field(default_factory=list)


# =============================================================================
# Relationships
# =============================================================================


class EpicHierarchy(BaseModel):
    epic: ItemRecord
    issues: List[ItemRecord] = Field(default_factory=list)
    tasks: List[ItemRecord] = Field(default_factory=list)
    prs: List[ItemRecord] = Field(default_factory=list)


class IssueHierarchy(BaseModel):
    issue: ItemRecord
    tasks: List[ItemRecord] = Field(default_factory=list)
    prs: List[ItemRecord] = Field(default_factory=list)
    epic: Optional[ItemRecord] = None


class TaskHierarchy(BaseModel):
    task: ItemRecord
    issue: Optional[ItemRecord] = None
    epic: Optional[ItemRecord] = None


class PRHierarchy(BaseModel):
    pr: ItemRecord
    issue: Optional[ItemRecord] = None
    epic: Optional[ItemRecord] = None


class RelatedItems(BaseModel):
    """Items linked to one item through dependency fields or a shared parent."""

    dependents: List[ItemRecord] = Field(default_factory=list)
    dependencies: List[ItemRecord] = Field(default_factory=list)
    blocked_by: List[ItemRecord] = Field(default_factory=list)
    blocks: List[ItemRecord] = Field(default_factory=list)
    siblings: List[ItemRecord] = Field(default_factory=list)


class RelationshipIssue(BaseModel):
    field: str
    message: str
    severity: str = "error"


class RelationshipValidation(BaseModel):
    valid: bool
    errors: List[RelationshipIssue] = Field(default_factory=list)
    warnings: List[RelationshipIssue] = Field(default_factory=list)


class SearchFilters(BaseModel):
    """Fixed set of filters; every given filter must match.

    List-valued filters match when the item has any of the values.
    """

    status: List[str] = Field(default_factory=list)
    priority: List[str] = Field(default_factory=list)
    assignee: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    types: List[ItemType] = Field(default_factory=list)
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None
    title_contains: Optional[str] = None

    @field_validator(
        "created_after", "created_before", "updated_after", "updated_before", mode="before"
    )
    @classmethod
    def normalize_timestamp(cls, v):
        """Compare against records in aware UTC."""
        if v is None or v == "":
            return None
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {v!r}")
        return parsed


class SearchResult(BaseModel):
    items: List[ItemRecord] = Field(default_factory=list)
    total_count: int = 0
    filters: SearchFilters


class CacheStats(BaseModel):
    epics: int = 0
    issues: int = 0
    tasks: int = 0
    prs: int = 0
    built_at: Optional[float] = None
    generation: Optional[int] = None
    is_stale: bool = True


# =============================================================================
# State transitions
# =============================================================================


class TransitionResult(BaseModel):
    """Outcome of a state transition.

    success reflects hard errors only; warnings are soft preconditions the
    caller may override. persisted is set by callers that write the item.
    """

    success: bool
    item: ItemRecord
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    persisted: bool = False
