"""
Item record model for the trackdown index.

Common record for every indexed work item (epic, issue, task, pull request),
plus the two status spaces an item moves through.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from trackdown.constants import (
    DEFAULT_PRIORITY,
    DEFAULT_STATUS,
    VALIDATION_INVALID_STATUS,
    VALIDATION_TITLE_REQUIRED,
)
from trackdown.utils import parse_timestamp, unique


class ItemType(str, Enum):
    """Kinds of tracked items."""

    PROJECT = "project"
    EPIC = "epic"
    ISSUE = "issue"
    TASK = "task"
    PR = "pr"


# Types that get their own mapping in the index, in scan order.
INDEXED_TYPES = (ItemType.EPIC, ItemType.ISSUE, ItemType.TASK, ItemType.PR)


class LifecycleStatus(str, Enum):
    """Coarse lifecycle status every item starts in."""

    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ResolutionStatus(str, Enum):
    """Workflow resolution states layered over the lifecycle."""

    READY_FOR_ENGINEERING = "ready_for_engineering"
    READY_FOR_QA = "ready_for_qa"
    READY_FOR_DEPLOYMENT = "ready_for_deployment"
    DONE = "done"
    WONT_DO = "won_t_do"


class Priority(str, Enum):
    """Valid priority values."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Lifecycle:
    """An effective state drawn from the lifecycle space."""

    status: LifecycleStatus


@dataclass(frozen=True)
class Resolution:
    """An effective state drawn from the resolution space."""

    status: ResolutionStatus


WorkflowState = Union[Lifecycle, Resolution]

LIFECYCLE_VALUES = frozenset(s.value for s in LifecycleStatus)
RESOLUTION_VALUES = frozenset(s.value for s in ResolutionStatus)
ALL_STATE_VALUES = LIFECYCLE_VALUES | RESOLUTION_VALUES


def parse_state(value: Optional[str]) -> Optional[WorkflowState]:
    """Wrap a raw status string in its variant.

    Returns None for empty or unknown values.
    """
    if not value:
        return None
    if value in LIFECYCLE_VALUES:
        return Lifecycle(LifecycleStatus(value))
    if value in RESOLUTION_VALUES:
        return Resolution(ResolutionStatus(value))
    return None


def current_state(state: WorkflowState) -> str:
    """Canonical string for either variant."""
    return state.status.value


class StateMetadata(BaseModel):
    """Metadata written alongside every successful state transition."""

    transitioned_at: Optional[datetime] = None
    transitioned_by: str = ""
    previous_state: Optional[str] = None
    reason: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("reason", "transition_reason")
    )
    reviewer: Optional[str] = None
    automation_eligible: bool = False

    @field_validator("transitioned_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, v):
        """Accept YAML datetimes and ISO strings; blank means unset."""
        return parse_timestamp(v)


class ItemRecord(BaseModel):
    """
    Indexed summary of one work item document.

    Common fields:
    - id: Globally unique id, prefix matches the type (EP-, ISS-, TSK-, PR-)
    - type: Assigned once when the document is parsed
    - status: Lifecycle status (planning/active/completed/archived)
    - state: Unified workflow state, if one has been set by a transition
    - epic_id / issue_id: Parent references appropriate to the type
    - issue_ids / task_ids / pr_ids: Child ids derived by the index, sorted
    - inconsistencies: Problems found with this record's references

    Persisted with camelCase keys (filePath, epicId, ...); may be constructed
    by either field name or alias.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    type: ItemType
    title: str
    status: str = DEFAULT_STATUS
    state: Optional[str] = None
    state_metadata: Optional[StateMetadata] = None
    priority: Priority = Priority(DEFAULT_PRIORITY)
    assignee: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    file_path: str
    epic_id: Optional[str] = None
    issue_id: Optional[str] = None
    completion_percentage: Optional[float] = None
    dependencies: List[str] = Field(default_factory=list)
    blocked_by: List[str] = Field(default_factory=list)
    blocks: List[str] = Field(default_factory=list)
    pr_status: Optional[str] = None
    issue_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)
    pr_ids: List[str] = Field(default_factory=list)
    inconsistencies: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Titles must not be blank."""
        if not v or not v.strip():
            raise ValueError(VALIDATION_TITLE_REQUIRED)
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        """Status must belong to one of the two status spaces."""
        if v not in ALL_STATE_VALUES:
            raise ValueError(VALIDATION_INVALID_STATUS)
        return v

    @field_validator("state", mode="before")
    @classmethod
    def validate_state(cls, v):
        """Blank state means no resolution has been set."""
        if v is None or v == "":
            return None
        if v not in ALL_STATE_VALUES:
            raise ValueError(VALIDATION_INVALID_STATUS)
        return v

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, v):
        """Store every timestamp as aware UTC."""
        parsed = parse_timestamp(v)
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {v!r}")
        return parsed

    @field_validator("tags", "dependencies", "blocked_by", "blocks", mode="before")
    @classmethod
    def normalize_id_list(cls, v):
        """Accept a single string or a list; drop blanks and duplicates."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return unique(str(item) for item in v)

    @property
    def workflow_state(self) -> WorkflowState:
        """Effective state as a tagged variant.

        The resolution/unified state wins when set, otherwise the lifecycle
        status is used.
        """
        return parse_state(self.state) or parse_state(self.status)

    @property
    def effective_state(self) -> str:
        """Effective state as a plain string."""
        return current_state(self.workflow_state)

    @property
    def path(self) -> Path:
        """Backing document location."""
        return Path(self.file_path)

    @property
    def parent_id(self) -> Optional[str]:
        """Immediate parent id: the issue for tasks/PRs, the epic for issues."""
        if self.type in (ItemType.TASK, ItemType.PR):
            return self.issue_id or None
        if self.type == ItemType.ISSUE:
            return self.epic_id or None
        return None
