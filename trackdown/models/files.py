"""
File models for the trackdown index.

Models representing the structure of the persisted JSON files: the project
config in .trackdown/config.json and the index file beside the item
directories.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from trackdown.constants import (
    DEFAULT_EPIC_PREFIX,
    DEFAULT_EPICS_DIR,
    DEFAULT_FILE_EXTENSION,
    DEFAULT_INDEX_CACHE_TTL,
    DEFAULT_INDEX_FILE_NAME,
    DEFAULT_ISSUE_PREFIX,
    DEFAULT_ISSUES_DIR,
    DEFAULT_PR_PREFIX,
    DEFAULT_PROJECT_PREFIX,
    DEFAULT_PRS_DIR,
    DEFAULT_RECENT_ACTIVITY_DAYS,
    DEFAULT_RECENT_ACTIVITY_LIMIT,
    DEFAULT_RELATIONSHIP_CACHE_TTL,
    DEFAULT_SLOW_OPERATION_MS,
    DEFAULT_TASK_PREFIX,
    DEFAULT_TASKS_DIR,
    DEFAULT_TASKS_DIRECTORY,
    INDEX_VERSION,
)
from trackdown.utils import utc_now

from .base import INDEXED_TYPES, ItemRecord, ItemType


class StructureConfig(BaseModel):
    """Directory names for each item type, relative to the tasks root."""

    epics_dir: str = DEFAULT_EPICS_DIR
    issues_dir: str = DEFAULT_ISSUES_DIR
    tasks_dir: str = DEFAULT_TASKS_DIR
    prs_dir: str = DEFAULT_PRS_DIR


class NamingConfig(BaseModel):
    """Id prefixes and document file extension."""

    project_prefix: str = DEFAULT_PROJECT_PREFIX
    epic_prefix: str = DEFAULT_EPIC_PREFIX
    issue_prefix: str = DEFAULT_ISSUE_PREFIX
    task_prefix: str = DEFAULT_TASK_PREFIX
    pr_prefix: str = DEFAULT_PR_PREFIX
    file_extension: str = DEFAULT_FILE_EXTENSION

    def prefix_for(self, item_type: ItemType) -> str:
        """Id prefix (without the dash) for an item type."""
        return {
            ItemType.PROJECT: self.project_prefix,
            ItemType.EPIC: self.epic_prefix,
            ItemType.ISSUE: self.issue_prefix,
            ItemType.TASK: self.task_prefix,
            ItemType.PR: self.pr_prefix,
        }[item_type]


class ConfigFile(BaseModel):
    """Model for config.json file.

    Project settings and configuration.
    """

    schema_version: str = "1.0.0"
    name: str = "trackdown"

    # Layout settings
    tasks_directory: str = DEFAULT_TASKS_DIRECTORY
    structure: StructureConfig = Field(default_factory=StructureConfig)
    naming_conventions: NamingConfig = Field(default_factory=NamingConfig)

    # Index settings
    index_file_name: str = DEFAULT_INDEX_FILE_NAME
    index_cache_ttl: float = DEFAULT_INDEX_CACHE_TTL
    relationship_cache_ttl: float = DEFAULT_RELATIONSHIP_CACHE_TTL
    slow_operation_ms: int = DEFAULT_SLOW_OPERATION_MS

    # Overview settings
    recent_activity_days: int = DEFAULT_RECENT_ACTIVITY_DAYS
    recent_activity_limit: int = DEFAULT_RECENT_ACTIVITY_LIMIT


class IndexStatsBlock(BaseModel):
    """Derived counts stored with the index."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_epics: int = 0
    total_issues: int = 0
    total_tasks: int = 0
    total_prs: int = 0
    last_full_scan: Optional[datetime] = None
    last_rebuild_ms: float = 0.0


class IndexFile(BaseModel):
    """Model for the persisted index file.

    Four id-keyed mappings of ItemRecord plus metadata. Every key must equal
    the id of its record and every record must be of the mapping's type;
    anything else fails validation and the file is treated as absent.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: str
    last_updated: datetime
    project_path: str
    epics: Dict[str, ItemRecord]
    issues: Dict[str, ItemRecord]
    tasks: Dict[str, ItemRecord]
    prs: Dict[str, ItemRecord]
    stats: IndexStatsBlock = Field(default_factory=IndexStatsBlock)

    @model_validator(mode="after")
    def validate_keys(self) -> "IndexFile":
        """Keys must match record ids and records must match their mapping type."""
        for item_type in INDEXED_TYPES:
            for key, record in self.mapping(item_type).items():
                if key != record.id:
                    raise ValueError(f"Index key {key} does not match record id {record.id}")
                if record.type != item_type:
                    raise ValueError(
                        f"Record {record.id} of type {record.type.value} "
                        f"stored under {item_type.value}"
                    )
        return self

    @classmethod
    def empty(cls, project_path: str) -> "IndexFile":
        """Create an index with no items."""
        now = utc_now()
        return cls(
            version=INDEX_VERSION,
            last_updated=now,
            project_path=project_path,
            epics={},
            issues={},
            tasks={},
            prs={},
        )

    def mapping(self, item_type: ItemType) -> Dict[str, ItemRecord]:
        """Id-keyed mapping for an indexed type (empty dict for projects)."""
        if item_type == ItemType.EPIC:
            return self.epics
        if item_type == ItemType.ISSUE:
            return self.issues
        if item_type == ItemType.TASK:
            return self.tasks
        if item_type == ItemType.PR:
            return self.prs
        return {}

    def put(self, record: ItemRecord) -> None:
        """Insert or replace a record, keeping its mapping ordered by id."""
        if record.type not in INDEXED_TYPES:
            raise ValueError(f"Item type '{record.type.value}' is not indexed")
        mapping = self.mapping(record.type)
        is_new = record.id not in mapping
        mapping[record.id] = record
        if is_new:
            ordered = sorted(mapping.items())
            mapping.clear()
            mapping.update(ordered)

    def all_items(self) -> List[ItemRecord]:
        """Every record, epics first, then issues, tasks and PRs."""
        items: List[ItemRecord] = []
        for item_type in INDEXED_TYPES:
            items.extend(self.mapping(item_type).values())
        return items

    @property
    def item_count(self) -> int:
        return sum(len(self.mapping(t)) for t in INDEXED_TYPES)

    def refresh_stats(self) -> None:
        """Recompute derived counts."""
        self.stats.total_epics = len(self.epics)
        self.stats.total_issues = len(self.issues)
        self.stats.total_tasks = len(self.tasks)
        self.stats.total_prs = len(self.prs)
