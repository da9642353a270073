"""
Data models for the trackdown index.

Import models explicitly from their modules:
    from trackdown.models.base import ItemRecord, ItemType, StateMetadata
    from trackdown.models.files import ConfigFile, IndexFile
    from trackdown.models.results import HealthReport, RepairReport, etc.
"""

from .base import (
    INDEXED_TYPES,
    ItemRecord,
    ItemType,
    Lifecycle,
    LifecycleStatus,
    Priority,
    Resolution,
    ResolutionStatus,
    StateMetadata,
    WorkflowState,
)
from .files import ConfigFile, IndexFile

__all__ = [
    "INDEXED_TYPES",
    "ItemRecord",
    "ItemType",
    "Lifecycle",
    "LifecycleStatus",
    "Priority",
    "Resolution",
    "ResolutionStatus",
    "StateMetadata",
    "WorkflowState",
    "ConfigFile",
    "IndexFile",
]
