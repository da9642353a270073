"""
Managers for the trackdown index.

This package contains focused manager classes that handle specific aspects of the index:
- PathResolver: Project root, item directories and index file location
- DocumentStore: Reading and updating Markdown + frontmatter item documents
- StorageManager: Persistence of config.json and the index file
- IndexManager: Building, loading, updating and repairing the index
- RelationshipManager: Hierarchies, dependents and relationship validation
- StateTransitionEngine: Lifecycle and resolution state transitions
"""

from trackdown.managers.path_resolver import PathResolver
from trackdown.managers.document_store import DocumentStore, ScanResult
from trackdown.managers.storage_manager import StorageManager, StorageError
from trackdown.managers.index_manager import IndexCache, IndexManager
from trackdown.managers.relationship_manager import RelationshipGraph, RelationshipManager
from trackdown.managers.transitions import StateTransitionEngine, TRANSITIONS

__all__ = [
    "PathResolver",
    "DocumentStore",
    "ScanResult",
    "StorageManager",
    "StorageError",
    "IndexCache",
    "IndexManager",
    "RelationshipGraph",
    "RelationshipManager",
    "StateTransitionEngine",
    "TRANSITIONS",
]
