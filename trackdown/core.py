"""
TrackdownCore - Core operations for the trackdown index.

Orchestrates manager classes for front ends such as the CLI.
Uses StorageManager for .trackdown/ config and index persistence, and the
item documents under the tasks directory as the source of truth.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from trackdown.constants import EXIT_HEALTHY, EXIT_ISSUES_FOUND, EXIT_REPAIR_FAILED
from trackdown.exceptions import NotFoundError
from trackdown.managers import (
    DocumentStore,
    IndexManager,
    PathResolver,
    RelationshipManager,
    StateTransitionEngine,
    StorageManager,
)
from trackdown.models.base import ItemRecord, ItemType
from trackdown.models.results import HealthCheckOutcome, RelatedItems, TransitionResult
from trackdown.utils import format_timestamp

logger = logging.getLogger(__name__)


class TrackdownCore:
    """
    Core class wiring the index managers for one project root.

    Orchestrates manager classes:
    - StorageManager: config.json and index file persistence
    - PathResolver: Project directory layout
    - DocumentStore: Item documents
    - IndexManager: The derived index
    - RelationshipManager: Hierarchies and cross-item references
    - StateTransitionEngine: State transitions
    """

    def __init__(self, project_root: Optional[Path] = None) -> None:
        """
        Initialize the TrackdownCore for a project root.

        Args:
            project_root: Directory holding the project. Defaults to the current directory.

        Raises:
            ProjectRootError: If the root doesn't exist.
            StorageError: If config.json is unreadable.
        """
        self.project_root = Path(project_root) if project_root else Path.cwd()
        self.storage = StorageManager(PathResolver.config_dir_for(self.project_root))
        self.config = self.storage.load_config()

        self.paths = PathResolver(self.project_root, self.config)
        self.paths.ensure_project_root()

        self.documents = DocumentStore(self.config.naming_conventions)
        self.index_manager = IndexManager(self.paths, self.documents, self.storage)
        self.relationships = RelationshipManager(self.index_manager)
        self.transitions = StateTransitionEngine()

    def get_item(self, item_type: Union[ItemType, str], item_id: str) -> ItemRecord:
        """Indexed record for an item.

        Raises:
            NotFoundError: If the item isn't indexed.
        """
        record = self.index_manager.get_item_by_id(item_type, item_id)
        if record is None:
            type_name = item_type.value if isinstance(item_type, ItemType) else item_type
            raise NotFoundError(f"{type_name} {item_id} not found")
        return record

    def transition_item(
        self,
        item_type: Union[ItemType, str],
        item_id: str,
        target: str,
        actor: str,
        reason: Optional[str] = None,
        reviewer: Optional[str] = None,
        force: bool = False,
    ) -> TransitionResult:
        """Move an item to a new state and write it back to its document.

        Nothing is written if the transition fails, or if it produced
        warnings and force is False.

        Raises:
            NotFoundError: If the item isn't indexed.
            DocumentError: If the document can't be rewritten.
        """
        record = self.get_item(item_type, item_id)
        related = self.relationships.get_related_items(item_id) or RelatedItems()
        result = self.transitions.transition_state(
            record,
            target,
            actor,
            reason=reason,
            reviewer=reviewer,
            dependencies=related.dependencies + related.blocked_by,
            dependents=related.dependents,
        )
        if not result.success:
            return result
        if result.warnings and not force:
            logger.info("Transition of %s held back by warnings", item_id)
            return result

        self._write_state(result.item)
        updated = self.index_manager.update_item(item_type, item_id)
        if updated is not None:
            result.item = updated
        result.persisted = True
        logger.info(
            "Transitioned %s from %s to %s",
            item_id,
            record.effective_state,
            result.item.effective_state,
        )
        return result

    def _write_state(self, item: ItemRecord) -> None:
        metadata = item.state_metadata.model_dump(mode="json", exclude_none=True)
        if item.state_metadata.transitioned_at is not None:
            metadata["transitioned_at"] = format_timestamp(item.state_metadata.transitioned_at)
        self.documents.write_fields(
            item.path,
            {
                "status": item.status,
                "state": item.state,
                "state_metadata": metadata,
                "updated_date": format_timestamp(item.updated_at),
            },
        )

    def health_check(
        self, repair: bool = False, force: bool = False, rebuild: bool = False
    ) -> HealthCheckOutcome:
        """Validate the index and optionally repair or rebuild it.

        Exit codes:
            0: healthy, or rebuilt on request
            1: issues found and repaired, or repair not attempted
            2: issues found and repair failed

        Args:
            repair: Repair detected issues.
            force: Run repair even if the index looks healthy.
            rebuild: Skip validation and rebuild the index from scratch.
        """
        if rebuild:
            self.index_manager.rebuild_index()
            return HealthCheckOutcome(exit_code=EXIT_HEALTHY, rebuilt=True)

        health = self.index_manager.validate_index_health()
        if not (repair or force) or (health.is_valid and not force):
            return HealthCheckOutcome(
                exit_code=EXIT_HEALTHY if health.is_valid else EXIT_ISSUES_FOUND,
                health=health,
            )

        report = self.index_manager.auto_repair_index()
        if not report.repaired:
            exit_code = EXIT_REPAIR_FAILED
        elif health.is_valid:
            exit_code = EXIT_HEALTHY
        else:
            exit_code = EXIT_ISSUES_FOUND
        return HealthCheckOutcome(exit_code=exit_code, health=health, repair=report)
