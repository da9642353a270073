"""
IndexManager for the trackdown index.

Keeps a derived, persisted index of every work item document in sync with
the documents on disk. The documents are always the source of truth: a
missing or corrupt index is rebuilt, and single documents can be re-read
without a full rebuild.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from trackdown.constants import COMPLETED_STATUS
from trackdown.exceptions import DocumentError, StorageError
from trackdown.managers.document_store import DocumentStore, ScanResult
from trackdown.managers.path_resolver import PathResolver
from trackdown.managers.storage_manager import StorageManager
from trackdown.models.base import INDEXED_TYPES, ItemRecord, ItemType
from trackdown.models.files import IndexFile
from trackdown.models.results import (
    DiskEntry,
    HealthReport,
    HealthStats,
    IndexedEntry,
    IndexStats,
    ProjectOverview,
    RepairReport,
)
from trackdown.utils import discard, insert_sorted, utc_now

logger = logging.getLogger(__name__)


class IndexCache:
    """
    In-memory copy of the index with a generation counter.

    The generation is bumped whenever the index is rebuilt, mutated or
    dropped, so dependents can tell their derived data is stale by comparing
    a single integer. Re-reading an unchanged file from disk keeps it.
    """

    def __init__(self) -> None:
        self.index: Optional[IndexFile] = None
        self.loaded_at: float = 0.0
        self.generation: int = 0

    def store(self, index: IndexFile) -> None:
        """Cache an index (new or mutated) and bump the generation."""
        self.index = index
        self.loaded_at = time.monotonic()
        self.generation += 1

    def refresh(self, index: IndexFile) -> None:
        """Cache an index re-read from disk; the generation is unchanged."""
        self.index = index
        self.loaded_at = time.monotonic()

    def invalidate(self) -> None:
        """Drop the cached index and bump the generation."""
        self.index = None
        self.loaded_at = 0.0
        self.generation += 1

    def is_fresh(self, ttl: float) -> bool:
        return self.index is not None and time.monotonic() - self.loaded_at < ttl


class IndexManager:
    """
    Manages the derived index of work items.

    Handles:
    - Full rebuilds from the item directories
    - Cached and persisted loading with rebuild on corruption
    - Incremental update/removal of single items
    - Health validation and auto-repair against the documents on disk
    - Queries and project overview
    """

    def __init__(
        self,
        paths: PathResolver,
        documents: DocumentStore,
        storage: StorageManager,
        cache_ttl: Optional[float] = None,
    ) -> None:
        """
        Initialize IndexManager.

        Args:
            paths: Resolver for the project's directories and index file.
            documents: Reader/writer for item documents.
            storage: Persistence for the index file.
            cache_ttl: Seconds a cached index is trusted. Defaults to the config value.
        """
        self.paths = paths
        self.documents = documents
        self.storage = storage
        self.config = paths.config
        self.cache_ttl = cache_ttl if cache_ttl is not None else self.config.index_cache_ttl
        self.cache = IndexCache()

    @property
    def generation(self) -> int:
        """Current cache generation."""
        return self.cache.generation

    @contextmanager
    def _timed(self, operation: str) -> Iterator[None]:
        """Log operations slower than the configured threshold."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            if elapsed_ms > self.config.slow_operation_ms:
                logger.warning("Slow index operation %s: %.1f ms", operation, elapsed_ms)
            else:
                logger.debug("Index operation %s: %.1f ms", operation, elapsed_ms)

    # =========================================================================
    # Build and load
    # =========================================================================

    def rebuild_index(self) -> IndexFile:
        """Scan every item directory and replace the index.

        The four directories are scanned concurrently. Documents that fail
        to parse are logged and left out.

        Returns:
            The new index.

        Raises:
            ProjectRootError: If the project root is missing.
            StorageError: If a directory can't be read or the index can't be written.
        """
        with self._timed("rebuild_index"):
            self.paths.ensure_project_root()
            start = time.perf_counter()

            type_dirs = self.paths.type_dirs()
            with ThreadPoolExecutor(max_workers=len(type_dirs)) as executor:
                futures = {
                    item_type: executor.submit(self.documents.scan, directory, item_type)
                    for item_type, directory in type_dirs.items()
                }
                scans: Dict[ItemType, ScanResult] = {
                    item_type: future.result() for item_type, future in futures.items()
                }

            index = IndexFile.empty(str(self.paths.project_root))
            skipped = 0
            for item_type in INDEXED_TYPES:
                scan = scans[item_type]
                skipped += len(scan.errors)
                mapping = index.mapping(item_type)
                for record in sorted(scan.records, key=lambda r: r.id):
                    if record.id in mapping:
                        logger.warning(
                            "Duplicate id %s in %s, keeping %s",
                            record.id,
                            record.file_path,
                            mapping[record.id].file_path,
                        )
                        continue
                    mapping[record.id] = record
            self._link_all_children(index)

            index.stats.last_full_scan = utc_now()
            index.stats.last_rebuild_ms = round((time.perf_counter() - start) * 1000, 3)
            self._persist(index)
            logger.info(
                "Rebuilt index: %d items, %d documents skipped",
                index.item_count,
                skipped,
            )
            return index

    def load_index(self) -> IndexFile:
        """Return the index, from cache, from disk, or by rebuilding.

        A missing or unusable index file is never an error; it's rebuilt.
        """
        if self.cache.is_fresh(self.cache_ttl):
            return self.cache.index

        try:
            index = self.storage.load_index(self.paths.index_path)
        except StorageError as e:
            logger.warning("Index file unusable, rebuilding: %s", e)
            return self.rebuild_index()

        if index is None:
            logger.info("No index at %s, rebuilding", self.paths.index_path)
            return self.rebuild_index()

        self.cache.refresh(index)
        return index

    def clear_cache(self) -> None:
        """Forget the cached index; the next load reads the file again."""
        self.cache.invalidate()

    def _persist(self, index: IndexFile) -> None:
        """Write the index and cache it.

        On a failed write the cached copy, which may already hold the
        change, is dropped so the next load reads the file again.
        """
        index.last_updated = utc_now()
        index.refresh_stats()
        try:
            self.storage.save_index(self.paths.index_path, index)
        except StorageError:
            self.cache.invalidate()
            raise
        self.cache.store(index)

    # =========================================================================
    # Child links
    # =========================================================================

    @staticmethod
    def _child_list(
        index: IndexFile, item_type: ItemType, parent_id: Optional[str]
    ) -> Optional[List[str]]:
        """The parent's child-id list an item of this type belongs in."""
        if not parent_id:
            return None
        if item_type == ItemType.ISSUE:
            parent = index.epics.get(parent_id)
            return parent.issue_ids if parent else None
        if item_type == ItemType.TASK:
            parent = index.issues.get(parent_id)
            return parent.task_ids if parent else None
        if item_type == ItemType.PR:
            parent = index.issues.get(parent_id)
            return parent.pr_ids if parent else None
        return None

    def _link_all_children(self, index: IndexFile) -> None:
        for item_type in (ItemType.ISSUE, ItemType.TASK, ItemType.PR):
            for record in index.mapping(item_type).values():
                children = self._child_list(index, item_type, record.parent_id)
                if children is not None:
                    insert_sorted(children, record.id)

    @staticmethod
    def _collect_children(index: IndexFile, record: ItemRecord) -> None:
        """Fill a new record's child lists from the items that point at it."""
        if record.type == ItemType.EPIC:
            record.issue_ids = sorted(
                i.id for i in index.issues.values() if i.epic_id == record.id
            )
        elif record.type == ItemType.ISSUE:
            record.task_ids = sorted(
                t.id for t in index.tasks.values() if t.issue_id == record.id
            )
            record.pr_ids = sorted(
                p.id for p in index.prs.values() if p.issue_id == record.id
            )

    # =========================================================================
    # Incremental updates
    # =========================================================================

    @staticmethod
    def _indexed_type(item_type: Union[ItemType, str]) -> Optional[ItemType]:
        """The ItemType for an indexed type, or None (logged) for anything else."""
        try:
            resolved = ItemType(item_type)
        except ValueError:
            logger.warning("Unknown item type %r", item_type)
            return None
        if resolved not in INDEXED_TYPES:
            logger.warning("Item type %s is not indexed", resolved.value)
            return None
        return resolved

    def update_item(
        self, item_type: Union[ItemType, str], item_id: str
    ) -> Optional[ItemRecord]:
        """Re-read one item's document and merge it into the index.

        If the item no longer has a readable document it's removed instead.

        Returns:
            The updated record, or None if the item was removed or the type
            isn't indexed.
        """
        resolved = self._indexed_type(item_type)
        if resolved is None:
            return None
        with self._timed("update_item"):
            index = self.load_index()
            existing = index.mapping(resolved).get(item_id)

            record = self._read_item(resolved, item_id, existing)
            if record is None:
                logger.info("No document for %s, removing it from the index", item_id)
                self.remove_item(resolved, item_id)
                return None
            return self._merge(index, record)

    def _merge(self, index: IndexFile, record: ItemRecord) -> ItemRecord:
        """Put a freshly read record into the index, fix child links, persist."""
        existing = index.mapping(record.type).get(record.id)
        if existing is not None:
            record.issue_ids = list(existing.issue_ids)
            record.task_ids = list(existing.task_ids)
            record.pr_ids = list(existing.pr_ids)
            if existing.parent_id != record.parent_id:
                old_children = self._child_list(index, record.type, existing.parent_id)
                if old_children is not None:
                    discard(old_children, record.id)
        else:
            self._collect_children(index, record)

        new_children = self._child_list(index, record.type, record.parent_id)
        if new_children is not None:
            insert_sorted(new_children, record.id)

        index.put(record)
        self._persist(index)
        logger.debug("Updated %s from %s", record.id, record.file_path)
        return record

    def _read_item(
        self,
        item_type: ItemType,
        item_id: str,
        existing: Optional[ItemRecord],
    ) -> Optional[ItemRecord]:
        """Find and parse the document backing an id.

        Tries <id>.md / <id>-*.md, then the indexed path. Only file names are
        listed; no other document is parsed.
        """
        candidates: List[Path] = []
        by_name = self.documents.find_item_file(self.paths.type_dir(item_type), item_id)
        if by_name is not None:
            candidates.append(by_name)
        if existing is not None and existing.path.exists() and existing.path not in candidates:
            candidates.append(existing.path)

        for path in candidates:
            try:
                record = self.documents.read(path, item_type)
            except DocumentError as e:
                logger.warning("Cannot read %s: %s", item_id, e)
                continue
            if record.id == item_id:
                return record
        return None

    def remove_item(self, item_type: Union[ItemType, str], item_id: str) -> bool:
        """Delete an item from the index and from its parent's child list.

        Children are left alone; their documents still exist.

        Returns:
            True if the item was indexed.
        """
        resolved = self._indexed_type(item_type)
        if resolved is None:
            return False
        index = self.load_index()
        record = index.mapping(resolved).pop(item_id, None)
        if record is None:
            return False

        children = self._child_list(index, resolved, record.parent_id)
        if children is not None:
            discard(children, item_id)
        self._persist(index)
        logger.debug("Removed %s from the index", item_id)
        return True

    # =========================================================================
    # Health
    # =========================================================================

    @staticmethod
    def _path_key(file_path: str) -> str:
        return str(Path(file_path).resolve())

    def validate_index_health(self) -> HealthReport:
        """Compare the index against the documents on disk. Read-only."""
        with self._timed("validate_index_health"):
            index = self.load_index()

            disk: List[DiskEntry] = []
            for item_type, directory in self.paths.type_dirs().items():
                for path in self.documents.list_files(directory):
                    disk.append(DiskEntry(type=item_type, file_path=str(path)))

            records = index.all_items()
            orphaned = [
                IndexedEntry(type=r.type, id=r.id, file_path=r.file_path)
                for r in records
                if not r.path.exists()
            ]
            indexed_paths = {self._path_key(r.file_path) for r in records}
            missing = [d for d in disk if self._path_key(d.file_path) not in indexed_paths]

            stats = HealthStats(
                file_count=len(disk),
                indexed_count=len(records),
                missing_count=len(missing),
                orphaned_count=len(orphaned),
            )
            issues: List[str] = []
            suggestions: List[str] = []
            if stats.file_count != stats.indexed_count:
                issues.append(
                    f"File count ({stats.file_count}) does not match "
                    f"indexed count ({stats.indexed_count})"
                )
            if orphaned:
                issues.append(
                    f"{len(orphaned)} indexed item(s) no longer have a file: "
                    + ", ".join(e.id for e in orphaned)
                )
            if missing:
                issues.append(f"{len(missing)} file(s) are not in the index")
                for entry in missing:
                    issues.append(f"Not indexed: {entry.file_path}")
            if orphaned or missing:
                suggestions.append("Run auto-repair to sync the index with the files on disk")
            if stats.file_count != stats.indexed_count and not (orphaned or missing):
                suggestions.append("Rebuild the index to drop duplicate entries")

            return HealthReport(
                is_valid=not missing and not orphaned,
                issues=issues,
                suggestions=suggestions,
                stats=stats,
                orphaned=orphaned,
                missing=missing,
            )

    def auto_repair_index(self) -> RepairReport:
        """Index missing files and drop orphaned entries.

        Documents are never modified.
        """
        with self._timed("auto_repair_index"):
            health = self.validate_index_health()
            if health.is_valid:
                return RepairReport(repaired=True)

            actions: List[str] = []
            errors: List[str] = []

            for entry in health.missing:
                try:
                    record = self.documents.read(Path(entry.file_path), entry.type)
                except DocumentError as e:
                    errors.append(str(e))
                    continue
                self._merge(self.load_index(), record)
                actions.append(f"Indexed {record.id} from {entry.file_path}")

            for entry in health.orphaned:
                current = self.get_item_by_id(entry.type, entry.id)
                if current is not None and current.path.exists():
                    # Re-pointed at its new file while indexing missing files
                    continue
                if self.remove_item(entry.type, entry.id):
                    actions.append(f"Removed orphaned entry {entry.id}")

            post = self.validate_index_health()
            repaired = post.is_valid and not errors
            logger.info(
                "Index repair %s: %d action(s), %d error(s)",
                "succeeded" if repaired else "incomplete",
                len(actions),
                len(errors),
            )
            return RepairReport(repaired=repaired, actions=actions, errors=errors)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_items_by_type(self, item_type: Union[ItemType, str]) -> List[ItemRecord]:
        """All records of one type, ordered by id."""
        resolved = self._indexed_type(item_type)
        if resolved is None:
            return []
        return list(self.load_index().mapping(resolved).values())

    def get_item_by_id(
        self, item_type: Union[ItemType, str], item_id: str
    ) -> Optional[ItemRecord]:
        """Look up a record of a known type by id."""
        resolved = self._indexed_type(item_type)
        if resolved is None:
            return None
        return self.load_index().mapping(resolved).get(item_id)

    def find_item(self, item_id: str) -> Optional[ItemRecord]:
        """Look up a record by id across every type."""
        index = self.load_index()
        for item_type in INDEXED_TYPES:
            record = index.mapping(item_type).get(item_id)
            if record is not None:
                return record
        return None

    def get_items_by_status(self, status: str) -> List[ItemRecord]:
        """Records whose lifecycle status or effective state equals status."""
        return [
            record
            for record in self.load_index().all_items()
            if status in (record.status, record.effective_state)
        ]

    def get_project_overview(self) -> ProjectOverview:
        """Aggregate counts over every indexed item."""
        index = self.load_index()
        items = index.all_items()

        by_status: Dict[str, int] = {}
        by_priority: Dict[str, int] = {}
        for record in items:
            by_status[record.status] = by_status.get(record.status, 0) + 1
            by_priority[record.priority.value] = by_priority.get(record.priority.value, 0) + 1

        by_type = {t.value: len(index.mapping(t)) for t in ItemType}

        completed = by_status.get(COMPLETED_STATUS, 0)
        completion_rate = round(completed * 100 / len(items)) if items else 0

        cutoff = utc_now() - timedelta(days=self.config.recent_activity_days)
        recent = sorted(
            (r for r in items if r.updated_at >= cutoff),
            key=lambda r: r.updated_at,
            reverse=True,
        )[: self.config.recent_activity_limit]

        return ProjectOverview(
            total_items=len(items),
            by_status=by_status,
            by_priority=by_priority,
            by_type=by_type,
            completion_rate=completion_rate,
            recent_activity=recent,
        )

    def get_index_stats(self) -> IndexStats:
        """Index counts plus file and cache information."""
        cache_hit = self.cache.is_fresh(self.cache_ttl)
        index = self.load_index()

        index_path = self.paths.index_path
        modified = None
        if index_path.exists():
            modified = datetime.fromtimestamp(index_path.stat().st_mtime, tz=timezone.utc)

        return IndexStats(
            total_epics=len(index.epics),
            total_issues=len(index.issues),
            total_tasks=len(index.tasks),
            total_prs=len(index.prs),
            last_updated=index.last_updated,
            last_full_scan=index.stats.last_full_scan,
            last_rebuild_ms=index.stats.last_rebuild_ms,
            index_file_exists=index_path.exists(),
            index_file_modified=modified,
            cache_hit=cache_hit,
            generation=self.generation,
        )
