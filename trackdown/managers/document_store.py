"""
Document store for the trackdown index.

Reads and partially updates the Markdown + YAML frontmatter documents that
are the source of truth for every item. All failures on a single document
surface as DocumentError; only an unreadable directory is fatal.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import frontmatter
import yaml
from pydantic import ValidationError

from trackdown.constants import DEFAULT_PRIORITY, DEFAULT_STATUS, UNASSIGNED
from trackdown.exceptions import DocumentError, StorageError
from trackdown.models.base import ItemRecord, ItemType, StateMetadata
from trackdown.models.files import NamingConfig

logger = logging.getLogger(__name__)

# Frontmatter keys holding parent references, by item type.
PARENT_FIELDS = {
    ItemType.ISSUE: (("epic_id", ItemType.EPIC),),
    ItemType.TASK: (("issue_id", ItemType.ISSUE), ("epic_id", ItemType.EPIC)),
    ItemType.PR: (("issue_id", ItemType.ISSUE), ("epic_id", ItemType.EPIC)),
}


@dataclass
class ScanResult:
    """Records parsed from one directory plus the documents that failed."""

    item_type: ItemType
    records: List[ItemRecord] = field(default_factory=list)
    errors: List[DocumentError] = field(default_factory=list)


class DocumentStore:
    """
    Reads item documents into ItemRecords and writes field updates back.

    Usage:
        store = DocumentStore(NamingConfig())
        result = store.scan(Path("tasks/issues"), ItemType.ISSUE)
        store.write_fields(result.records[0].path, {"status": "active"})
    """

    def __init__(self, naming: Optional[NamingConfig] = None) -> None:
        """
        Initialize DocumentStore.

        Args:
            naming: Id prefixes and file extension. Defaults to the built-in conventions.
        """
        self.naming = naming or NamingConfig()

    # =========================================================================
    # Reading
    # =========================================================================

    def list_files(self, directory: Path) -> List[Path]:
        """List document files in a directory, sorted by name.

        A missing directory has no documents.

        Raises:
            StorageError: If the directory exists but can't be listed.
        """
        if not directory.exists():
            return []
        try:
            return sorted(
                path
                for path in directory.iterdir()
                if path.is_file() and path.suffix == self.naming.file_extension
            )
        except OSError as e:
            raise StorageError(f"Cannot read directory {directory}: {e}")

    def scan(self, directory: Path, item_type: ItemType) -> ScanResult:
        """Parse every document in a directory as the given type.

        Documents that fail to parse are logged and reported in
        ScanResult.errors; they never abort the scan.
        """
        result = ScanResult(item_type=item_type)
        for path in self.list_files(directory):
            try:
                result.records.append(self.read(path, item_type))
            except DocumentError as e:
                logger.warning("Skipping %s document: %s", item_type.value, e)
                result.errors.append(e)
        return result

    def read(self, path: Path, item_type: ItemType) -> ItemRecord:
        """Parse a single document.

        Raises:
            DocumentError: If the file is missing, unparsable, or not a valid item.
        """
        try:
            post = frontmatter.load(str(path))
        except FileNotFoundError:
            raise DocumentError("file not found", path)
        except (yaml.YAMLError, UnicodeDecodeError, ValueError, TypeError) as e:
            raise DocumentError(f"unparsable frontmatter: {e}", path)
        except OSError as e:
            raise DocumentError(f"cannot read file: {e}", path)

        if not post.metadata:
            raise DocumentError("no frontmatter found", path)
        return self.to_record(dict(post.metadata), path, item_type)

    def find_item_file(self, directory: Path, item_id: str) -> Optional[Path]:
        """Find a document by file name: <id>.md or <id>-<slug>.md."""
        for path in self.list_files(directory):
            if path.stem == item_id or path.stem.startswith(f"{item_id}-"):
                return path
        return None

    def to_record(
        self, metadata: Dict[str, Any], path: Path, item_type: ItemType
    ) -> ItemRecord:
        """Build an ItemRecord from frontmatter.

        The type comes from the document's own `type` field when present,
        otherwise from the directory being read; the two must agree.

        Raises:
            DocumentError: On type/id problems or invalid field values.
        """
        declared = metadata.get("type")
        if declared:
            try:
                declared_type = ItemType(str(declared))
            except ValueError:
                raise DocumentError(f"unknown item type '{declared}'", path)
            if declared_type != item_type:
                raise DocumentError(
                    f"document declares type '{declared_type.value}' "
                    f"but was read as '{item_type.value}'",
                    path,
                )

        item_id = metadata.get(f"{item_type.value}_id") or metadata.get("id")
        if not item_id:
            raise DocumentError(f"missing {item_type.value}_id field", path)
        item_id = str(item_id)

        prefix = f"{self.naming.prefix_for(item_type)}-"
        if not item_id.startswith(prefix):
            raise DocumentError(
                f"id {item_id} does not match type '{item_type.value}' "
                f"(expected prefix {prefix})",
                path,
            )

        parents: Dict[str, Optional[str]] = {"epic_id": None, "issue_id": None}
        inconsistencies: List[str] = []
        for key, parent_type in PARENT_FIELDS.get(item_type, ()):
            value = metadata.get(key)
            if not value:
                continue
            value = str(value)
            parents[key] = value
            parent_prefix = f"{self.naming.prefix_for(parent_type)}-"
            if not value.startswith(parent_prefix):
                inconsistencies.append(
                    f"{key} {value} has the wrong prefix for type '{parent_type.value}' "
                    f"(expected {parent_prefix})"
                )
        if item_type in (ItemType.TASK, ItemType.PR) and not parents["issue_id"]:
            inconsistencies.append(f"{item_type.value} has no issue_id")

        mtime = self._mtime(path)
        created = metadata.get("created_date") or metadata.get("created_at") or mtime
        updated = metadata.get("updated_date") or metadata.get("updated_at") or created

        assignee = metadata.get("assignee")
        if not assignee or assignee == UNASSIGNED:
            assignee = None

        state_metadata = metadata.get("state_metadata")
        if not isinstance(state_metadata, dict):
            state_metadata = None

        try:
            return ItemRecord(
                id=item_id,
                type=item_type,
                title=str(metadata.get("title") or ""),
                status=str(metadata.get("status") or DEFAULT_STATUS),
                state=metadata.get("state"),
                state_metadata=(
                    StateMetadata.model_validate(state_metadata)
                    if state_metadata
                    else None
                ),
                priority=metadata.get("priority") or DEFAULT_PRIORITY,
                assignee=str(assignee) if assignee else None,
                tags=metadata.get("tags"),
                created_at=created,
                updated_at=updated,
                file_path=str(path),
                epic_id=parents["epic_id"],
                issue_id=parents["issue_id"],
                completion_percentage=metadata.get("completion_percentage"),
                dependencies=metadata.get("dependencies"),
                blocked_by=metadata.get("blocked_by"),
                blocks=metadata.get("blocks"),
                pr_status=metadata.get("pr_status"),
                inconsistencies=inconsistencies,
            )
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise DocumentError(f"invalid fields: {problems}", path)

    @staticmethod
    def _mtime(path: Path) -> datetime:
        try:
            return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except OSError as e:
            raise DocumentError(f"cannot stat file: {e}", path)

    # =========================================================================
    # Writing
    # =========================================================================

    def write_fields(self, path: Path, updates: Dict[str, Any]) -> None:
        """Update frontmatter keys in place, keeping the body and other keys.

        A value of None removes the key.

        Raises:
            DocumentError: If the document can't be read or written.
        """
        try:
            post = frontmatter.load(str(path))
        except FileNotFoundError:
            raise DocumentError("file not found", path)
        except (yaml.YAMLError, UnicodeDecodeError, ValueError, TypeError) as e:
            raise DocumentError(f"unparsable frontmatter: {e}", path)
        except OSError as e:
            raise DocumentError(f"cannot read file: {e}", path)

        for key, value in updates.items():
            if value is None:
                post.metadata.pop(key, None)
            else:
                post.metadata[key] = value

        try:
            text = frontmatter.dumps(post)
        except yaml.YAMLError as e:
            raise DocumentError(f"cannot serialize frontmatter: {e}", path)
        self._atomic_write(path, text + "\n")

    def _atomic_write(self, path: Path, text: str) -> None:
        """Write a document atomically to prevent corruption.

        Raises:
            DocumentError: If writing fails.
        """
        try:
            temp_fd, temp_path = tempfile.mkstemp(
                dir=path.parent, prefix=".tmp_trackdown_", suffix=".tmp"
            )
        except OSError as e:
            raise DocumentError(f"cannot write file: {e}", path)

        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as temp_file:
                temp_file.write(text)
            os.replace(temp_path, path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise DocumentError(f"cannot write file: {e}", path)
