"""
Tests for DocumentStore.

Tests cover:
- Parsing item documents into ItemRecords
- Typed DocumentError for every per-document failure
- Parent reference inconsistencies
- Directory scanning
- In-place frontmatter updates
"""

import os

import frontmatter
import pytest

from trackdown.exceptions import DocumentError
from trackdown.managers.document_store import DocumentStore
from trackdown.models.base import ItemType
from trackdown.models.files import NamingConfig


@pytest.fixture
def store():
    return DocumentStore()


class TestRead:
    """Test reading single documents."""

    def test_read_issue(self, store, docs):
        path = docs.issue(
            "ISS-0001",
            epic_id="EP-0001",
            title="Login flow",
            status="active",
            state="ready_for_qa",
            assignee="bob",
            tags=["auth"],
        )
        record = store.read(path, ItemType.ISSUE)
        assert record.id == "ISS-0001"
        assert record.type == ItemType.ISSUE
        assert record.title == "Login flow"
        assert record.epic_id == "EP-0001"
        assert record.effective_state == "ready_for_qa"
        assert record.assignee == "bob"
        assert record.tags == ["auth"]
        assert record.file_path == str(path)
        assert record.inconsistencies == []

    def test_type_comes_from_directory(self, store, docs):
        """Without a type field the scanned directory decides the type."""
        path = docs.task("TSK-0001", issue_id="ISS-0001")
        assert store.read(path, ItemType.TASK).type == ItemType.TASK

    def test_declared_type_must_match_directory(self, store, docs):
        path = docs.task("TSK-0001", issue_id="ISS-0001", type="issue")
        with pytest.raises(DocumentError, match="declares type 'issue'"):
            store.read(path, ItemType.TASK)

    def test_unknown_declared_type(self, store, docs):
        path = docs.task("TSK-0001", issue_id="ISS-0001", type="story")
        with pytest.raises(DocumentError, match="unknown item type"):
            store.read(path, ItemType.TASK)

    def test_id_prefix_must_match_type(self, store, docs):
        """An id from another type's namespace is rejected, not reclassified."""
        path = docs.write_raw(
            "task", "ISS-0007.md", "---\ntask_id: ISS-0007\ntitle: Wrong\n---\nbody\n"
        )
        with pytest.raises(DocumentError, match="expected prefix TSK-") as exc_info:
            store.read(path, ItemType.TASK)
        assert exc_info.value.path == path

    def test_generic_id_field(self, store, docs):
        path = docs.write_raw("epic", "EP-0002.md", "---\nid: EP-0002\ntitle: Generic\n---\n")
        assert store.read(path, ItemType.EPIC).id == "EP-0002"

    def test_missing_id(self, store, docs):
        path = docs.write_raw("epic", "nameless.md", "---\ntitle: No id\n---\n")
        with pytest.raises(DocumentError, match="missing epic_id"):
            store.read(path, ItemType.EPIC)

    def test_no_frontmatter(self, store, docs):
        path = docs.write_raw("epic", "EP-0003.md", "# Just a heading\n")
        with pytest.raises(DocumentError, match="no frontmatter"):
            store.read(path, ItemType.EPIC)

    def test_unparsable_frontmatter(self, store, docs):
        path = docs.write_raw("epic", "EP-0004.md", "---\ntitle: [unclosed\n---\n")
        with pytest.raises(DocumentError, match="unparsable frontmatter"):
            store.read(path, ItemType.EPIC)

    def test_invalid_field_value(self, store, docs):
        path = docs.epic("EP-0005", status="someday")
        with pytest.raises(DocumentError, match="invalid fields: status"):
            store.read(path, ItemType.EPIC)

    def test_missing_file(self, store, project_root):
        with pytest.raises(DocumentError, match="file not found"):
            store.read(project_root / "tasks" / "epics" / "EP-0404.md", ItemType.EPIC)

    def test_unassigned_is_none(self, store, docs):
        path = docs.task("TSK-0001", issue_id="ISS-0001", assignee="unassigned")
        assert store.read(path, ItemType.TASK).assignee is None

    def test_missing_timestamps_fall_back_to_mtime(self, store, docs):
        path = docs.epic("EP-0006", created_date=None, updated_date=None)
        os.utime(path, (1700000000, 1700000000))
        record = store.read(path, ItemType.EPIC)
        assert record.created_at.timestamp() == 1700000000
        assert record.updated_at == record.created_at

    def test_custom_prefixes(self, docs):
        store = DocumentStore(NamingConfig(task_prefix="T"))
        path = docs.write_raw("task", "T-1.md", "---\ntask_id: T-1\ntitle: Short\nissue_id: ISS-1\n---\n")
        assert store.read(path, ItemType.TASK).id == "T-1"


class TestInconsistencies:
    """Test parent reference checks recorded on the record."""

    def test_parent_with_wrong_prefix(self, store, docs):
        path = docs.task("TSK-0001", issue_id="EP-0001")
        record = store.read(path, ItemType.TASK)
        assert record.issue_id == "EP-0001"
        assert any("wrong prefix for type 'issue'" in i for i in record.inconsistencies)

    def test_task_without_issue(self, store, docs):
        path = docs.task("TSK-0001")
        record = store.read(path, ItemType.TASK)
        assert record.inconsistencies == ["task has no issue_id"]

    def test_epic_has_no_parent_checks(self, store, docs):
        path = docs.epic("EP-0001", issue_id="ISS-0001")
        record = store.read(path, ItemType.EPIC)
        assert record.issue_id is None
        assert record.inconsistencies == []


class TestScan:
    """Test directory scanning."""

    def test_scan_collects_errors(self, store, docs):
        docs.epic("EP-0001")
        docs.epic("EP-0002")
        docs.write_raw("epic", "broken.md", "no frontmatter here\n")
        result = store.scan(docs.type_dir("epic"), ItemType.EPIC)
        assert [r.id for r in result.records] == ["EP-0001", "EP-0002"]
        assert len(result.errors) == 1
        assert result.errors[0].path.name == "broken.md"

    def test_scan_ignores_other_extensions(self, store, docs):
        docs.epic("EP-0001")
        docs.write_raw("epic", "notes.txt", "---\nepic_id: EP-0009\ntitle: x\n---\n")
        result = store.scan(docs.type_dir("epic"), ItemType.EPIC)
        assert [r.id for r in result.records] == ["EP-0001"]

    def test_missing_directory_is_empty(self, store, temp_dir):
        result = store.scan(temp_dir / "does-not-exist", ItemType.PR)
        assert result.records == []
        assert result.errors == []

    def test_find_item_file(self, store, docs):
        docs.epic("EP-0001", slug="index-engine")
        docs.epic("EP-0010")
        directory = docs.type_dir("epic")
        assert store.find_item_file(directory, "EP-0001").name == "EP-0001-index-engine.md"
        assert store.find_item_file(directory, "EP-0010").name == "EP-0010.md"
        assert store.find_item_file(directory, "EP-0002") is None


class TestWriteFields:
    """Test in-place frontmatter updates."""

    def test_updates_keep_body_and_other_keys(self, store, docs):
        path = docs.task("TSK-0001", issue_id="ISS-0001", body="# Notes\n\nKeep me.\n", custom="x")
        store.write_fields(path, {"status": "active", "state": "ready_for_qa"})

        post = frontmatter.load(str(path))
        assert post["status"] == "active"
        assert post["state"] == "ready_for_qa"
        assert post["custom"] == "x"
        assert post["issue_id"] == "ISS-0001"
        assert "Keep me." in post.content

    def test_none_removes_key(self, store, docs):
        path = docs.task("TSK-0001", issue_id="ISS-0001", state="ready_for_qa")
        store.write_fields(path, {"state": None})
        assert "state" not in frontmatter.load(str(path)).metadata

    def test_nested_values(self, store, docs):
        path = docs.task("TSK-0001", issue_id="ISS-0001")
        store.write_fields(path, {"state_metadata": {"transitioned_by": "alice", "reason": "dup"}})
        record = store.read(path, ItemType.TASK)
        assert record.state_metadata.transitioned_by == "alice"
        assert record.state_metadata.reason == "dup"

    def test_no_temp_files_left(self, store, docs):
        path = docs.epic("EP-0001")
        store.write_fields(path, {"priority": "high"})
        assert sorted(p.name for p in path.parent.iterdir()) == ["EP-0001.md"]

    def test_missing_file(self, store, project_root):
        with pytest.raises(DocumentError, match="file not found"):
            store.write_fields(project_root / "tasks" / "epics" / "EP-0404.md", {"status": "active"})
