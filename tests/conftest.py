"""
Test fixtures for the trackdown test suite.

Provides:
- Temporary project roots with the standard tasks/ layout
- A document builder for writing Markdown + frontmatter item files
- A small sample project (one epic, two issues, two tasks, one PR)
"""

import shutil
import tempfile
from pathlib import Path
from typing import Generator, Optional

import frontmatter
import pytest

from trackdown.core import TrackdownCore
from trackdown.models.base import ItemRecord, ItemType

TYPE_DIRS = {"epic": "epics", "issue": "issues", "task": "tasks", "pr": "prs"}

DEFAULT_CREATED = "2025-01-14T10:00:00Z"


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = Path(tempfile.mkdtemp(prefix="trackdown_test_"))
    yield temp_path
    # Cleanup
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def project_root(temp_dir: Path) -> Path:
    """Create a project root with empty item directories."""
    for dir_name in TYPE_DIRS.values():
        (temp_dir / "tasks" / dir_name).mkdir(parents=True)
    return temp_dir


# =============================================================================
# Document Builder
# =============================================================================


class DocumentBuilder:
    """Helper class for writing item documents into a project root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.tasks_root = root / "tasks"

    def type_dir(self, item_type: str) -> Path:
        return self.tasks_root / TYPE_DIRS[item_type]

    def path_for(self, item_type: str, item_id: str) -> Path:
        matches = sorted(self.type_dir(item_type).glob(f"{item_id}*.md"))
        return matches[0] if matches else self.type_dir(item_type) / f"{item_id}.md"

    def write(
        self,
        item_type: str,
        item_id: str,
        title: Optional[str] = None,
        slug: Optional[str] = None,
        body: Optional[str] = None,
        **fields,
    ) -> Path:
        """Write a document; None-valued fields are left out."""
        metadata = {
            f"{item_type}_id": item_id,
            "title": title or f"{item_id} title",
            "status": "planning",
            "priority": "medium",
            "created_date": DEFAULT_CREATED,
            "updated_date": DEFAULT_CREATED,
        }
        metadata.update(fields)
        metadata = {k: v for k, v in metadata.items() if v is not None}

        directory = self.type_dir(item_type)
        directory.mkdir(parents=True, exist_ok=True)
        name = f"{item_id}-{slug}.md" if slug else f"{item_id}.md"
        path = directory / name
        post = frontmatter.Post(body if body is not None else f"# {metadata['title']}\n", **metadata)
        path.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8")
        return path

    def write_raw(self, item_type: str, name: str, text: str) -> Path:
        directory = self.type_dir(item_type)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(text, encoding="utf-8")
        return path

    def epic(self, item_id: str, **fields) -> Path:
        return self.write("epic", item_id, **fields)

    def issue(self, item_id: str, epic_id: Optional[str] = None, **fields) -> Path:
        return self.write("issue", item_id, epic_id=epic_id, **fields)

    def task(self, item_id: str, issue_id: Optional[str] = None, **fields) -> Path:
        return self.write("task", item_id, issue_id=issue_id, **fields)

    def pr(self, item_id: str, issue_id: Optional[str] = None, **fields) -> Path:
        return self.write("pr", item_id, issue_id=issue_id, **fields)

    def read(self, item_type: str, item_id: str) -> frontmatter.Post:
        return frontmatter.load(str(self.path_for(item_type, item_id)))

    def delete(self, item_type: str, item_id: str) -> None:
        self.path_for(item_type, item_id).unlink()


@pytest.fixture
def docs(project_root: Path) -> DocumentBuilder:
    """Document builder bound to the temporary project root."""
    return DocumentBuilder(project_root)


@pytest.fixture
def sample_project(docs: DocumentBuilder) -> DocumentBuilder:
    """Write a small project.

    EP-0001
      ISS-0001: TSK-0001, TSK-0002 (depends on TSK-0001), PR-0001
      ISS-0002
    """
    docs.epic("EP-0001", title="Index engine", slug="index-engine", priority="high")
    docs.issue("ISS-0001", epic_id="EP-0001", title="Rebuild command", status="active")
    docs.issue("ISS-0002", epic_id="EP-0001", title="Health command")
    docs.task("TSK-0001", issue_id="ISS-0001", epic_id="EP-0001", title="Scan directories")
    docs.task(
        "TSK-0002",
        issue_id="ISS-0001",
        epic_id="EP-0001",
        title="Persist index",
        dependencies=["TSK-0001"],
        assignee="alice",
        tags=["storage", "index"],
    )
    docs.pr("PR-0001", issue_id="ISS-0001", epic_id="EP-0001", title="Add rebuild", pr_status="open")
    return docs


@pytest.fixture
def core(project_root: Path, sample_project: DocumentBuilder) -> TrackdownCore:
    """TrackdownCore over the sample project."""
    return TrackdownCore(project_root)


@pytest.fixture
def index_manager(core: TrackdownCore):
    return core.index_manager


@pytest.fixture
def relationships(core: TrackdownCore):
    return core.relationships


# =============================================================================
# Helpers
# =============================================================================


def build_item(**overrides) -> ItemRecord:
    """Build an ItemRecord without touching disk."""
    data = {
        "id": "TSK-0001",
        "type": ItemType.TASK,
        "title": "A task",
        "status": "planning",
        "created_at": DEFAULT_CREATED,
        "updated_at": DEFAULT_CREATED,
        "file_path": "/nonexistent/TSK-0001.md",
        "issue_id": "ISS-0001",
    }
    data.update(overrides)
    return ItemRecord(**data)


@pytest.fixture
def make_item():
    """Factory fixture for in-memory ItemRecords."""
    return build_item
