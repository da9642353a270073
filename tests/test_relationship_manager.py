"""
Tests for RelationshipManager.

Tests cover:
- Epic/issue/task/PR hierarchy views
- Related items, dependents, children and parents
- Graph invalidation through the index generation
- Relationship validation
- Filtered search
"""

from trackdown.models.base import ItemType
from trackdown.models.results import SearchFilters


def ids(records):
    return [r.id for r in records]


# =============================================================================
# Hierarchies
# =============================================================================


class TestHierarchies:
    """Test hierarchy views."""

    def test_epic_hierarchy(self, relationships):
        hierarchy = relationships.get_epic_hierarchy("EP-0001")
        assert hierarchy.epic.id == "EP-0001"
        assert ids(hierarchy.issues) == ["ISS-0001", "ISS-0002"]
        assert ids(hierarchy.tasks) == ["TSK-0001", "TSK-0002"]
        assert ids(hierarchy.prs) == ["PR-0001"]

    def test_epic_hierarchy_contains_every_listed_issue(self, relationships, index_manager):
        epic = index_manager.get_item_by_id("epic", "EP-0001")
        hierarchy = relationships.get_epic_hierarchy("EP-0001")
        assert set(epic.issue_ids) <= set(ids(hierarchy.issues))

    def test_unknown_or_wrong_type(self, relationships):
        assert relationships.get_epic_hierarchy("EP-0404") is None
        assert relationships.get_epic_hierarchy("ISS-0001") is None
        assert relationships.get_task_hierarchy("PR-0001") is None

    def test_issue_hierarchy(self, relationships):
        hierarchy = relationships.get_issue_hierarchy("ISS-0001")
        assert ids(hierarchy.tasks) == ["TSK-0001", "TSK-0002"]
        assert ids(hierarchy.prs) == ["PR-0001"]
        assert hierarchy.epic.id == "EP-0001"

    def test_issue_without_children(self, relationships):
        hierarchy = relationships.get_issue_hierarchy("ISS-0002")
        assert hierarchy.tasks == []
        assert hierarchy.prs == []

    def test_task_hierarchy(self, relationships):
        hierarchy = relationships.get_task_hierarchy("TSK-0002")
        assert hierarchy.task.id == "TSK-0002"
        assert hierarchy.issue.id == "ISS-0001"
        assert hierarchy.epic.id == "EP-0001"

    def test_task_epic_through_issue(self, relationships, index_manager, sample_project):
        """A task without epic_id still belongs to its issue's epic."""
        sample_project.task("TSK-0003", issue_id="ISS-0002")
        index_manager.update_item("task", "TSK-0003")

        assert relationships.get_task_hierarchy("TSK-0003").epic.id == "EP-0001"
        assert "TSK-0003" in ids(relationships.get_epic_hierarchy("EP-0001").tasks)

    def test_pr_hierarchy(self, relationships):
        hierarchy = relationships.get_pr_hierarchy("PR-0001")
        assert hierarchy.pr.pr_status == "open"
        assert hierarchy.issue.id == "ISS-0001"
        assert hierarchy.epic.id == "EP-0001"

    def test_orphan_task_has_no_ancestors(self, relationships, sample_project):
        sample_project.task("TSK-0003", issue_id="ISS-0404")
        hierarchy = relationships.get_task_hierarchy("TSK-0003")
        assert hierarchy.issue is None
        assert hierarchy.epic is None


# =============================================================================
# Related items
# =============================================================================


class TestRelatedItems:
    """Test reverse lookups."""

    def test_dependents_and_siblings(self, relationships):
        related = relationships.get_related_items("TSK-0001")
        assert ids(related.dependents) == ["TSK-0002"]
        assert ids(related.siblings) == ["TSK-0002"]
        assert related.dependencies == []

    def test_dependencies(self, relationships):
        related = relationships.get_related_items("TSK-0002")
        assert ids(related.dependencies) == ["TSK-0001"]
        assert related.dependents == []

    def test_siblings_share_type(self, relationships):
        related = relationships.get_related_items("PR-0001")
        assert related.siblings == []

    def test_blocked_by_counts_as_dependent(self, relationships, sample_project):
        sample_project.task("TSK-0003", issue_id="ISS-0002", blocked_by=["TSK-0001"])
        assert ids(relationships.get_dependents("TSK-0001")) == ["TSK-0002", "TSK-0003"]
        assert ids(relationships.get_related_items("TSK-0003").blocked_by) == ["TSK-0001"]

    def test_unknown_item(self, relationships):
        assert relationships.get_related_items("TSK-0404") is None

    def test_children(self, relationships):
        assert ids(relationships.get_children("EP-0001", ItemType.EPIC)) == ["ISS-0001", "ISS-0002"]
        assert ids(relationships.get_children("ISS-0001", ItemType.ISSUE)) == [
            "TSK-0001",
            "TSK-0002",
            "PR-0001",
        ]
        assert relationships.get_children("TSK-0001", ItemType.TASK) == []

    def test_parent(self, relationships):
        assert relationships.get_parent("TSK-0001", ItemType.TASK).id == "ISS-0001"
        assert relationships.get_parent("ISS-0001", ItemType.ISSUE).id == "EP-0001"
        assert relationships.get_parent("EP-0001", ItemType.EPIC) is None
        assert relationships.get_parent("TSK-0001", ItemType.PR) is None

    def test_get_all(self, relationships):
        assert ids(relationships.get_all_epics()) == ["EP-0001"]
        assert ids(relationships.get_all_issues()) == ["ISS-0001", "ISS-0002"]
        assert ids(relationships.get_all_tasks()) == ["TSK-0001", "TSK-0002"]
        assert ids(relationships.get_all_prs()) == ["PR-0001"]


# =============================================================================
# Cache
# =============================================================================


class TestGraphCache:
    """Test graph reuse and invalidation."""

    def test_graph_reused(self, relationships):
        assert relationships.graph() is relationships.graph()

    def test_index_update_invalidates_graph(self, relationships, index_manager, sample_project):
        """A change made through the index is visible without waiting for the TTL."""
        relationships.get_epic_hierarchy("EP-0001")
        sample_project.issue("ISS-0003", epic_id="EP-0001")
        index_manager.update_item("issue", "ISS-0003")

        hierarchy = relationships.get_epic_hierarchy("EP-0001")
        assert ids(hierarchy.issues) == ["ISS-0001", "ISS-0002", "ISS-0003"]

    def test_reload_without_change_keeps_graph(self, relationships, index_manager):
        """Re-reading the index file after its TTL is not a mutation."""
        first = relationships.graph()
        generation = index_manager.generation
        index_manager.cache_ttl = 0

        assert relationships.get_related_items("TSK-0001") is not None
        assert relationships.graph() is first
        assert index_manager.generation == generation

    def test_index_rebuild_invalidates_graph(self, relationships, index_manager):
        first = relationships.graph()
        index_manager.rebuild_index()
        assert relationships.graph() is not first

    def test_rebuild_cache(self, relationships):
        first = relationships.graph()
        relationships.rebuild_cache()
        assert relationships.get_cache_stats().is_stale is True
        assert relationships.graph() is not first

    def test_expired_ttl(self, relationships):
        relationships.ttl = 0
        first = relationships.graph()
        assert relationships.graph() is not first

    def test_cache_stats(self, relationships, index_manager):
        assert relationships.get_cache_stats().is_stale is True

        relationships.graph()
        stats = relationships.get_cache_stats()
        assert stats.is_stale is False
        assert (stats.epics, stats.issues, stats.tasks, stats.prs) == (1, 2, 2, 1)
        assert stats.generation == index_manager.generation

        index_manager.update_item("epic", "EP-0001")
        assert relationships.get_cache_stats().is_stale is True


# =============================================================================
# Validation
# =============================================================================


class TestValidateRelationships:
    """Test relationship validation."""

    def test_sample_is_valid(self, relationships):
        result = relationships.validate_relationships()
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_missing_epic(self, relationships, sample_project):
        sample_project.issue("ISS-0003", epic_id="EP-0404")
        result = relationships.validate_relationships()
        assert result.valid is False
        assert [e.message for e in result.errors] == ["ISS-0003 references missing epic EP-0404"]

    def test_missing_issue(self, relationships, sample_project):
        sample_project.pr("PR-0002", issue_id="ISS-0404")
        result = relationships.validate_relationships()
        assert [e.field for e in result.errors] == ["issue_id"]

    def test_dependency_cycle(self, relationships, sample_project):
        sample_project.task(
            "TSK-0001", issue_id="ISS-0001", epic_id="EP-0001", dependencies=["TSK-0002"]
        )
        result = relationships.validate_relationships()
        assert result.valid is False
        assert [e.message for e in result.errors] == [
            "Dependency cycle: TSK-0001 -> TSK-0002 -> TSK-0001"
        ]

    def test_self_dependency_is_a_cycle(self, relationships, sample_project):
        sample_project.task("TSK-0003", issue_id="ISS-0002", blocked_by=["TSK-0003"])
        result = relationships.validate_relationships()
        assert [e.message for e in result.errors] == ["Dependency cycle: TSK-0003 -> TSK-0003"]

    def test_unknown_dependency_warns(self, relationships, sample_project):
        sample_project.task("TSK-0003", issue_id="ISS-0002", blocks=["TSK-0404"])
        result = relationships.validate_relationships()
        assert result.valid is True
        assert [(w.field, w.severity) for w in result.warnings] == [("blocks", "warning")]

    def test_epic_mismatch_warns(self, relationships, sample_project):
        sample_project.epic("EP-0002")
        sample_project.task("TSK-0003", issue_id="ISS-0001", epic_id="EP-0002")
        result = relationships.validate_relationships()
        assert result.valid is True
        assert len(result.warnings) == 1
        assert "its issue ISS-0001 has epic EP-0001" in result.warnings[0].message

    def test_inconsistencies_reported(self, relationships, sample_project):
        sample_project.task("TSK-0003", issue_id="EP-0001")
        result = relationships.validate_relationships()
        assert any(w.field == "inconsistencies" for w in result.warnings)
        assert any(e.field == "issue_id" for e in result.errors)


# =============================================================================
# Search
# =============================================================================


class TestSearch:
    """Test filtered search."""

    def test_no_filters_orders_by_type_then_id(self, relationships):
        result = relationships.search(SearchFilters())
        assert ids(result.items) == [
            "EP-0001",
            "ISS-0001",
            "ISS-0002",
            "TSK-0001",
            "TSK-0002",
            "PR-0001",
        ]
        assert result.total_count == 6

    def test_status(self, relationships):
        assert ids(relationships.search(SearchFilters(status=["active"])).items) == ["ISS-0001"]

    def test_status_matches_resolution_state(self, relationships, sample_project):
        sample_project.task("TSK-0003", issue_id="ISS-0002", status="active", state="ready_for_qa")
        result = relationships.search(SearchFilters(status=["ready_for_qa"]))
        assert ids(result.items) == ["TSK-0003"]

    def test_tags_match_any(self, relationships):
        result = relationships.search(SearchFilters(tags=["index", "unrelated"]))
        assert ids(result.items) == ["TSK-0002"]

    def test_assignee_and_priority(self, relationships):
        assert ids(relationships.search(SearchFilters(assignee=["alice"])).items) == ["TSK-0002"]
        assert ids(relationships.search(SearchFilters(priority=["high"])).items) == ["EP-0001"]

    def test_types_and_status_combined(self, relationships):
        filters = SearchFilters(types=[ItemType.TASK], status=["planning"])
        assert ids(relationships.search(filters).items) == ["TSK-0001", "TSK-0002"]

    def test_title_case_insensitive(self, relationships):
        result = relationships.search(SearchFilters(title_contains="PERSIST"))
        assert ids(result.items) == ["TSK-0002"]

    def test_date_range(self, relationships):
        assert relationships.search(SearchFilters(created_after="2030-01-01")).items == []
        result = relationships.search(SearchFilters(updated_before="2025-01-15"))
        assert result.total_count == 6
