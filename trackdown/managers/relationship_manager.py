"""
RelationshipManager for the trackdown index.

Builds hierarchy views and reverse lookups over the records held by the
IndexManager. The derived graph lives only in memory and is rebuilt when
the index generation changes, when its TTL runs out, or on request.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from trackdown.managers.index_manager import IndexManager
from trackdown.models.base import INDEXED_TYPES, ItemRecord, ItemType
from trackdown.models.files import IndexFile
from trackdown.models.results import (
    CacheStats,
    EpicHierarchy,
    IssueHierarchy,
    PRHierarchy,
    RelatedItems,
    RelationshipIssue,
    RelationshipValidation,
    SearchFilters,
    SearchResult,
    TaskHierarchy,
)
from trackdown.utils import insert_sorted

logger = logging.getLogger(__name__)


@dataclass
class RelationshipGraph:
    """Parent/child and dependency maps derived from one index generation."""

    generation: int
    built_at: float
    by_id: Dict[str, ItemRecord] = field(default_factory=dict)
    epic_issues: Dict[str, List[str]] = field(default_factory=dict)
    epic_tasks: Dict[str, List[str]] = field(default_factory=dict)
    epic_prs: Dict[str, List[str]] = field(default_factory=dict)
    issue_tasks: Dict[str, List[str]] = field(default_factory=dict)
    issue_prs: Dict[str, List[str]] = field(default_factory=dict)
    dependents: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def build(cls, index: IndexFile, generation: int) -> "RelationshipGraph":
        graph = cls(generation=generation, built_at=time.monotonic())
        for record in index.all_items():
            graph.by_id[record.id] = record

        for epic in index.epics.values():
            graph.epic_issues[epic.id] = [i for i in epic.issue_ids if i in index.issues]
        for issue in index.issues.values():
            graph.issue_tasks[issue.id] = [t for t in issue.task_ids if t in index.tasks]
            graph.issue_prs[issue.id] = [p for p in issue.pr_ids if p in index.prs]

        # Tasks and PRs belong to an epic through their issue or a direct epic_id.
        for targets, records in (
            (graph.epic_tasks, index.tasks.values()),
            (graph.epic_prs, index.prs.values()),
        ):
            for record in records:
                for epic_id in graph._epics_of(record, index):
                    insert_sorted(targets.setdefault(epic_id, []), record.id)

        for record in index.all_items():
            for target in record.dependencies + record.blocked_by:
                if target != record.id:
                    insert_sorted(graph.dependents.setdefault(target, []), record.id)
        return graph

    @staticmethod
    def _epics_of(record: ItemRecord, index: IndexFile) -> Set[str]:
        epics = set()
        if record.epic_id in index.epics:
            epics.add(record.epic_id)
        issue = index.issues.get(record.issue_id) if record.issue_id else None
        if issue is not None and issue.epic_id in index.epics:
            epics.add(issue.epic_id)
        return epics

    def records(self, ids: Iterable[str]) -> List[ItemRecord]:
        return [self.by_id[i] for i in ids if i in self.by_id]

    def lookup(self, item_id: Optional[str], item_type: ItemType) -> Optional[ItemRecord]:
        """Record by id if it exists and has the given type."""
        if not item_id:
            return None
        record = self.by_id.get(item_id)
        if record is None or record.type != item_type:
            return None
        return record


class RelationshipManager:
    """
    Resolves hierarchies and cross-item references.

    Handles:
    - Epic/issue/task/PR hierarchy views
    - Dependents, dependencies, blockers and siblings of an item
    - Parent/child lookup
    - Relationship validation (dangling references, dependency cycles)
    - Filtered search over all items
    """

    def __init__(self, index_manager: IndexManager, ttl: Optional[float] = None) -> None:
        """
        Initialize RelationshipManager.

        Args:
            index_manager: Source of item records and of the cache generation.
            ttl: Seconds a built graph is trusted. Defaults to the config value.
        """
        self.index_manager = index_manager
        self.ttl = ttl if ttl is not None else index_manager.config.relationship_cache_ttl
        self._graph: Optional[RelationshipGraph] = None

    def _is_stale(self, graph: Optional[RelationshipGraph]) -> bool:
        if graph is None:
            return True
        if graph.generation != self.index_manager.generation:
            return True
        return time.monotonic() - graph.built_at >= self.ttl

    def graph(self) -> RelationshipGraph:
        """Current graph, rebuilt if the index has moved on."""
        index = self.index_manager.load_index()
        if self._is_stale(self._graph):
            self._graph = RelationshipGraph.build(index, self.index_manager.generation)
            logger.debug("Built relationship graph for generation %d", self._graph.generation)
        return self._graph

    def rebuild_cache(self) -> None:
        """Drop the derived graph; the index itself is untouched."""
        self._graph = None

    # =========================================================================
    # Hierarchies
    # =========================================================================

    def get_epic_hierarchy(self, epic_id: str) -> Optional[EpicHierarchy]:
        """An epic with its issues and every task and PR under it."""
        graph = self.graph()
        epic = graph.lookup(epic_id, ItemType.EPIC)
        if epic is None:
            return None
        return EpicHierarchy(
            epic=epic,
            issues=graph.records(graph.epic_issues.get(epic_id, [])),
            tasks=graph.records(graph.epic_tasks.get(epic_id, [])),
            prs=graph.records(graph.epic_prs.get(epic_id, [])),
        )

    def get_issue_hierarchy(self, issue_id: str) -> Optional[IssueHierarchy]:
        """An issue with its tasks, PRs and epic."""
        graph = self.graph()
        issue = graph.lookup(issue_id, ItemType.ISSUE)
        if issue is None:
            return None
        return IssueHierarchy(
            issue=issue,
            tasks=graph.records(graph.issue_tasks.get(issue_id, [])),
            prs=graph.records(graph.issue_prs.get(issue_id, [])),
            epic=graph.lookup(issue.epic_id, ItemType.EPIC),
        )

    def _ancestors(
        self, graph: RelationshipGraph, record: ItemRecord
    ) -> Tuple[Optional[ItemRecord], Optional[ItemRecord]]:
        issue = graph.lookup(record.issue_id, ItemType.ISSUE)
        epic = graph.lookup(record.epic_id, ItemType.EPIC)
        if epic is None and issue is not None:
            epic = graph.lookup(issue.epic_id, ItemType.EPIC)
        return issue, epic

    def get_task_hierarchy(self, task_id: str) -> Optional[TaskHierarchy]:
        graph = self.graph()
        task = graph.lookup(task_id, ItemType.TASK)
        if task is None:
            return None
        issue, epic = self._ancestors(graph, task)
        return TaskHierarchy(task=task, issue=issue, epic=epic)

    def get_pr_hierarchy(self, pr_id: str) -> Optional[PRHierarchy]:
        graph = self.graph()
        pr = graph.lookup(pr_id, ItemType.PR)
        if pr is None:
            return None
        issue, epic = self._ancestors(graph, pr)
        return PRHierarchy(pr=pr, issue=issue, epic=epic)

    # =========================================================================
    # Related items
    # =========================================================================

    def get_related_items(self, item_id: str) -> Optional[RelatedItems]:
        """Items linked to one item. None if the item isn't indexed."""
        graph = self.graph()
        record = graph.by_id.get(item_id)
        if record is None:
            return None

        siblings: List[ItemRecord] = []
        parent_id = record.parent_id
        if parent_id:
            siblings = [
                other
                for other in graph.by_id.values()
                if other.type == record.type
                and other.parent_id == parent_id
                and other.id != record.id
            ]

        return RelatedItems(
            dependents=graph.records(graph.dependents.get(item_id, [])),
            dependencies=graph.records(record.dependencies),
            blocked_by=graph.records(record.blocked_by),
            blocks=graph.records(record.blocks),
            siblings=siblings,
        )

    def get_dependents(self, item_id: str) -> List[ItemRecord]:
        """Items whose dependencies or blocked_by list names item_id."""
        graph = self.graph()
        return graph.records(graph.dependents.get(item_id, []))

    def get_children(self, parent_id: str, parent_type: ItemType) -> List[ItemRecord]:
        """Direct children: issues of an epic, tasks and PRs of an issue."""
        graph = self.graph()
        if parent_type == ItemType.EPIC:
            return graph.records(graph.epic_issues.get(parent_id, []))
        if parent_type == ItemType.ISSUE:
            return graph.records(
                graph.issue_tasks.get(parent_id, []) + graph.issue_prs.get(parent_id, [])
            )
        return []

    def get_parent(self, child_id: str, child_type: ItemType) -> Optional[ItemRecord]:
        """Immediate parent: the issue of a task or PR, the epic of an issue."""
        graph = self.graph()
        child = graph.lookup(child_id, child_type)
        if child is None:
            return None
        return graph.by_id.get(child.parent_id) if child.parent_id else None

    def get_all_epics(self) -> List[ItemRecord]:
        return self.index_manager.get_items_by_type(ItemType.EPIC)

    def get_all_issues(self) -> List[ItemRecord]:
        return self.index_manager.get_items_by_type(ItemType.ISSUE)

    def get_all_tasks(self) -> List[ItemRecord]:
        return self.index_manager.get_items_by_type(ItemType.TASK)

    def get_all_prs(self) -> List[ItemRecord]:
        return self.index_manager.get_items_by_type(ItemType.PR)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_relationships(self) -> RelationshipValidation:
        """Check every reference between items.

        Errors: parent references to missing items, dependency cycles.
        Warnings: dangling dependency references, a task or PR whose epic
        differs from its issue's epic, and inconsistencies found at parse time.
        """
        graph = self.graph()
        errors: List[RelationshipIssue] = []
        warnings: List[RelationshipIssue] = []

        for record in graph.by_id.values():
            if record.epic_id and graph.lookup(record.epic_id, ItemType.EPIC) is None:
                errors.append(
                    RelationshipIssue(
                        field="epic_id",
                        message=f"{record.id} references missing epic {record.epic_id}",
                    )
                )
            if record.issue_id and graph.lookup(record.issue_id, ItemType.ISSUE) is None:
                errors.append(
                    RelationshipIssue(
                        field="issue_id",
                        message=f"{record.id} references missing issue {record.issue_id}",
                    )
                )

            for field_name in ("dependencies", "blocked_by", "blocks"):
                for target in getattr(record, field_name):
                    if target not in graph.by_id:
                        warnings.append(
                            RelationshipIssue(
                                field=field_name,
                                message=f"{record.id} references unknown item {target}",
                                severity="warning",
                            )
                        )

            if record.type in (ItemType.TASK, ItemType.PR) and record.epic_id:
                issue = graph.lookup(record.issue_id, ItemType.ISSUE)
                if issue is not None and issue.epic_id and issue.epic_id != record.epic_id:
                    warnings.append(
                        RelationshipIssue(
                            field="epic_id",
                            message=(
                                f"{record.id} has epic {record.epic_id} but its issue "
                                f"{issue.id} has epic {issue.epic_id}"
                            ),
                            severity="warning",
                        )
                    )

            for problem in record.inconsistencies:
                warnings.append(
                    RelationshipIssue(
                        field="inconsistencies",
                        message=f"{record.id}: {problem}",
                        severity="warning",
                    )
                )

        for cycle in self._find_cycles(graph):
            errors.append(
                RelationshipIssue(
                    field="dependencies",
                    message="Dependency cycle: " + " -> ".join(cycle),
                )
            )

        return RelationshipValidation(valid=not errors, errors=errors, warnings=warnings)

    @staticmethod
    def _find_cycles(graph: RelationshipGraph) -> List[List[str]]:
        """Cycles in the depends-on graph, each reported once."""
        edges = {
            item_id: [t for t in record.dependencies + record.blocked_by if t in graph.by_id]
            for item_id, record in graph.by_id.items()
        }
        visiting: Set[str] = set()
        done: Set[str] = set()
        seen: Set[frozenset] = set()
        cycles: List[List[str]] = []

        def visit(node: str, trail: List[str]) -> None:
            visiting.add(node)
            trail.append(node)
            for target in edges[node]:
                if target in visiting:
                    cycle = trail[trail.index(target):] + [target]
                    key = frozenset(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(cycle)
                elif target not in done:
                    visit(target, trail)
            trail.pop()
            visiting.discard(node)
            done.add(node)

        for node in sorted(edges):
            if node not in done:
                visit(node, [])
        return cycles

    # =========================================================================
    # Search
    # =========================================================================

    def search(self, filters: SearchFilters) -> SearchResult:
        """Items matching every given filter, ordered by type then id."""
        graph = self.graph()
        types = filters.types or list(INDEXED_TYPES)
        title = filters.title_contains.lower() if filters.title_contains else None

        items: List[ItemRecord] = []
        for item_type in INDEXED_TYPES:
            if item_type not in types:
                continue
            for record in sorted(
                (r for r in graph.by_id.values() if r.type == item_type),
                key=lambda r: r.id,
            ):
                if filters.status and not (
                    record.effective_state in filters.status or record.status in filters.status
                ):
                    continue
                if filters.priority and record.priority.value not in filters.priority:
                    continue
                if filters.assignee and record.assignee not in filters.assignee:
                    continue
                if filters.tags and not set(filters.tags) & set(record.tags):
                    continue
                if filters.created_after and record.created_at < filters.created_after:
                    continue
                if filters.created_before and record.created_at > filters.created_before:
                    continue
                if filters.updated_after and record.updated_at < filters.updated_after:
                    continue
                if filters.updated_before and record.updated_at > filters.updated_before:
                    continue
                if title and title not in record.title.lower():
                    continue
                items.append(record)

        return SearchResult(items=items, total_count=len(items), filters=filters)

    def get_cache_stats(self) -> CacheStats:
        graph = self._graph
        if graph is None:
            return CacheStats(is_stale=True)
        counts = {t: 0 for t in INDEXED_TYPES}
        for record in graph.by_id.values():
            counts[record.type] += 1
        return CacheStats(
            epics=counts[ItemType.EPIC],
            issues=counts[ItemType.ISSUE],
            tasks=counts[ItemType.TASK],
            prs=counts[ItemType.PR],
            built_at=graph.built_at,
            generation=graph.generation,
            is_stale=self._is_stale(graph),
        )
