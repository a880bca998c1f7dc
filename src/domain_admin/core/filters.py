# src/domain_admin/core/filters.py
"""
Filter pipeline for command files.

Filters keep the header (including any command) unchanged, note the filter
that was applied, and keep only the projects and lists that match.
"""
from datetime import datetime
from typing import Callable, Optional
import logging

from domain_admin.core.document import (
    BeginDataMarker,
    Comment,
    Document,
    ListRecord,
    ProjectRecord,
)

logger = logging.getLogger(__name__)

ISSUES_LIST = 'issues'

ListPredicate = Callable[[ListRecord], bool]
ProjectTransform = Callable[[ProjectRecord], Optional[ProjectRecord]]


def filter_projects(document: Document, transform: ProjectTransform, description: str) -> Document:
    """Apply a project-level transform; projects mapped to None or to no lists are dropped."""
    records = list(document.header)
    records.append(Comment(f"Filter: {description}"))
    records.append(BeginDataMarker())

    kept = dropped = 0
    for record in document.data:
        if not isinstance(record, ProjectRecord):
            records.append(record)
            continue
        result = transform(record)
        if result is None or not result.lists:
            dropped += 1
            continue
        records.append(result)
        kept += 1

    logger.info(f"Filter '{description}': kept {kept} projects, dropped {dropped}")
    return Document(records)


def filter_lists(document: Document, predicate: ListPredicate, description: str) -> Document:
    """Keep only lists matching the predicate."""
    def transform(project: ProjectRecord) -> ProjectRecord:
        return project.with_lists(l for l in project.lists if predicate(l))

    return filter_projects(document, transform, description)


# ============================================================================
# PREDICATES
# ============================================================================

def _before(value: Optional[datetime], threshold: datetime) -> bool:
    if value is None:
        return False
    # Compare naive and aware timestamps on the wall clock
    if (value.tzinfo is None) != (threshold.tzinfo is None):
        value = value.replace(tzinfo=None)
        threshold = threshold.replace(tzinfo=None)
    return value < threshold


def created_before(threshold: datetime) -> ListPredicate:
    return lambda l: _before(l.created_at, threshold)


def archive_stale_before(threshold: datetime) -> ListPredicate:
    return lambda l: _before(l.updated_at, threshold)


def missing_from_mlm() -> ListPredicate:
    return lambda l: l.archive_status is not None and l.archive_status.is_missing


def archive_empty() -> ListPredicate:
    return lambda l: l.archive_status is not None and l.archive_status.is_empty


def name_not_equal(name: str) -> ListPredicate:
    return lambda l: l.name != name


def issues_lists(present: bool) -> ProjectTransform:
    """
    Correlate issue trackers with an "issues" list.

    Projects without an issue tracker are dropped. With present=False the
    result names the "issues" list to create where one does not exist yet;
    with present=True it keeps the existing "issues" list.
    """
    def transform(project: ProjectRecord) -> Optional[ProjectRecord]:
        if not project.issues:
            return None
        existing = [l for l in project.lists if l.name == ISSUES_LIST]
        if present:
            return project.with_lists(existing)
        if existing:
            return None
        return project.with_lists([ListRecord(ISSUES_LIST)])

    return transform
