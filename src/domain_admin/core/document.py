# src/domain_admin/core/document.py
"""
Data model for command files.

A command file is an ordered sequence of records: header comments, at most
one command header, a begin-data marker, then project records. Records are
immutable values; every pipeline stage builds a new Document.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


CREATE_LISTS = 'domain_admin_create_lists'
DELETE_LISTS = 'domain_admin_delete_lists'
COMMANDS = (CREATE_LISTS, DELETE_LISTS)


# ============================================================================
# ARCHIVE STATUS
# ============================================================================

class ArchiveState(str, Enum):
    """What the list manager knows about a list archive."""
    HAS_MESSAGES = "has_messages"
    EMPTY = "empty"
    MISSING = "missing"  # Feature exists in the API but not in the list manager


@dataclass(frozen=True)
class ArchiveStatus:
    """Classifier verdict; last_message is only set for HAS_MESSAGES."""
    state: ArchiveState
    last_message: Optional[datetime] = None

    def __post_init__(self):
        if self.last_message is not None and self.state != ArchiveState.HAS_MESSAGES:
            raise ValueError(f"last_message is only valid for {ArchiveState.HAS_MESSAGES.value}")

    @classmethod
    def has_messages(cls, last_message: Optional[datetime] = None) -> 'ArchiveStatus':
        return cls(ArchiveState.HAS_MESSAGES, last_message)

    @classmethod
    def empty(cls) -> 'ArchiveStatus':
        return cls(ArchiveState.EMPTY)

    @classmethod
    def missing(cls) -> 'ArchiveStatus':
        return cls(ArchiveState.MISSING)

    @property
    def is_empty(self) -> bool:
        return self.state == ArchiveState.EMPTY

    @property
    def is_missing(self) -> bool:
        return self.state == ArchiveState.MISSING

    @property
    def deletable(self) -> bool:
        """Safe to remove without force: nothing archived that could be lost."""
        return self.state in (ArchiveState.EMPTY, ArchiveState.MISSING)


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True)
class Comment:
    """Informational record; text may be None for a spacer line."""
    text: Optional[str] = None


@dataclass(frozen=True)
class CommandHeader:
    """Executable command with its flags (e.g. force)."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def force(self) -> bool:
        return bool(self.args.get('force', False))


@dataclass(frozen=True)
class BeginDataMarker:
    """Boundary between the header region and project data."""
    pass


@dataclass(frozen=True)
class ListRecord:
    name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archive_status: Optional[ArchiveStatus] = None

    @property
    def name_only(self) -> bool:
        return self.created_at is None and self.updated_at is None and self.archive_status is None


@dataclass(frozen=True)
class IssueRecord:
    name: str
    service: Optional[str] = None


@dataclass(frozen=True)
class ProjectRecord:
    project: str
    parent: Optional[str] = None
    lists: Tuple[ListRecord, ...] = ()
    issues: Optional[Tuple[IssueRecord, ...]] = None
    has_scm: Optional[bool] = None

    def __post_init__(self):
        # Accept any sequence, store tuples so records stay immutable
        object.__setattr__(self, 'lists', tuple(self.lists))
        if self.issues is not None:
            object.__setattr__(self, 'issues', tuple(self.issues))

    @property
    def list_names(self) -> List[str]:
        return [l.name for l in self.lists]

    def with_lists(self, lists) -> 'ProjectRecord':
        """Copy of this record holding a different list selection."""
        return ProjectRecord(
            project=self.project,
            parent=self.parent,
            lists=tuple(lists),
            issues=self.issues,
            has_scm=self.has_scm
        )


Record = Union[Comment, CommandHeader, BeginDataMarker, ProjectRecord]


# ============================================================================
# DOCUMENT
# ============================================================================

@dataclass(frozen=True)
class Document:
    """Ordered records of one command file."""
    records: Tuple[Record, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'records', tuple(self.records))

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def _marker_index(self) -> int:
        for i, record in enumerate(self.records):
            if isinstance(record, BeginDataMarker):
                return i
        raise ValueError("Document has no begin-data marker")

    @property
    def header(self) -> Tuple[Record, ...]:
        """Records before the begin-data marker."""
        return self.records[:self._marker_index()]

    @property
    def data(self) -> Tuple[Record, ...]:
        """Records after the begin-data marker."""
        return self.records[self._marker_index() + 1:]

    @property
    def command(self) -> Optional[CommandHeader]:
        for record in self.header:
            if isinstance(record, CommandHeader):
                return record
        return None

    @property
    def projects(self) -> List[ProjectRecord]:
        return [r for r in self.data if isinstance(r, ProjectRecord)]

    @property
    def executable(self) -> bool:
        return self.command is not None
