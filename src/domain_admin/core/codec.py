# src/domain_admin/core/codec.py
"""
YAML codec for command files.

A command file is a YAML stream whose documents are sequences; the sequences
are concatenated on read. This lets discovery append one page at a time and
still produce a loadable file if it is interrupted.

Record shapes:
    {comment: text}                  Comment
    {command: name, <flag>: value}   CommandHeader
    {begin_data: true}               BeginDataMarker
    [{project: p}, {parent: q}, ...] ProjectRecord (merged left to right)
"""
import io
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, TextIO
import logging

import yaml

from domain_admin.core.document import (
    ArchiveState,
    ArchiveStatus,
    BeginDataMarker,
    Comment,
    CommandHeader,
    Document,
    IssueRecord,
    ListRecord,
    ProjectRecord,
)
from domain_admin.errors import DomainAdminError

logger = logging.getLogger(__name__)

PROJECT_KEYS = ('project', 'parent', 'lists', 'issues', 'has_scm')
LIST_KEYS = ('name', 'created_at', 'updated_at', 'archive')
ISSUE_KEYS = ('name', 'service')


# ============================================================================
# ENCODING
# ============================================================================

def format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _encode_archive(status: ArchiveStatus) -> Any:
    if status.state == ArchiveState.HAS_MESSAGES:
        return {'last_message': format_time(status.last_message)}
    return status.state.value


def _encode_list(record: ListRecord) -> Any:
    if record.name_only:
        return record.name
    data = {'name': record.name}
    if record.created_at is not None:
        data['created_at'] = format_time(record.created_at)
    if record.updated_at is not None:
        data['updated_at'] = format_time(record.updated_at)
    if record.archive_status is not None:
        data['archive'] = _encode_archive(record.archive_status)
    return data


def _encode_issue(record: IssueRecord) -> Any:
    if record.service is None:
        return record.name
    return {'name': record.name, 'service': record.service}


def encode_record(record) -> Any:
    """Plain YAML-ready value for one record."""
    if isinstance(record, Comment):
        return {'comment': record.text}
    if isinstance(record, CommandHeader):
        return {'command': record.name, **record.args}
    if isinstance(record, BeginDataMarker):
        return {'begin_data': True}
    if isinstance(record, ProjectRecord):
        group = [
            {'project': record.project},
            {'parent': record.parent},
            {'lists': [_encode_list(l) for l in record.lists]},
        ]
        if record.issues is not None:
            group.append({'issues': [_encode_issue(i) for i in record.issues]})
        if record.has_scm is not None:
            group.append({'has_scm': record.has_scm})
        return group
    raise TypeError(f"Cannot encode record of type {type(record).__name__}")


class DocumentWriter:
    """Writes a command file incrementally, one YAML document per call."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.header_written = False

    def write(self, records: Iterable) -> None:
        values = [encode_record(r) for r in records]
        if not values:
            return
        yaml.safe_dump(
            values,
            self.stream,
            explicit_start=True,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True
        )
        self.stream.flush()

    def write_header(self, records: Iterable) -> None:
        """Write header records followed by the begin-data marker."""
        records = list(records)
        if not records or not isinstance(records[-1], BeginDataMarker):
            records.append(BeginDataMarker())
        self.write(records)
        self.header_written = True

    def write_fragment(self, records: Iterable) -> None:
        """Append data records (page comments and projects)."""
        if not self.header_written:
            raise RuntimeError("write_header() must be called before write_fragment()")
        self.write(records)


def encode(document: Document) -> str:
    """Serialize a document: one YAML document for the header, one for the data."""
    out = io.StringIO()
    writer = DocumentWriter(out)
    records = list(document.records)
    split = next((i + 1 for i, r in enumerate(records) if isinstance(r, BeginDataMarker)), len(records))
    writer.write(records[:split])
    writer.write(records[split:])
    return out.getvalue()


# ============================================================================
# DECODING
# ============================================================================

def parse_time(value: Any, what: str) -> Optional[datetime]:
    """Accept ISO strings and YAML timestamps."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    raise MalformedDocument(f"Bad {what} timestamp: {value!r}")


def _as_name(value: Any, what: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise MalformedDocument(f"Expected a name for {what} but got: {value!r}")
    return str(value)


def _decode_archive(value: Any) -> Optional[ArchiveStatus]:
    if value is None:
        return None
    if value == ArchiveState.EMPTY.value:
        return ArchiveStatus.empty()
    if value == ArchiveState.MISSING.value:
        return ArchiveStatus.missing()
    if value == ArchiveState.HAS_MESSAGES.value:
        return ArchiveStatus.has_messages()
    if isinstance(value, dict) and set(value) <= {'last_message'}:
        return ArchiveStatus.has_messages(parse_time(value.get('last_message'), 'last_message'))
    raise MalformedDocument(f"Bad archive status: {value!r}")


def _decode_list(value: Any) -> ListRecord:
    if not isinstance(value, dict):
        return ListRecord(_as_name(value, 'list'))
    unknown = set(value) - set(LIST_KEYS)
    if unknown or 'name' not in value:
        raise MalformedDocument(f"Bad list entry: {value!r}")
    return ListRecord(
        name=_as_name(value['name'], 'list'),
        created_at=parse_time(value.get('created_at'), 'created_at'),
        updated_at=parse_time(value.get('updated_at'), 'updated_at'),
        archive_status=_decode_archive(value.get('archive'))
    )


def _decode_issue(value: Any) -> IssueRecord:
    if not isinstance(value, dict):
        return IssueRecord(_as_name(value, 'issue tracker'))
    unknown = set(value) - set(ISSUE_KEYS)
    if unknown or 'name' not in value:
        raise MalformedDocument(f"Bad issue tracker entry: {value!r}")
    service = value.get('service')
    return IssueRecord(_as_name(value['name'], 'issue tracker'), None if service is None else str(service))


def _sequence(value: Any, key: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedDocument(f"Expected a list for '{key}' but got: {value!r}")
    return value


def _decode_project(group: List[Any]) -> ProjectRecord:
    merged: Dict[str, Any] = {}
    for element in group:
        if not isinstance(element, dict):
            raise MalformedDocument(
                f"Bad project data: expected mapping elements but got {type(element).__name__}: {element!r}")
        merged.update(element)

    unknown = set(merged) - set(PROJECT_KEYS)
    if unknown:
        raise MalformedDocument(f"Bad project data: unknown keys {sorted(unknown)} in {merged!r}")
    if 'project' not in merged:
        raise MalformedDocument(f"Bad project data: missing 'project' in {merged!r}")

    has_scm = merged.get('has_scm')
    if has_scm is not None and not isinstance(has_scm, bool):
        raise MalformedDocument(f"Expected true/false for 'has_scm' but got: {has_scm!r}")

    parent = merged.get('parent')
    issues = merged.get('issues')
    return ProjectRecord(
        project=_as_name(merged['project'], 'project'),
        parent=None if parent is None else _as_name(parent, 'parent'),
        lists=[_decode_list(l) for l in _sequence(merged.get('lists'), 'lists')],
        issues=None if issues is None else [_decode_issue(i) for i in _sequence(issues, 'issues')],
        has_scm=has_scm
    )


def _comment(item: Dict[str, Any]) -> Comment:
    text = item['comment']
    return Comment(None if text is None else str(text))


def _is_comment(item: Any) -> bool:
    return isinstance(item, dict) and set(item) == {'comment'}


def _is_marker(item: Any) -> bool:
    return isinstance(item, dict) and set(item) == {'begin_data'}


def _is_command(item: Any) -> bool:
    return isinstance(item, dict) and 'command' in item


def load_items(text: str) -> List[Any]:
    """Concatenate the sequences of every YAML document in the stream."""
    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise MalformedDocument(f"Bad yaml input: {e}")

    items = []
    for doc in documents:
        if doc is None:
            continue
        if not isinstance(doc, list):
            raise MalformedDocument(f"Bad yaml input: expected a sequence but got: {doc!r}")
        items.extend(doc)
    return items


def decode(text: str) -> Document:
    """Parse a command file; raises MalformedDocument on structural errors."""
    items = load_items(text)
    records = []
    position = 0

    # Header region: comments and at most one command, ending at the marker
    command_seen = False
    while True:
        if position >= len(items):
            raise MalformedDocument("Bad yaml input: begin-data marker not found")
        item = items[position]
        position += 1

        if _is_comment(item):
            records.append(_comment(item))
        elif _is_marker(item):
            records.append(BeginDataMarker())
            break
        elif _is_command(item):
            if command_seen:
                raise MalformedDocument(f"Bad yaml input: second command header: {item!r}")
            args = dict(item)
            name = args.pop('command')
            records.append(CommandHeader(_as_name(name, 'command'), args))
            command_seen = True
        else:
            raise MalformedDocument(
                f"Bad yaml input: expected comment, command or begin-data marker but got: {item!r}")

    # Data region: comments and project groups
    for item in items[position:]:
        if _is_comment(item):
            records.append(_comment(item))
        elif isinstance(item, list):
            records.append(_decode_project(item))
        elif _is_command(item) or _is_marker(item):
            raise MalformedDocument(f"Bad yaml input: header record after begin-data marker: {item!r}")
        else:
            raise MalformedDocument(
                f"Bad yaml input reading project data: unexpected object of type {type(item).__name__}: {item!r}")

    return Document(records)


def read_document(path) -> Document:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise MalformedDocument(f"Bad yaml input: {path} is not valid UTF-8 ({e.reason})") from e
    return decode(text)


# Error classes
class MalformedDocument(DomainAdminError):
    """Raised when a command file violates the record grammar."""
    pass
