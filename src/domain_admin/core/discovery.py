# src/domain_admin/core/discovery.py
"""
Discovery pipeline: walk the project listing page by page and write every
project that has mailing lists to a command file, one page per fragment.
"""
from typing import Any, Dict, List, Optional
import logging

from domain_admin.api.client import ForgeClient
from domain_admin.core.classifier import ArchiveClassifier
from domain_admin.core.codec import DocumentWriter, MalformedDocument, parse_time
from domain_admin.core.document import (
    COMMANDS,
    DELETE_LISTS,
    Comment,
    IssueRecord,
    ListRecord,
    ProjectRecord,
)

logger = logging.getLogger(__name__)

LIST_TYPE = 'lists'
ISSUES_TYPE = 'issues'
SCM_TYPE = 'scm'
PROJECT_FILTER = 'domain_admin'


def discovery_header(start: int, length: Optional[int], page_size: Optional[int]) -> List[Comment]:
    """Header comments, including a commented-out template for each command."""
    header = [
        Comment("This file is machine generated but can be manually edited."),
        Comment("To execute, remove the quotes and the 'comment: ' prefix on one of the command lines below."),
        Comment("To delete lists that still have messages, use the line with 'force: true' instead."),
    ]
    header.extend(Comment(f"command: {name}") for name in reversed(COMMANDS))
    header.append(Comment(f"{{command: {DELETE_LISTS}, force: true}}"))
    header.append(Comment(None))
    header.append(Comment(f"Find arguments: start={start}, length={length}, page_size={page_size}"))
    return header


def _api_time(value: Any):
    try:
        return parse_time(value, 'feature')
    except MalformedDocument:
        logger.debug(f"Ignoring unparseable feature timestamp: {value!r}")
        return None


class Discovery:
    """Builds project records from the API, classifying list archives."""

    def __init__(self, client: ForgeClient, classifier: Optional[ArchiveClassifier] = None):
        self.client = client
        self.classifier = classifier

    def list_record(self, feature: Dict[str, Any], classify: bool = True) -> ListRecord:
        status = None
        if classify and self.classifier is not None:
            status = self.classifier.classify(feature)
        return ListRecord(
            name=feature['name'],
            created_at=_api_time(feature.get('created_at')),
            updated_at=_api_time(feature.get('updated_at')),
            archive_status=status
        )

    def project_record(self, project: Dict[str, Any], classify: bool = True) -> Optional[ProjectRecord]:
        """Record for one project, or None when it has no lists."""
        features = project.get('features') or []
        lists = [self.list_record(f, classify) for f in features if f.get('type') == LIST_TYPE]
        if not lists:
            return None
        issues = [IssueRecord(f['name'], f.get('service')) for f in features if f.get('type') == ISSUES_TYPE]
        return ProjectRecord(
            project=project['name'],
            parent=project.get('parent'),
            lists=lists,
            issues=issues,
            has_scm=any(f.get('type') == SCM_TYPE for f in features)
        )

    def projects_on_page(self, page: int, page_size: Optional[int] = None,
                         classify: bool = True) -> Optional[List[ProjectRecord]]:
        """Project records of one listing page; None when the page is empty."""
        params = {'filter': PROJECT_FILTER, 'full': 'true', 'page': page}
        if page_size:
            params['size'] = page_size
        projects = self.client.projects(params)
        if not projects:
            return None

        records = []
        for project in projects:
            record = self.project_record(project, classify)
            if record is not None:
                records.append(record)
        return records

    def discover(
            self,
            writer: DocumentWriter,
            start: int = 1,
            length: Optional[int] = None,
            page_size: Optional[int] = None,
            classify: bool = True
    ) -> int:
        """
        Write the header, then one fragment per listing page.

        Args:
            writer: destination for the command file
            start: first page to fetch
            length: number of pages to fetch (all when None)
            page_size: projects per page (server default when None)
            classify: classify each list archive through the web UI

        Returns:
            Number of project records written
        """
        writer.write_header(discovery_header(start, length, page_size))
        limit = start + length if length is not None else None

        written = 0
        page = start
        while limit is None or page < limit:
            records = self.projects_on_page(page, page_size, classify)
            if records is None:
                break
            writer.write_fragment([Comment(f"Begin page={page}")] + records)
            written += len(records)
            logger.info(f"Page {page}: {len(records)} projects with lists")
            page += 1
        return written
