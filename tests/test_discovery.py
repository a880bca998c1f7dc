"""Tests for the discovery pipeline."""

import io
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from domain_admin.core.codec import DocumentWriter, decode
from domain_admin.core.discovery import Discovery, discovery_header
from domain_admin.core.document import (
    ArchiveStatus,
    Comment,
    IssueRecord,
    ListRecord,
    ProjectRecord,
)

from conftest import list_feature

PAGES = {
    1: [
        {
            'name': 'glassfish',
            'parent': None,
            'features': [
                dict(list_feature("dev"), created_at="2009-05-01T12:00:00Z", updated_at="2010-01-01T00:00:00Z"),
                {'name': 'jira', 'type': 'issues', 'service': 'jira'},
                {'name': 'src', 'type': 'scm', 'service': 'git'},
            ],
        },
        {'name': 'no-lists', 'parent': None, 'features': [{'name': 'wiki', 'type': 'wiki'}]},
    ],
    2: [
        {'name': 'oasis', 'parent': 'glassfish', 'features': [list_feature("users")]},
    ],
}


def paged_client():
    client = Mock()
    client.projects.side_effect = lambda params: PAGES.get(params['page'], [])
    return client


def run(discovery, **kwargs):
    out = io.StringIO()
    count = discovery.discover(DocumentWriter(out), **kwargs)
    return count, out.getvalue()


class TestDiscovery:

    def test_all_pages(self):
        classifier = Mock()
        classifier.classify.return_value = ArchiveStatus.empty()
        client = paged_client()

        count, text = run(Discovery(client, classifier))
        document = decode(text)

        assert count == 2
        assert text.count("---") == 3
        assert document.command is None
        assert [c.args[0]['page'] for c in client.projects.call_args_list] == [1, 2, 3]
        assert document.data == (
            Comment("Begin page=1"),
            ProjectRecord(
                project="glassfish",
                parent=None,
                lists=[ListRecord(
                    "dev",
                    created_at=datetime(2009, 5, 1, 12, tzinfo=timezone.utc),
                    updated_at=datetime(2010, 1, 1, tzinfo=timezone.utc),
                    archive_status=ArchiveStatus.empty()
                )],
                issues=[IssueRecord("jira", "jira")],
                has_scm=True
            ),
            Comment("Begin page=2"),
            ProjectRecord(
                project="oasis",
                parent="glassfish",
                lists=[ListRecord("users", archive_status=ArchiveStatus.empty())],
                issues=[],
                has_scm=False
            ),
        )

    def test_start_and_length(self):
        client = paged_client()
        count, text = run(Discovery(client, Mock()), start=2, length=1, page_size=25, classify=False)

        assert count == 1
        client.projects.assert_called_once_with({'filter': 'domain_admin', 'full': 'true', 'page': 2, 'size': 25})
        assert [p.project for p in decode(text).projects] == ['oasis']

    def test_without_classification(self):
        classifier = Mock()
        count, text = run(Discovery(paged_client(), classifier), classify=False)

        classifier.classify.assert_not_called()
        assert all(l.archive_status is None for p in decode(text).projects for l in p.lists)

    def test_pages_written_as_they_are_fetched(self):
        out = io.StringIO()
        client = Mock()

        def projects(params):
            # Page 2 fails; page 1 must already be on the stream
            if params['page'] == 2:
                raise RuntimeError("connection lost")
            return PAGES[1]

        client.projects.side_effect = projects
        discovery = Discovery(client, Mock())
        with pytest.raises(RuntimeError):
            discovery.discover(DocumentWriter(out), classify=False)

        assert [p.project for p in decode(out.getvalue()).projects] == ['glassfish']

    def test_header_offers_both_commands(self):
        texts = [c.text for c in discovery_header(1, None, 50)]
        assert "command: domain_admin_delete_lists" in texts
        assert "command: domain_admin_create_lists" in texts
        assert None in texts
        assert "Find arguments: start=1, length=None, page_size=50" in texts

    def test_header_templates_become_commands(self):
        out = io.StringIO()
        DocumentWriter(out).write_header(discovery_header(1, None, None))
        text = out.getvalue()

        plain = text.replace("- comment: 'command: domain_admin_delete_lists'", "- command: domain_admin_delete_lists")
        command = decode(plain).command
        assert command.name == "domain_admin_delete_lists"
        assert not command.force

        forced = text.replace("- comment: '{command: domain_admin_delete_lists, force: true}'",
                              "- {command: domain_admin_delete_lists, force: true}")
        assert forced != text
        command = decode(forced).command
        assert command.name == "domain_admin_delete_lists"
        assert command.force
