"""Shared fixtures for the domain admin tests."""

import io
from unittest.mock import Mock

import pytest
from rich.console import Console

from domain_admin.core.document import (
    BeginDataMarker,
    CommandHeader,
    Comment,
    Document,
)


def make_document(projects, command=None, force=None):
    """Executable (or plain) document holding the given project records."""
    records = [Comment("generated for tests")]
    if command:
        args = {} if force is None else {'force': force}
        records.append(CommandHeader(command, args))
    records.append(BeginDataMarker())
    records.extend(projects)
    return Document(records)


def list_feature(name, type_='lists', service='lists'):
    return {
        'name': name,
        'type': type_,
        'service': service,
        'web_url': f"https://forge.test/projects/demo/lists/{name}/archive",
    }


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def console(output):
    return Console(file=output, width=200, color_system=None)


@pytest.fixture
def client():
    client = Mock()
    client.project_features.return_value = []
    return client


@pytest.fixture
def classifier():
    return Mock()
