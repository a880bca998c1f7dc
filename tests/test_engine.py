"""Tests for the reconciliation engine."""

from datetime import datetime
from unittest.mock import Mock

import pytest

from domain_admin.api.client import APIError
from domain_admin.core.codec import MalformedDocument
from domain_admin.core.document import (
    ArchiveStatus,
    CREATE_LISTS,
    DELETE_LISTS,
    ListRecord,
    ProjectRecord,
)
from domain_admin.core.engine import MAX_TRIES, ReconciliationEngine, ResultStatus, feature_payload

from conftest import list_feature, make_document


def project(name="demo", lists=("dev",)):
    return ProjectRecord(project=name, lists=[ListRecord(l) for l in lists])


@pytest.fixture
def engine(client, classifier, console):
    return ReconciliationEngine(client, classifier, console=console)


class TestExecute:

    def test_requires_command(self, engine):
        with pytest.raises(MalformedDocument, match="no command"):
            engine.execute(make_document([project()]))

    def test_unknown_command(self, engine, client):
        with pytest.raises(MalformedDocument, match="not valid"):
            engine.execute(make_document([project()], command="domain_admin_rename_lists"))
        client.project_features.assert_not_called()

    def test_projects_processed_in_file_order(self, engine, client):
        engine.execute(make_document([project("b"), project("a")], command=CREATE_LISTS))
        assert [c.args[0] for c in client.project_features.call_args_list] == ['b', 'a']


class TestCreateLists:

    def test_existing_list_is_skipped(self, engine, client, classifier, output):
        client.project_features.return_value = [list_feature("dev")]

        results = engine.execute(make_document([project()], command=CREATE_LISTS))

        assert results[0].status == ResultStatus.SKIPPED
        assert "already exists" in results[0].detail
        assert "already exists" in output.getvalue()
        client.create_project_feature.assert_not_called()
        client.delete_project_feature.assert_not_called()
        classifier.classify.assert_not_called()

    def test_missing_project_is_skipped(self, engine, client):
        client.project_features.side_effect = [None, []]
        client.create_project_feature.return_value = Mock(status_code=201)
        client.project_feature.return_value = list_feature("dev")
        engine.classifier.classify.return_value = ArchiveStatus.empty()

        results = engine.execute(make_document([project("gone"), project("demo")], command=CREATE_LISTS))

        assert results[0].status == ResultStatus.SKIPPED
        assert "not found" in results[0].detail
        assert results[1].status == ResultStatus.DONE
        client.create_project_feature.assert_called_once_with("demo", feature_payload("dev"))

    def test_created_first_time(self, engine, client, classifier):
        client.create_project_feature.return_value = Mock(status_code=201)
        client.project_feature.return_value = list_feature("dev")
        classifier.classify.return_value = ArchiveStatus.empty()

        results = engine.execute(make_document([project()], command=CREATE_LISTS))

        assert results[0].status == ResultStatus.DONE
        assert results[0].attempts == 1
        client.delete_project_feature.assert_not_called()

    def test_orphan_is_deleted_and_creation_retried(self, engine, client, classifier):
        client.create_project_feature.return_value = Mock(status_code=201)
        client.project_feature.return_value = list_feature("dev")
        classifier.classify.side_effect = [ArchiveStatus.missing(), ArchiveStatus.empty()]

        results = engine.execute(make_document([project()], command=CREATE_LISTS))

        assert results[0].status == ResultStatus.DONE
        assert results[0].attempts == 2
        assert client.create_project_feature.call_count == 2
        client.delete_project_feature.assert_called_once_with("demo", "dev")

    def test_gives_up_after_max_tries(self, engine, client, classifier, output):
        client.create_project_feature.return_value = Mock(status_code=201)
        client.project_feature.return_value = list_feature("dev")
        classifier.classify.return_value = ArchiveStatus.missing()

        results = engine.execute(make_document([project()], command=CREATE_LISTS))

        assert MAX_TRIES == 3
        assert results[0].status == ResultStatus.FAILED
        assert results[0].attempts == 3
        assert client.create_project_feature.call_count == 3
        assert client.delete_project_feature.call_count == 3
        assert "failed after 3 attempts" in output.getvalue()

    def test_transient_failure_is_retried(self, engine, client, classifier):
        client.create_project_feature.side_effect = [APIError("timeout"), Mock(status_code=201)]
        client.project_feature.return_value = list_feature("dev")
        classifier.classify.return_value = ArchiveStatus.empty()

        results = engine.execute(make_document([project()], command=CREATE_LISTS))

        assert results[0].status == ResultStatus.DONE
        assert results[0].attempts == 2
        client.delete_project_feature.assert_not_called()

    def test_failure_does_not_stop_the_run(self, engine, client, classifier):
        client.create_project_feature.side_effect = [APIError("down")] * 3 + [Mock(status_code=201)]
        client.project_feature.return_value = list_feature("users")
        classifier.classify.return_value = ArchiveStatus.empty()

        results = engine.execute(make_document([project(lists=("dev", "users"))], command=CREATE_LISTS))

        assert [r.status for r in results] == [ResultStatus.FAILED, ResultStatus.DONE]
        assert client.create_project_feature.call_count == 4

    def test_unexpected_status_consumes_attempt(self, engine, client, classifier):
        client.create_project_feature.side_effect = [Mock(status_code=200), Mock(status_code=201)]
        client.project_feature.return_value = list_feature("dev")
        classifier.classify.return_value = ArchiveStatus.empty()

        results = engine.execute(make_document([project()], command=CREATE_LISTS))
        assert results[0].attempts == 2

    def test_dry_run_makes_no_changes(self, client, classifier, console):
        engine = ReconciliationEngine(client, classifier, dry_run=True, console=console)
        results = engine.execute(make_document([project()], command=CREATE_LISTS))

        assert results[0].status == ResultStatus.DONE
        assert "dry run" in results[0].detail
        client.create_project_feature.assert_not_called()

    def test_payload(self):
        assert feature_payload("dev") == {
            'feature': {'name': 'dev', 'service': 'lists', 'display_name': 'Dev', 'description': 'Dev'}
        }


class TestDeleteLists:

    def test_list_with_messages_is_kept(self, engine, client, classifier):
        client.project_features.return_value = [list_feature("dev")]
        classifier.classify.return_value = ArchiveStatus.has_messages(datetime(2011, 1, 1))

        results = engine.execute(make_document([project()], command=DELETE_LISTS))

        assert results[0].status == ResultStatus.SKIPPED
        assert "not empty" in results[0].detail
        client.delete_project_feature.assert_not_called()

    def test_force_flag_deletes_unconditionally(self, engine, client, classifier):
        client.project_features.return_value = [list_feature("dev")]
        classifier.classify.return_value = ArchiveStatus.has_messages(datetime(2011, 1, 1))

        results = engine.execute(make_document([project()], command=DELETE_LISTS), force=True)

        assert results[0].status == ResultStatus.DONE
        client.delete_project_feature.assert_called_once_with("demo", "dev")
        classifier.classify.assert_not_called()

    def test_force_from_command_header(self, engine, client, classifier):
        client.project_features.return_value = [list_feature("dev")]

        engine.execute(make_document([project()], command=DELETE_LISTS, force=True))

        client.delete_project_feature.assert_called_once_with("demo", "dev")
        classifier.classify.assert_not_called()

    @pytest.mark.parametrize("status", [ArchiveStatus.empty(), ArchiveStatus.missing()])
    def test_empty_or_missing_is_deleted(self, engine, client, classifier, status):
        client.project_features.return_value = [list_feature("dev")]
        classifier.classify.return_value = status

        results = engine.execute(make_document([project()], command=DELETE_LISTS))

        assert results[0].status == ResultStatus.DONE
        client.delete_project_feature.assert_called_once_with("demo", "dev")

    def test_missing_list_warns(self, engine, client, classifier, output):
        client.project_features.return_value = [list_feature("dev")]
        classifier.classify.return_value = ArchiveStatus.missing()

        engine.execute(make_document([project()], command=DELETE_LISTS))
        assert "missing from list service" in output.getvalue()

    def test_absent_list_is_ignored(self, engine, client):
        client.project_features.return_value = [list_feature("dev", type_="wiki", service="wiki")]

        results = engine.execute(make_document([project()], command=DELETE_LISTS))

        assert "does not exist" in results[0].detail
        client.delete_project_feature.assert_not_called()

    def test_dry_run_still_classifies(self, client, classifier, console):
        engine = ReconciliationEngine(client, classifier, dry_run=True, console=console)
        client.project_features.return_value = [list_feature("dev")]
        classifier.classify.return_value = ArchiveStatus.empty()

        results = engine.execute(make_document([project()], command=DELETE_LISTS))

        classifier.classify.assert_called_once()
        client.delete_project_feature.assert_not_called()
        assert results[0].status == ResultStatus.DONE

    def test_delete_failure_is_reported(self, engine, client, classifier):
        client.project_features.return_value = [list_feature("dev"), list_feature("users")]
        classifier.classify.return_value = ArchiveStatus.empty()
        client.delete_project_feature.side_effect = [APIError("server error", 500), Mock(status_code=200)]

        results = engine.execute(make_document([project(lists=("dev", "users"))], command=DELETE_LISTS))

        assert [r.status for r in results] == [ResultStatus.FAILED, ResultStatus.DONE]
