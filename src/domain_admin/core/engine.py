# src/domain_admin/core/engine.py
"""
Reconciliation engine: executes the command of a command file against the
project API and the list manager.

Operations run strictly one after another. Each outcome is printed as one
progress line and returned as an OperationResult. Failures of individual
lists are reported and the run continues; only structural and
authentication errors abort it.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from rich.console import Console

from domain_admin.api.client import APIError, ForgeClient
from domain_admin.core.classifier import ArchiveClassifier
from domain_admin.core.codec import MalformedDocument
from domain_admin.core.document import (
    CREATE_LISTS,
    DELETE_LISTS,
    Document,
    ProjectRecord,
)
from domain_admin.errors import DomainAdminError

logger = logging.getLogger(__name__)

MAX_TRIES = 3
LIST_TYPE = 'lists'


class ResultStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


STATUS_STYLES = {
    ResultStatus.DONE: "green",
    ResultStatus.SKIPPED: "yellow",
    ResultStatus.FAILED: "red",
}


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one create/delete request."""
    project: str
    list_name: Optional[str]
    action: str
    status: ResultStatus
    detail: str
    attempts: int = 0


def feature_payload(list_name: str) -> Dict[str, Any]:
    """JSON body that creates a mailing-list feature."""
    title = list_name.capitalize()
    return {
        'feature': {
            'name': list_name,
            'service': 'lists',
            'display_name': title,
            'description': title,
        }
    }


class ReconciliationEngine:
    """Runs create_lists / delete_lists commands."""

    def __init__(
            self,
            client: ForgeClient,
            classifier: ArchiveClassifier,
            dry_run: bool = False,
            max_tries: int = MAX_TRIES,
            console: Optional[Console] = None
    ):
        self.client = client
        self.classifier = classifier
        self.dry_run = dry_run
        self.max_tries = max_tries
        self.console = console or Console()

    def execute(self, document: Document, force: bool = False) -> List[OperationResult]:
        """
        Execute the document's command.

        Args:
            document: decoded command file
            force: delete lists even when their archive has messages

        Returns:
            One OperationResult per project/list handled

        Raises:
            MalformedDocument: no command header or unknown command
        """
        command = document.command
        if command is None:
            raise MalformedDocument("Document has no command header; nothing to execute")

        if self.dry_run:
            self.console.print("Dry run: no destructive operations will be executed...")

        if command.name == CREATE_LISTS:
            return self.create_lists(document.projects)
        elif command.name == DELETE_LISTS:
            return self.delete_lists(document.projects, force or command.force)
        raise MalformedDocument(f"Command '{command.name}' is not valid")

    def _report(self, project: str, list_name: Optional[str], action: str,
                status: ResultStatus, detail: str, attempts: int = 0) -> OperationResult:
        result = OperationResult(project, list_name, action, status, detail, attempts)
        self.console.print(detail, style=STATUS_STYLES[status], markup=False, highlight=False)
        return result

    def _features(self, project: str) -> Optional[List[Dict[str, Any]]]:
        features = self.client.project_features(project)
        if features is None:
            logger.info(f"Project '{project}' not found")
        return features

    # ------------------------------------------------------------------
    # create_lists
    # ------------------------------------------------------------------

    def create_lists(self, projects: List[ProjectRecord]) -> List[OperationResult]:
        results = []
        for item in projects:
            project = item.project
            features = self._features(project)
            if features is None:
                results.append(self._report(project, None, 'create', ResultStatus.SKIPPED,
                                            f"Project '{project}' is not found. Skipping."))
                continue

            for list_name in item.list_names:
                feature = next((f for f in features if f.get('name') == list_name), None)
                if feature is not None:
                    results.append(self._report(
                        project, list_name, 'create', ResultStatus.SKIPPED,
                        f"Feature with name='{list_name}', service='{feature.get('service')}' "
                        f"already exists for project='{project}'. Skipping."))
                else:
                    results.append(self.create_list(project, list_name))
        return results

    def create_list(self, project: str, list_name: str) -> OperationResult:
        """Create one list, retrying up to max_tries attempts."""
        prefix = f"Creating list for project='{project}' list='{list_name}'..."
        if self.dry_run:
            return self._report(project, list_name, 'create', ResultStatus.DONE, f"{prefix} done (dry run)")

        payload = feature_payload(list_name)
        attempts = 0
        tries_left = self.max_tries
        while tries_left > 0:
            tries_left -= 1
            attempts += 1
            try:
                self._create_once(project, list_name, payload)
            except InconsistentState as e:
                logger.warning(f"Attempt {attempts}/{self.max_tries} for {project}/{list_name}: {e}")
                continue
            except APIError as e:
                logger.warning(f"Attempt {attempts}/{self.max_tries} for {project}/{list_name} failed: {e}")
                continue
            return self._report(project, list_name, 'create', ResultStatus.DONE, f"{prefix} done", attempts)

        return self._report(project, list_name, 'create', ResultStatus.FAILED,
                            f"{prefix} failed after {attempts} attempts", attempts)

    def _create_once(self, project: str, list_name: str, payload: Dict[str, Any]) -> None:
        """One creation attempt; an orphaned feature is deleted before raising."""
        response = self.client.create_project_feature(project, payload)
        if response.status_code != 201:
            raise APIError(f"Unexpected status {response.status_code} creating list", response.status_code)

        feature = self.client.project_feature(project, list_name)
        if feature is None:
            raise APIError(f"List '{list_name}' not visible after creation")

        status = self.classifier.classify(feature)
        if status.is_missing:
            logger.info(f"Deleting orphaned feature {project}/{list_name}")
            self.client.delete_project_feature(project, list_name)
            raise InconsistentState(f"API created list '{list_name}' but the list service does not have it")

    # ------------------------------------------------------------------
    # delete_lists
    # ------------------------------------------------------------------

    def delete_lists(self, projects: List[ProjectRecord], force: bool = False) -> List[OperationResult]:
        results = []
        for item in projects:
            project = item.project
            features = self._features(project)
            if features is None:
                results.append(self._report(project, None, 'delete', ResultStatus.SKIPPED,
                                            f"Project '{project}' is not found. Skipping."))
                continue

            list_features = [f for f in features if f.get('type') == LIST_TYPE]
            for list_name in item.list_names:
                feature = next((f for f in list_features if f.get('name') == list_name), None)
                if feature is None:
                    results.append(self._report(
                        project, list_name, 'delete', ResultStatus.SKIPPED,
                        f"List for project='{project}' list='{list_name}' does not exist. Ignoring."))
                    continue

                if not force:
                    status = self.classifier.classify(feature)
                    if not status.deletable:
                        results.append(self._report(
                            project, list_name, 'delete', ResultStatus.SKIPPED,
                            f"List for project='{project}' list='{list_name}' is not empty. Skipping."))
                        continue
                    if status.is_missing:
                        self.console.print(
                            f"Warning: list for project='{project}' list='{list_name}' "
                            f"is missing from list service.", style="yellow", markup=False, highlight=False)

                results.append(self.delete_list(project, list_name))
        return results

    def delete_list(self, project: str, list_name: str) -> OperationResult:
        prefix = f"Deleting list for project='{project}' list='{list_name}'..."
        if self.dry_run:
            return self._report(project, list_name, 'delete', ResultStatus.DONE, f"{prefix} done (dry run)")
        try:
            self.client.delete_project_feature(project, list_name)
        except APIError as e:
            logger.error(f"Failed to delete {project}/{list_name}: {e}")
            return self._report(project, list_name, 'delete', ResultStatus.FAILED, f"{prefix} failed: {e}", 1)
        return self._report(project, list_name, 'delete', ResultStatus.DONE, f"{prefix} done", 1)


# Error classes
class InconsistentState(DomainAdminError):
    """Raised when the API reports a list the list service does not know."""
    pass
