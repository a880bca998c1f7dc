# src/domain_admin/core/classifier.py
"""
Archive classifier.

Decides whether a list archive has messages, is empty, or is unknown to the
list manager, by reading the list manager's web pages. Purely observational.
"""
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional
from urllib.parse import urljoin
import logging
import re

from domain_admin.api.webui import PageNotFound, WebSession
from domain_admin.core.archive_page import ArchivePageParser
from domain_admin.core.document import ArchiveStatus

logger = logging.getLogger(__name__)

DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%b %d, %Y %H:%M",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)


def parse_archive_date(text: Optional[str]) -> Optional[datetime]:
    """Parse the date shown in an archive listing; None when unrecognised."""
    if not text:
        return None
    text = text.strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None


def archive_url(feature: Dict[str, Any]) -> str:
    """Archive page of a list feature, on plain http to skip a redirect."""
    return re.sub(r"^https:", "http:", feature['web_url'])


class ArchiveClassifier:
    """Classifies list archives through one shared web session."""

    def __init__(self, session: WebSession, parser: Optional[ArchivePageParser] = None):
        self.session = session
        self.parser = parser or ArchivePageParser()

    def classify(self, feature: Dict[str, Any]) -> ArchiveStatus:
        """
        Classify the archive of a list feature.

        Args:
            feature: API feature record with 'name' and 'web_url'

        Returns:
            ArchiveStatus: has_messages(last date), empty or missing

        Raises:
            AuthenticationFailed: the web session cannot log in
            httpx.HTTPStatusError: the archive page failed with a non-404 status
        """
        name = feature['name']
        url = archive_url(feature)
        try:
            page = self.session.fetch(url)
        except PageNotFound:
            # The API front end forwards unknown lists to a 404
            logger.info(f"List '{name}' is missing from the list service ({url})")
            return ArchiveStatus.missing()

        flash = self.parser.flash_text(page.text)
        if flash and self._is_empty_notice(flash, name):
            return ArchiveStatus.empty()

        return ArchiveStatus.has_messages(self._last_message_date(name, page))

    @staticmethod
    def _is_empty_notice(flash: str, name: str) -> bool:
        pattern = rf"list {re.escape(name)}@.*does not have any messages"
        return re.search(pattern, flash, re.IGNORECASE) is not None

    def _last_message_date(self, name: str, page) -> Optional[datetime]:
        href = self.parser.chronological_link(page.text)
        if not href:
            logger.warning(f"No chronological view for list '{name}' at {page.url}")
            return None

        chrono_url = urljoin(page.url, href)
        try:
            chrono = self.session.fetch(chrono_url)
        except PageNotFound:
            logger.warning(f"Chronological view for list '{name}' not found: {chrono_url}")
            return None

        raw = self.parser.last_row_date(chrono.text)
        last_date = parse_archive_date(raw)
        if last_date is None:
            logger.warning(f"Could not read last message date for list '{name}' from {chrono_url}: {raw!r}")
        return last_date
