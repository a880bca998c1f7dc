# src/domain_admin/core/archive_page.py
"""
Queries against list manager archive pages.

Everything that depends on the list manager's HTML layout lives here. Matches
are best-effort: a miss returns None rather than raising.
"""
from html.parser import HTMLParser
from typing import List, Optional
import re


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


class _FlashParser(HTMLParser):
    """Collects the text of the first <div class="flash ...">."""

    def __init__(self):
        super().__init__()
        self.text: Optional[str] = None
        self._depth = 0
        self._parts: List[str] = []

    def handle_starttag(self, tag: str, attrs: List[tuple]) -> None:
        if tag != "div":
            return
        if self._depth:
            self._depth += 1
            return
        classes = (dict(attrs).get("class") or "").split()
        if self.text is None and "flash" in classes:
            self._depth = 1

    def handle_endtag(self, tag: str) -> None:
        if tag != "div" or not self._depth:
            return
        self._depth -= 1
        if not self._depth:
            self.text = _squash("".join(self._parts))

    def handle_data(self, data: str) -> None:
        if self._depth:
            self._parts.append(data)

    def close(self) -> None:
        super().close()
        # Unclosed div at end of input
        if self._depth and self.text is None:
            self.text = _squash("".join(self._parts))


class _LinkParser(HTMLParser):
    """Finds the href of the first <a> whose text contains a label."""

    def __init__(self, label: str):
        super().__init__()
        self.label = label.lower()
        self.href: Optional[str] = None
        self._current: Optional[str] = None
        self._parts: List[str] = []

    def handle_starttag(self, tag: str, attrs: List[tuple]) -> None:
        if tag == "a" and self.href is None:
            self._current = dict(attrs).get("href")
            self._parts = []

    def handle_endtag(self, tag: str) -> None:
        if tag != "a" or self._current is None:
            return
        if self.label in "".join(self._parts).lower():
            self.href = self._current
        self._current = None

    def handle_data(self, data: str) -> None:
        if self._current is not None:
            self._parts.append(data)


class _TableRowParser(HTMLParser):
    """Records the cell texts of every table row."""

    def __init__(self):
        super().__init__()
        self.rows: List[List[str]] = []
        self._row: Optional[List[str]] = None
        self._cell: Optional[List[str]] = None

    def handle_starttag(self, tag: str, attrs: List[tuple]) -> None:
        if tag == "tr":
            self._finish_row()
            self._row = []
        elif tag in ("td", "th") and self._row is not None:
            self._finish_cell()
            self._cell = []

    def handle_endtag(self, tag: str) -> None:
        if tag in ("td", "th"):
            self._finish_cell()
        elif tag in ("tr", "table"):
            self._finish_row()

    def handle_data(self, data: str) -> None:
        if self._cell is not None:
            self._cell.append(data)

    def _finish_cell(self) -> None:
        if self._cell is not None and self._row is not None:
            self._row.append(_squash("".join(self._cell)))
        self._cell = None

    def _finish_row(self) -> None:
        self._finish_cell()
        if self._row:
            self.rows.append(self._row)
        self._row = None

    def close(self) -> None:
        super().close()
        self._finish_row()


class ArchivePageParser:
    """The three queries the classifier needs from archive pages."""

    chronological_label = "Chronological"
    date_column = 2

    def flash_text(self, html: str) -> Optional[str]:
        """Text of the flash/notice block, if the page has one."""
        parser = _FlashParser()
        parser.feed(html)
        parser.close()
        return parser.text

    def chronological_link(self, html: str) -> Optional[str]:
        """Target of the "Chronological" view link (possibly relative)."""
        parser = _LinkParser(self.chronological_label)
        parser.feed(html)
        parser.close()
        return parser.href

    def last_row_date(self, html: str) -> Optional[str]:
        """Raw text of the date cell in the last table row."""
        parser = _TableRowParser()
        parser.feed(html)
        parser.close()
        for row in reversed(parser.rows):
            if len(row) > self.date_column:
                return row[self.date_column] or None
        return None
