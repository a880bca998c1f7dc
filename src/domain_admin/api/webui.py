# src/domain_admin/api/webui.py
"""
Authenticated access to the mailing-list manager web UI.

The list manager has no API; pages are fetched through a logged-in browser
style session (cookies kept by httpx).
"""
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Dict, List, Optional
from urllib.parse import urljoin
import logging

import httpx

from domain_admin.errors import DomainAdminError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/people/login"
LANDING_SUFFIX = "/mypage"
USERNAME_FIELD = "authenticator[username]"
PASSWORD_FIELD = "authenticator[password]"


@dataclass(frozen=True)
class Page:
    """A fetched HTML page and the URL it was finally served from."""
    url: str
    text: str


class _LoginFormParser(HTMLParser):
    def __init__(self, page_url: str, action_url: str):
        super().__init__()
        self.page_url = page_url
        self.action_url = action_url
        self.fields: Dict[str, str] = {}
        self.found = False
        self._in_form = False

    def handle_starttag(self, tag: str, attrs: List[tuple]) -> None:
        attrs_dict = dict(attrs)
        if tag == "form":
            action = urljoin(self.page_url, attrs_dict.get("action") or "")
            if action == self.action_url:
                self._in_form = True
                self.found = True
            return

        if self._in_form and tag == "input":
            name = attrs_dict.get("name")
            if not name or attrs_dict.get("type") in ("submit", "button", "image"):
                return
            self.fields[name] = attrs_dict.get("value") or ""

    def handle_endtag(self, tag: str) -> None:
        if tag == "form":
            self._in_form = False


class WebSession:
    """One lazily-authenticated session against the list manager web UI."""

    def __init__(
            self,
            site: str,
            user: Optional[str],
            password: Optional[str],
            insecure: bool = False,
            timeout: float = 30.0,
            transport: Optional[httpx.BaseTransport] = None
    ):
        self.site = site.rstrip('/')
        self.user = user
        self.password = password
        self.client = httpx.Client(
            timeout=timeout,
            verify=not insecure,
            transport=transport,
            follow_redirects=True
        )
        self.logged_in = False

    @property
    def login_url(self) -> str:
        return self.site + LOGIN_PATH

    def ensure_login(self):
        """Log in on first use; later calls reuse the session cookies."""
        if self.logged_in:
            return

        login_url = self.login_url
        logger.info(f"Logging in to '{self.site}' as '{self.user}'")
        page = self.client.get(login_url)
        page.raise_for_status()

        parser = _LoginFormParser(str(page.url), login_url)
        parser.feed(page.text)
        if not parser.found:
            logger.debug(f"Login form not found on {page.url}, posting credentials anyway")

        form = dict(parser.fields)
        form[USERNAME_FIELD] = self.user or ""
        form[PASSWORD_FIELD] = self.password or ""
        response = self.client.post(login_url, data=form)

        if not str(response.url).rstrip('/').endswith(LANDING_SUFFIX):
            raise AuthenticationFailed(f"Unable to login to '{self.site}' as '{self.user}'")

        self.logged_in = True

    def fetch(self, url: str) -> Page:
        """
        GET a page inside the authenticated session.

        Raises:
            PageNotFound: the server answered 404
            httpx.HTTPStatusError: any other error status
        """
        self.ensure_login()
        logger.debug(f"GET {url}")
        response = self.client.get(url)
        if response.status_code == 404:
            raise PageNotFound(f"Page not found: {url}")
        response.raise_for_status()
        return Page(url=str(response.url), text=response.text)

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# Error classes
class AuthenticationFailed(DomainAdminError):
    """Raised when the web UI login does not land on the user's page."""
    pass

class PageNotFound(DomainAdminError):
    """Raised when a web UI page answers 404."""
    pass
