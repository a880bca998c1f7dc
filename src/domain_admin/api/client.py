# src/domain_admin/api/client.py
import logging
from typing import Dict, Any, List, Optional
from urllib.parse import urlencode

import httpx

from domain_admin.errors import DomainAdminError

logger = logging.getLogger(__name__)


class ForgeClient:
    """Synchronous client for the project-metadata REST API.

    Credentials are sent with every request; there is no session object.
    """

    def __init__(
            self,
            site: str,
            user: Optional[str] = None,
            password: Optional[str] = None,
            insecure: bool = False,
            timeout: float = 30.0,
            transport: Optional[httpx.BaseTransport] = None
    ):
        self.site = site.rstrip('/')
        self.base_url = f"{self.site}/api/"
        self.user = user
        self.password = password
        self.headers = {"Accept": "application/json"}
        self.client = httpx.Client(
            timeout=timeout,
            verify=not insecure,
            transport=transport,
            headers=self.headers
        )

    @property
    def auth(self) -> Optional[httpx.BasicAuth]:
        if self.user and self.password:
            return httpx.BasicAuth(self.user, self.password)
        return None

    def url_for(self, fragment: str) -> str:
        """Resolve an API path; absolute https links are used as-is."""
        if fragment.startswith(('http://', 'https://')):
            return fragment
        return self.base_url + fragment.lstrip('/')

    def request(self, method: str, fragment: str, **kwargs) -> httpx.Response:
        """Send a request and map failures onto APIError / NotFoundError."""
        url = self.url_for(fragment)
        logger.debug(f"{method} {url}")
        try:
            response = self.client.request(method, url, auth=self.auth, **kwargs)
        except httpx.TimeoutException:
            raise APIError(f"Request timeout: {method} {url}")
        except httpx.RequestError as e:
            raise APIError(f"Request failed: {method} {url}: {str(e)}")

        if response.status_code == 404:
            raise NotFoundError(f"Not found: {url}", response.status_code)
        elif response.status_code >= 400:
            raise APIError(f"API error: {response.status_code} for {method} {url}", response.status_code)
        return response

    def get_json(self, fragment: str) -> Any:
        return self.request("GET", fragment).json()

    def ping(self) -> bool:
        """Check that the API root answers."""
        try:
            self.request("GET", "")
            return True
        except APIError as e:
            logger.warning(f"Ping failed: {e}")
            return False

    def authenticate(self, user: str, password: str) -> bool:
        """Check credentials; keep them for later calls only if they work."""
        self.user, self.password = user, password
        query = urlencode({'username': user, 'password': password})
        try:
            self.request("GET", f"login/authenticate?{query}")
            return True
        except APIError as e:
            logger.info(f"Authentication failed for '{user}': {e}")
            self.user = self.password = None
            return False

    def project(self, project: str) -> Optional[Dict[str, Any]]:
        try:
            return self.get_json(f"projects/{project}")
        except NotFoundError:
            return None

    def project_features(self, project: str) -> Optional[List[Dict[str, Any]]]:
        """All features of a project, or None when the project is absent."""
        try:
            return self.fetch_all(f"projects/{project}/features", 'features')
        except NotFoundError:
            return None

    def project_feature(self, project: str, feature: str) -> Optional[Dict[str, Any]]:
        try:
            return self.get_json(f"projects/{project}/features/{feature}")
        except NotFoundError:
            return None

    def create_project_feature(self, project: str, payload: Dict[str, Any]) -> httpx.Response:
        return self.request(
            "POST",
            f"projects/{project}/features",
            json=payload,
            headers={"Content-Type": "application/json"}
        )

    def delete_project_feature(self, project: str, feature: str) -> httpx.Response:
        return self.request("DELETE", f"projects/{project}/features/{feature}")

    def projects(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Project records; one page when params has 'page', otherwise all."""
        return self.fetch_all('projects', 'projects', params)

    def fetch_all(self, initial_url: str, item_key: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        Collect items from a paginated JSON envelope.

        Args:
            initial_url: API path of the first page
            item_key: envelope key holding the items
            params: query parameters; a 'page' entry restricts the result to that page

        Returns:
            List of items
        """
        params = {k: v for k, v in (params or {}).items() if v is not None}
        query = f"?{urlencode(params)}" if params else ""
        url = initial_url + query

        if 'page' in params:
            return self.get_json(url).get(item_key) or []

        results = []
        next_page = url
        while next_page:
            current = self.get_json(next_page)
            results.extend(current.get(item_key) or [])
            next_page = current.get('next')
            if next_page and query and '?' not in next_page:
                next_page += query
        return results

    def close(self):
        """Close the HTTP client"""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# Error classes
class APIError(DomainAdminError):
    """Raised for failed API calls (transport failures and HTTP errors)."""
    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)

class NotFoundError(APIError):
    """Raised when the API answers 404 for a project or feature."""
    pass
