# src/domain_admin/api/__init__.py
"""
Clients for the project API and the list manager web UI.
"""

from domain_admin.api.client import ForgeClient, APIError, NotFoundError
from domain_admin.api.webui import WebSession, Page, AuthenticationFailed, PageNotFound

__all__ = [
    'ForgeClient',
    'APIError',
    'NotFoundError',
    'WebSession',
    'Page',
    'AuthenticationFailed',
    'PageNotFound'
]
