# src/domain_admin/__init__.py
"""
Bulk mailing-list administration for forge projects.
"""

__version__ = "0.1.0"
