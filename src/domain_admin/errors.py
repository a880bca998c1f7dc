# src/domain_admin/errors.py
"""
Base exception shared by the domain admin modules.

Concrete errors are declared next to the code that raises them.
"""


class DomainAdminError(Exception):
    """Base exception for domain admin errors."""
    pass
