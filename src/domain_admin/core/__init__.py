# src/domain_admin/core/__init__.py
"""
Core modules: command file model and codec, archive classification,
discovery, filters and the reconciliation engine.
"""

from domain_admin.core.codec import decode, encode, DocumentWriter, MalformedDocument
from domain_admin.core.classifier import ArchiveClassifier
from domain_admin.core.discovery import Discovery
from domain_admin.core.engine import ReconciliationEngine, OperationResult, MAX_TRIES

__all__ = [
    'decode',
    'encode',
    'DocumentWriter',
    'MalformedDocument',
    'ArchiveClassifier',
    'Discovery',
    'ReconciliationEngine',
    'OperationResult',
    'MAX_TRIES'
]
