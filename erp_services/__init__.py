"""
erp_services -- imperative shell around the pure audit engines.

Owns every side effect: reading the document store, writing corrective
actions, and logging run summaries.
"""

from erp_services.audit_service import (
    ConsistencyAuditService,
    ReauditResult,
    ReconciliationResult,
)
from erp_services.document_store import ID_FIELDS, DocumentStore, SqlDocumentStore

__all__ = [
    "ConsistencyAuditService",
    "DocumentStore",
    "ID_FIELDS",
    "ReauditResult",
    "ReconciliationResult",
    "SqlDocumentStore",
]
