"""
Typed Exception Hierarchy for the ERP audit kernel.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable), and structured attributes instead of
a message that has to be parsed.

    ProductionAuditError (base)
    |
    +-- SnapshotError
    |   +-- MalformedSnapshotError
    |
    +-- DocumentStoreError
    |   +-- DocumentNotFoundError
    |
    +-- ReconciliationError
        +-- ReconciliationWriteFailedError
        +-- UnsupportedActionError

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------------
Snapshot        | MALFORMED_SNAPSHOT            | Collection present but not a sequence
----------------|-------------------------------|-------------------------------------
Store           | DOCUMENT_NOT_FOUND            | Update targets a missing document
----------------|-------------------------------|-------------------------------------
Reconciliation  | RECONCILIATION_WRITE_FAILED   | Store rejected a corrective write
                | UNSUPPORTED_ACTION            | Action targets an unknown collection

Invariant violations are never exceptions: they are reported as Issues.
Per-entity anomalies (unparseable amounts, dangling references) are
skipped by the checks and never raised either.
"""


class ProductionAuditError(Exception):
    """
    Base exception for all ERP audit errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PRODUCTION_AUDIT_ERROR"


# Snapshot-related exceptions


class SnapshotError(ProductionAuditError):
    """Base exception for snapshot-related errors."""

    code: str = "SNAPSHOT_ERROR"


class MalformedSnapshotError(SnapshotError):
    """
    A top-level snapshot collection has the wrong shape.

    Fatal for the whole audit run: no partial report is produced.
    """

    code: str = "MALFORMED_SNAPSHOT"

    def __init__(self, collection: str, found_type: str):
        self.collection = collection
        self.found_type = found_type
        super().__init__(
            f"Snapshot collection '{collection}' must be a sequence of "
            f"records, got {found_type}"
        )


# Document store exceptions


class DocumentStoreError(ProductionAuditError):
    """Base exception for document store errors."""

    code: str = "DOCUMENT_STORE_ERROR"


class DocumentNotFoundError(DocumentStoreError):
    """Document with given collection and id was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document not found: {collection}/{doc_id}")


# Reconciliation exceptions


class ReconciliationError(ProductionAuditError):
    """Base exception for reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class ReconciliationWriteFailedError(ReconciliationError):
    """
    The document store rejected a corrective write.

    Raised at the call site that applies actions. The original store
    exception is chained as ``__cause__``.
    """

    code: str = "RECONCILIATION_WRITE_FAILED"

    def __init__(
        self,
        target_collection: str,
        target_id: str,
        reason: str,
        applied_count: int,
        action: object | None = None,
    ):
        self.target_collection = target_collection
        self.target_id = target_id
        self.reason = reason
        self.applied_count = applied_count
        self.action = action
        super().__init__(
            f"Corrective write to {target_collection}/{target_id} failed "
            f"({reason}) after {applied_count} successful write(s)"
        )


class UnsupportedActionError(ReconciliationError):
    """Corrective action targets a collection the store does not manage."""

    code: str = "UNSUPPORTED_ACTION"

    def __init__(self, target_collection: str):
        self.target_collection = target_collection
        super().__init__(
            f"No writable collection named '{target_collection}'"
        )
