"""
Document -- one record of a document-store collection.

The production application keeps projects, products, work orders and work
order items as schemaless documents.  Each row stores one such document as
JSON, addressed by (collection, doc_id) where doc_id is the record's own
business identifier (Project_ID, Product_ID, Work_Order_ID, ID).

Invariants enforced:
    - (collection, doc_id) is unique.
    - revision increases by one on every update.
"""

from typing import Any

from sqlalchemy import JSON, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TrackedBase


class Document(TrackedBase):
    """A single schemaless document in a named collection."""

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_document_identity"),
        Index("idx_document_collection", "collection", "position"),
    )

    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # Insertion order within the collection; snapshots preserve it
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    revision: Mapped[int] = mapped_column(nullable=False, default=1)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<Document {self.collection}/{self.doc_id} r{self.revision}>"
