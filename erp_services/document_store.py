"""
DocumentStore -- SQLAlchemy-backed store for the production collections.

Architecture: erp_services -- imperative shell.
    The store owns all database access.  Engines only ever see the plain
    snapshot mapping returned by ``load_snapshot()``.

Invariants enforced:
    - Every update is a single-document write in its own transaction.
    - Updates merge fields into the stored payload; fields not named in
      the update are preserved.
    - ``revision`` increases by one on every write to a document.
    - Snapshots list documents in insertion order.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from erp_kernel.domain.snapshot import (
    PRODUCTS,
    PROJECTS,
    SNAPSHOT_COLLECTIONS,
    WORK_ORDER_ITEMS,
    WORK_ORDERS,
)
from erp_kernel.exceptions import DocumentNotFoundError, UnsupportedActionError
from erp_kernel.logging_config import get_logger
from erp_kernel.models.document import Document

logger = get_logger("services.document_store")

# Business identifier field of each managed collection
ID_FIELDS: Mapping[str, str] = {
    PROJECTS: "Project_ID",
    PRODUCTS: "Product_ID",
    WORK_ORDERS: "Work_Order_ID",
    WORK_ORDER_ITEMS: "ID",
}


class DocumentStore(Protocol):
    """Read and update-by-id access to the production collections."""

    def fetch_collection(self, collection: str) -> list[dict[str, Any]]: ...

    def update(
        self,
        collection: str,
        doc_id: str,
        field_updates: Mapping[str, Any],
    ) -> int: ...

    def load_snapshot(self) -> dict[str, list[dict[str, Any]]]: ...


class SqlDocumentStore:
    """DocumentStore over the ``documents`` table.

    Contract:
        - ``put()`` inserts or replaces a whole document.
        - ``update()`` merges fields into one existing document and returns
          its new revision.
        - ``load_snapshot()`` reads every managed collection.

    Non-goals:
        - Does NOT validate payloads against the audit invariants; writing
          inconsistent data is exactly what the audit detects.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    def put(self, collection: str, payload: Mapping[str, Any]) -> str:
        """Insert or replace a document; returns its doc_id.

        Raises:
            UnsupportedActionError: collection is not managed by the store.
            ValueError: payload lacks the collection's identifier field.
        """
        id_field = _id_field(collection)
        raw_id = payload.get(id_field)
        if raw_id is None or not str(raw_id).strip():
            raise ValueError(f"{collection} document requires {id_field}")
        doc_id = str(raw_id).strip()

        with self._session_factory.begin() as session:
            doc = _find(session, collection, doc_id)
            if doc is None:
                position = session.scalar(
                    select(func.coalesce(func.max(Document.position), -1))
                    .where(Document.collection == collection)
                )
                session.add(Document(
                    collection=collection,
                    doc_id=doc_id,
                    position=position + 1,
                    revision=1,
                    payload=dict(payload),
                ))
            else:
                doc.payload = dict(payload)
                doc.revision += 1

        logger.debug("document_put", extra={
            "collection": collection, "doc_id": doc_id,
        })
        return doc_id

    def put_many(self, collection: str, payloads: Sequence[Mapping[str, Any]]) -> list[str]:
        return [self.put(collection, payload) for payload in payloads]

    def update(
        self,
        collection: str,
        doc_id: str,
        field_updates: Mapping[str, Any],
    ) -> int:
        """Merge ``field_updates`` into one document; returns the new revision.

        Raises:
            UnsupportedActionError: collection is not managed by the store.
            DocumentNotFoundError: no document with that id.
        """
        _id_field(collection)

        with self._session_factory.begin() as session:
            doc = _find(session, collection, doc_id)
            if doc is None:
                raise DocumentNotFoundError(collection, doc_id)
            # Reassign so the JSON column registers the change
            doc.payload = {**doc.payload, **field_updates}
            doc.revision += 1
            revision = doc.revision

        logger.info("document_updated", extra={
            "collection": collection,
            "doc_id": doc_id,
            "fields": sorted(field_updates),
            "revision": revision,
        })
        return revision

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get(self, collection: str, doc_id: str) -> dict[str, Any]:
        """Raises DocumentNotFoundError if absent."""
        with self._session_factory() as session:
            doc = _find(session, collection, doc_id)
            if doc is None:
                raise DocumentNotFoundError(collection, doc_id)
            return dict(doc.payload)

    def revision_of(self, collection: str, doc_id: str) -> int:
        with self._session_factory() as session:
            doc = _find(session, collection, doc_id)
            if doc is None:
                raise DocumentNotFoundError(collection, doc_id)
            return doc.revision

    def fetch_collection(self, collection: str) -> list[dict[str, Any]]:
        """All documents of a collection in insertion order."""
        with self._session_factory() as session:
            return _fetch(session, collection)

    def load_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        """Point-in-time read of every managed collection."""
        with self._session_factory() as session:
            snapshot = {
                collection: _fetch(session, collection)
                for collection in SNAPSHOT_COLLECTIONS
            }
        logger.debug("snapshot_loaded", extra={
            "counts": {k: len(v) for k, v in snapshot.items()},
        })
        return snapshot


def _id_field(collection: str) -> str:
    try:
        return ID_FIELDS[collection]
    except KeyError:
        raise UnsupportedActionError(collection) from None


def _find(session: Session, collection: str, doc_id: str) -> Document | None:
    return session.scalars(
        select(Document).where(
            Document.collection == collection,
            Document.doc_id == doc_id,
        )
    ).one_or_none()


def _fetch(session: Session, collection: str) -> list[dict[str, Any]]:
    docs = session.scalars(
        select(Document)
        .where(Document.collection == collection)
        .order_by(Document.position)
    ).all()
    return [dict(doc.payload) for doc in docs]
