"""ORM models for the document store."""

from erp_kernel.models.document import Document

__all__ = ["Document"]
