"""
ERP Kernel - production data consistency core

A read-only view over the production data graph of a furniture ERP with:
- Snapshot reading with localized status vocabulary
- Typed exception hierarchy
- Structured JSON logging
- A SQLAlchemy-backed document store for projects, products and work orders
"""

__version__ = "0.1.0"
