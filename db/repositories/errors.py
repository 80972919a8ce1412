"""
Repository-layer error helpers for the calculation tables.
"""

from __future__ import annotations

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError

from calculation.errors import StoreUnavailableError

# Errors meaning the database itself is unreachable, as opposed to one bad query.
CONNECTION_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def store_unavailable(exc: Exception) -> StoreUnavailableError:
    """Wrap a connection-level SQLAlchemy error for the calculation engine."""

    return StoreUnavailableError(f"data store unavailable: {exc.__class__.__name__}: {exc}")
