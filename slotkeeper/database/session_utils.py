"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """
    Return SQLAlchemy dialect name of the session's bind.

    Falls back to ``default`` when the bound engine cannot be resolved.
    """
    bind = session.get_bind()
    if bind is None:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default
