"""
SQLAlchemy ORM models for the SQL-backed state store.

Purpose:
- Persist the whole operational dataset as one JSON document per dataset key
- Keep the document opaque to SQL; all joins happen in the engine

Production notes:
- `version` increments on every save and can back optimistic checks later
- JSON column maps to JSON on MySQL/PostgreSQL and TEXT on SQLite
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from core.db import Base
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class StateDocument(Base):
    """
    One snapshot of the dataset.

    Columns:
    - dataset: business key of the dataset (one row per dataset)
    - document: the full collections mapping (users, buses, trips, ...)
    - version: bumped on every save
    - updated_at: audit timestamp
    """
    __tablename__ = "state_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dataset = Column(String(100), unique=True, index=True, nullable=False)
    document = Column(JSON, nullable=False)
    version = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
