"""
SQLAlchemy model backing the SQL key-value store.

Every logical table (documents, analyses, users, ...) lives in `kv_items`,
addressed by `(table_name, partition_key, sort_key)` with the record itself
kept as JSON.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for storage models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class KVItem(Base):
    """One item of one logical table."""

    __tablename__ = "kv_items"

    table_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    partition_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    sort_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_kv_items_table_name", "table_name"),)

    def __repr__(self) -> str:
        return f"<KVItem {self.table_name}:{self.partition_key}:{self.sort_key}>"
