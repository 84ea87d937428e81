"""
SQLAlchemy integration — cart blobs in any table.

Usage:
    1. Add CartBlobMixin to your model:

        class CartTable(Base, CartBlobMixin):
            __tablename__ = "carts"

    2. Create storage:

        storage = SQLAlchemyStorage(sessionmaker(engine), model=CartTable)

    3. Use:

        store = CartStore(storage)
        store.add("P1", 2, [], PriceSnapshot(unit_price=10))
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, TypeVar

from sqlalchemy import DateTime, String, Text, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from cartsync.store._storage import StorageError


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Blob Mixin: add to your SQLAlchemy model
# ═══════════════════════════════════════════════════════════════════════════════


class CartBlobMixin:
    """
    Mixin for SQLAlchemy models holding serialized carts.

    Adds columns:
    - storage_key: primary key (e.g. "oep-cart-1" or a per-visitor key)
    - blob: serialized cart document
    - updated_at: time of the last write (UTC)
    """

    storage_key: Mapped[str] = mapped_column(String(255), primary_key=True)

    blob: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )


M = TypeVar("M", bound=CartBlobMixin)


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Storage
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStorage(Generic[M]):
    """
    Storage backed by a SQLAlchemy model with CartBlobMixin.

    Each call runs in its own session and commits immediately.
    Database errors surface as StorageError.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        model: type[M],
    ) -> None:
        """
        Args:
            session_factory: SQLAlchemy session factory
            model: Model class with CartBlobMixin
        """
        self._session_factory = session_factory
        self._model = model

    def read(self, key: str) -> str | None:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(self._model.blob).where(self._model.storage_key == key)
                ).scalar_one_or_none()
                return row
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read cart {key!r}", e) from e

    def write(self, key: str, blob: str) -> None:
        try:
            with self._session_factory.begin() as session:
                row = session.get(self._model, key)
                now = datetime.now(timezone.utc)
                if row is None:
                    session.add(self._model(storage_key=key, blob=blob, updated_at=now))
                else:
                    row.blob = blob
                    row.updated_at = now
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write cart {key!r}", e) from e

    def remove(self, key: str) -> None:
        try:
            with self._session_factory.begin() as session:
                session.execute(delete(self._model).where(self._model.storage_key == key))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to remove cart {key!r}", e) from e


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CartBlobMixin",
    "SQLAlchemyStorage",
)
