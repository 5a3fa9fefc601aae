"""SQLAlchemy ORM models for librarysync."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProviderStateModel(Base):
    """Serialized StoredData of one provider store.

    One row per store; the payload is the same JSON record the file backend
    writes and is always replaced as a whole.
    """

    __tablename__ = "provider_state"

    store_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ProviderStateModel(store_key={self.store_key!r}, bytes={len(self.payload)})>"
