from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from consentgate.database import Base


class ConsentOption(Base):
    """Stored override for a single consent option (value is JSON-encoded)."""

    __tablename__ = "consent_options"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
        onupdate=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
    )
