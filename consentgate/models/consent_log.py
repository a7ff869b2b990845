"""
ConsentLog model for the cookie-consent audit trail (GDPR Article 7).

Records each consent action by a visitor, providing a timestamped,
pseudonymized proof of what was agreed to under which policy version.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text

from consentgate.database import Base


class ConsentLog(Base):
    """
    Append-only audit row for a single consent action.

    Rows are never updated in place: every save writes a new row with a fresh
    consent_id. The only mutations are targeted deletes (erasure requests)
    and retention pruning.
    """

    __tablename__ = "consent_logs"

    # BIGINT in production; SQLite only autoincrements INTEGER primary keys
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    consent_id = Column(String(36), nullable=False)
    # SHA-256 hex digest of the anonymized client IP plus the server secret
    ip_hash = Column(String(64), nullable=False)
    # JSON-encoded category map
    categories = Column(Text, nullable=False)
    policy_version = Column(String(20), nullable=False)
    # Valid values: "accept_all", "reject_all", "customize", "revoke"
    action_type = Column(String(20), nullable=False)
    user_agent = Column(String(255), nullable=False, default="")
    created_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc).replace(tzinfo=None),
    )

    __table_args__ = (
        Index("idx_consent_logs_consent_id", "consent_id"),
        Index("idx_consent_logs_ip_hash", "ip_hash"),
        Index("idx_consent_logs_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "consent_id": self.consent_id,
            "ip_hash": self.ip_hash,
            "categories": self.categories,
            "policy_version": self.policy_version,
            "action_type": self.action_type,
            "user_agent": self.user_agent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
