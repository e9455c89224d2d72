"""SQLAlchemy ORM models for merchant onboarding.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for structured data (no JSONB)
- DateTime for timestamps, stored as naive UTC (no TIMESTAMPTZ)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from merchant_onboarding.domain.enums import (
    AggregateDocumentStatus,
    DocumentStatus,
    VerificationStatus,
)
from merchant_onboarding.infra.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo on round-trip)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Merchant
# ---------------------------------------------------------------------------


class Merchant(Base):
    """Business registered on the marketplace and subject to verification.

    ``version`` is the optimistic-concurrency counter: every status mutation
    is a conditional UPDATE on the version it read, and bumps it by one.
    """

    __tablename__ = "merchants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Stored lower-cased so the unique index is case-insensitive
    email = Column(String(255), unique=True, nullable=False, index=True)
    business_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    business_type = Column(String(50), nullable=False)
    address = Column(String(500), nullable=False)
    location = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    website = Column(String(500), nullable=True)
    business_hours = Column(JSON, nullable=False, default=dict)
    verification_status = Column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value, index=True
    )
    document_status = Column(
        String(20), nullable=False, default=AggregateDocumentStatus.NONE.value, index=True
    )
    setup_completed = Column(Boolean, nullable=False, default=False)
    setup_completed_at = Column(DateTime, nullable=True)
    password_hash = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=True)  # audit only
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    setup_tokens = relationship("SetupToken", back_populates="merchant")
    documents = relationship("Document", back_populates="merchant")


# ---------------------------------------------------------------------------
# Setup tokens
# ---------------------------------------------------------------------------


class SetupToken(Base):
    """Single-use credential-activation ticket.

    Keyed by the SHA-256 digest of the token; the plaintext only ever leaves
    the system inside the setup link. ``consumed_at`` moves from NULL to a
    timestamp exactly once.
    """

    __tablename__ = "setup_tokens"

    token_hash = Column(String(64), primary_key=True)
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False, index=True)
    issued_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)

    merchant = relationship("Merchant", back_populates="setup_tokens")


# ---------------------------------------------------------------------------
# Verification documents
# ---------------------------------------------------------------------------


class Document(Base):
    """Verification evidence submitted for a merchant."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    merchant_id = Column(String(36), ForeignKey("merchants.id"), nullable=False, index=True)
    document_type = Column(String(50), nullable=False)
    document_name = Column(String(255), nullable=True)
    status = Column(
        String(20), nullable=False, default=DocumentStatus.PENDING_REVIEW.value, index=True
    )
    admin_notes = Column(Text, nullable=True)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)
    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    merchant = relationship("Merchant", back_populates="documents")
