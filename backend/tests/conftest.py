"""Shared test infrastructure for the merchant onboarding test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- notifier: NotificationDispatcher with a captured AsyncMock sender
- make_merchant: factory for Merchant rows (committed)
- make_document: factory for Document rows (committed)
- admin_token: bearer JWT carrying the admin role
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base first, then models to register all tables
from merchant_onboarding.infra.database import Base, enable_sqlite_foreign_keys

import merchant_onboarding.domain.models  # noqa: F401

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.domain.enums import AggregateDocumentStatus, DocumentStatus, VerificationStatus
from merchant_onboarding.domain.models import Document, Merchant, utcnow
from merchant_onboarding.domain.schemas import default_business_hours
from merchant_onboarding.services.notification_service import NotificationDispatcher


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Notification mock
# ---------------------------------------------------------------------------

@pytest.fixture
def email_sender():
    """AsyncMock standing in for the SendGrid transport; always succeeds."""
    return AsyncMock(return_value=True)


@pytest.fixture
def notifier(email_sender):
    """Dispatcher wired to the mock sender, no backoff delay.

    Tests that trigger emails should ``await notifier.drain()`` before
    asserting on ``email_sender``.
    """
    return NotificationDispatcher(sender=email_sender, max_retries=3, backoff_seconds=0)


# ---------------------------------------------------------------------------
# Merchant factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_merchant(db_session):
    """Factory that creates a committed Merchant row.

    Usage:
        merchant = await make_merchant(verification_status="verified")
    """
    async def _factory(
        email: str | None = None,
        business_name: str = "Test Bakery",
        verification_status: str = VerificationStatus.PENDING.value,
        document_status: str = AggregateDocumentStatus.NONE.value,
        setup_completed: bool = False,
        version: int = 1,
    ) -> Merchant:
        merchant = Merchant(
            id=str(uuid.uuid4()),
            email=email or f"merchant-{uuid.uuid4().hex[:8]}@test.com",
            business_name=business_name,
            phone="+15551234567",
            business_type="food_beverage",
            address="1 Market St",
            location="1 Market St",
            business_hours=default_business_hours(),
            verification_status=verification_status,
            document_status=document_status,
            setup_completed=setup_completed,
            version=version,
        )
        db_session.add(merchant)
        await db_session.commit()
        return merchant

    return _factory


@pytest.fixture
def make_document(db_session):
    """Factory that creates a committed Document row without touching the aggregate."""
    async def _factory(
        merchant_id: str,
        status: str = DocumentStatus.PENDING_REVIEW.value,
        document_type: str = "business_registration",
        is_active: bool = True,
        age: timedelta = timedelta(0),
    ) -> Document:
        document = Document(
            id=str(uuid.uuid4()),
            merchant_id=merchant_id,
            document_type=document_type,
            document_name=document_type.replace("_", " ").title(),
            status=status,
            uploaded_at=utcnow() - age,
            is_active=is_active,
        )
        db_session.add(document)
        await db_session.commit()
        return document

    return _factory


# ---------------------------------------------------------------------------
# Admin auth
# ---------------------------------------------------------------------------

def _bearer(claims: dict) -> dict:
    settings = get_settings()
    token = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _bearer({"sub": "admin-1", "email": "admin@test.com", "role": "admin"})


@pytest.fixture
def merchant_headers():
    return _bearer({"sub": "merchant-1", "role": "merchant"})
