"""Merchant reads and version-checked writes.

Status mutations never read-modify-write through the ORM. They issue a
conditional UPDATE keyed on the version that was read and treat an
affected-row count of zero as a lost race.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.domain.models import Merchant, utcnow

logger = logging.getLogger(__name__)


async def load_merchant(db: AsyncSession, merchant_id: str) -> Merchant | None:
    """Fetch a merchant, overwriting any stale copy in the identity map."""
    result = await db.execute(
        select(Merchant)
        .where(Merchant.id == merchant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_merchant_by_email(db: AsyncSession, email: str) -> Merchant | None:
    result = await db.execute(select(Merchant).where(Merchant.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def compare_and_set(
    db: AsyncSession,
    merchant_id: str,
    expected_version: int,
    **values,
) -> bool:
    """Apply ``values`` only if the row is still at ``expected_version``.

    Returns True when this call won; the version is bumped by one.
    """
    result = await db.execute(
        update(Merchant)
        .where(Merchant.id == merchant_id, Merchant.version == expected_version)
        .values(version=expected_version + 1, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(
            "Version conflict on merchant %s (expected v%d)", merchant_id, expected_version
        )
        return False
    return True
