"""Setup token lifecycle: issue, validate, and single-use consumption.

Consumption is a conditional UPDATE (``consumed_at IS NULL AND expires_at >
now``). Whichever request's UPDATE affects the row wins, and every other
racer gets TokenAlreadyConsumed. There is no check-then-set window.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.domain.errors import (
    TokenAlreadyConsumed,
    TokenExpired,
    TokenNotFound,
)
from merchant_onboarding.domain.models import Merchant, SetupToken, utcnow
from merchant_onboarding.domain.schemas import CompleteSetupRequest, SetupInfo
from merchant_onboarding.services.credentials import (
    enforce_password_policy,
    generate_token,
    hash_password,
    hash_token,
)
from merchant_onboarding.services.merchant_store import load_merchant
from merchant_onboarding.services.notification_service import (
    NotificationDispatcher,
    setup_complete_message,
)

logger = logging.getLogger(__name__)


def _naive(value: datetime) -> datetime:
    # Strip tzinfo for SQLite compatibility (stores naive datetimes)
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


class SetupTokenService:
    """Manages SetupToken records for the one-time account setup flow."""

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher | None = None):
        self.db = db
        self.notifier = notifier

    async def issue_token(self, merchant_id: str, now: datetime | None = None) -> tuple[str, SetupToken]:
        """Create a token bound to ``merchant_id``.

        Only flushes: the caller owns the transaction so the merchant and its
        token commit together. Returns the plaintext token (for the setup
        link) and the stored record, which holds only its hash.
        """
        issued_at = _naive(now or utcnow())
        raw_token = generate_token()
        record = SetupToken(
            token_hash=hash_token(raw_token),
            merchant_id=merchant_id,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(hours=get_settings().setup_token_ttl_hours),
        )
        self.db.add(record)
        await self.db.flush()

        logger.info("Issued setup token %s... for merchant %s", raw_token[:8], merchant_id)
        return raw_token, record

    async def _get_record(self, token_str: str) -> SetupToken | None:
        result = await self.db.execute(
            select(SetupToken)
            .where(SetupToken.token_hash == hash_token(token_str))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _check_record(self, record: SetupToken | None, token_str: str, now: datetime) -> SetupToken:
        if record is None:
            raise TokenNotFound()
        if _naive(record.expires_at) <= now:
            logger.warning("Token %s... expired", token_str[:8])
            raise TokenExpired()
        if record.consumed_at is not None:
            logger.warning("Token %s... already used", token_str[:8])
            raise TokenAlreadyConsumed()
        return record

    async def validate_token(self, token_str: str, now: datetime | None = None) -> SetupInfo:
        """Return the redacted owner view for a usable token, or raise."""
        now = _naive(now or utcnow())
        record = self._check_record(await self._get_record(token_str), token_str, now)

        merchant = await load_merchant(self.db, record.merchant_id)
        if merchant is None:
            raise TokenNotFound()
        return SetupInfo.model_validate(merchant)

    async def complete_setup(
        self,
        token_str: str,
        request: CompleteSetupRequest,
        now: datetime | None = None,
    ) -> Merchant:
        """Consume the token and activate the merchant's credentials.

        A token that can no longer be used is reported before the password
        is looked at. The password is checked before the token is claimed, so a
        rejected password never burns the token.
        """
        now = _naive(now or utcnow())
        self._check_record(await self._get_record(token_str), token_str, now)
        enforce_password_policy(request.new_password)
        password_hash = hash_password(request.new_password)
        token_hash = hash_token(token_str)

        try:
            claimed = await self.db.execute(
                update(SetupToken)
                .where(
                    SetupToken.token_hash == token_hash,
                    SetupToken.consumed_at.is_(None),
                    SetupToken.expires_at > now,
                )
                .values(consumed_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                # Lost the race or the token was never usable; report why
                self._check_record(await self._get_record(token_str), token_str, now)
                raise TokenAlreadyConsumed()

            merchant_id = (
                await self.db.execute(
                    select(SetupToken.merchant_id).where(SetupToken.token_hash == token_hash)
                )
            ).scalar_one()

            values = {
                "password_hash": password_hash,
                "setup_completed": True,
                "setup_completed_at": now,
                "version": Merchant.version + 1,
                "updated_at": now,
            }
            if request.description is not None:
                values["description"] = request.description.strip()
            if request.website is not None:
                values["website"] = request.website.strip()
            if request.business_hours is not None:
                values["business_hours"] = {
                    day: hours.model_dump() for day, hours in request.business_hours.items()
                }

            await self.db.execute(
                update(Merchant)
                .where(Merchant.id == merchant_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        merchant = await load_merchant(self.db, merchant_id)
        logger.info("Setup completed for merchant %s via token %s...", merchant_id, token_str[:8])

        if self.notifier is not None:
            settings = get_settings()
            self.notifier.dispatch(
                setup_complete_message(
                    merchant.email,
                    merchant.business_name,
                    f"{settings.frontend_url.rstrip('/')}/merchant/dashboard",
                )
            )
        return merchant

    async def purge_expired_tokens(self, now: datetime | None = None) -> int:
        """Delete unconsumed tokens past their expiry. Consumed tokens are kept."""
        now = _naive(now or utcnow())
        result = await self.db.execute(
            delete(SetupToken)
            .where(SetupToken.consumed_at.is_(None), SetupToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount:
            logger.info("Purged %d expired setup tokens", result.rowcount)
        return result.rowcount
