"""Account provisioning: merchant record + credentials + setup token.

The merchant row and its setup token are written in one transaction. The
welcome email is dispatched only after commit and its outcome never affects
the result: provisioning succeeds when the records exist.
"""

import logging
from dataclasses import dataclass

import pydantic
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.domain.enums import AggregateDocumentStatus, VerificationStatus
from merchant_onboarding.domain.errors import (
    DuplicateEmail,
    OnboardingError,
    ProvisioningFailed,
    ValidationError,
)
from merchant_onboarding.domain.models import Merchant
from merchant_onboarding.domain.schemas import (
    BulkCreateFailure,
    BulkCreateResult,
    BulkCreateSuccess,
    MerchantCreate,
    MerchantCreateResponse,
    MerchantSummary,
    default_business_hours,
)
from merchant_onboarding.services.credentials import generate_temp_password, hash_password
from merchant_onboarding.services.merchant_store import get_merchant_by_email
from merchant_onboarding.services.notification_service import (
    NotificationDispatcher,
    welcome_message,
)
from merchant_onboarding.services.setup_token_service import SetupTokenService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("business_name", "email", "phone", "business_type", "address")


@dataclass
class ProvisionedAccount:
    """Result of a successful CreateMerchantAccount.

    ``temporary_password`` and ``setup_token`` exist only in this object;
    the database holds their hashes.
    """

    merchant: Merchant
    temporary_password: str
    setup_token: str
    setup_url: str

    def to_response(self) -> MerchantCreateResponse:
        return MerchantCreateResponse(
            merchant=MerchantSummary.model_validate(self.merchant),
            temporary_password=self.temporary_password,
            setup_url=self.setup_url,
            login_url=get_settings().login_url,
        )


def parse_merchant_input(data: MerchantCreate | dict) -> MerchantCreate:
    """Validate raw input once, failing with the first offending field."""
    if isinstance(data, MerchantCreate):
        parsed = data
    else:
        try:
            parsed = MerchantCreate.model_validate(data)
        except pydantic.ValidationError as e:
            # Report missing fields ahead of malformed ones
            errors = sorted(e.errors(), key=lambda err: err["type"] != "missing")
            first = errors[0]
            field = str(first["loc"][0]) if first["loc"] else "input"
            if first["type"] == "missing":
                raise ValidationError(field) from e
            raise ValidationError(field, f"Invalid value for {field}: {first['msg']}") from e

    for field in REQUIRED_FIELDS:
        value = getattr(parsed, field)
        if isinstance(value, str) and not value.strip():
            raise ValidationError(field)
    return parsed


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _field_text(item, field: str) -> str | None:
    value = item.get(field) if isinstance(item, dict) else None
    return None if value is None else str(value)


class AccountProvisioner:
    """Creates merchant accounts on behalf of an administrator."""

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher | None = None):
        self.db = db
        self.notifier = notifier
        self.tokens = SetupTokenService(db)

    async def create_merchant_account(
        self,
        data: MerchantCreate | dict,
        actor: str | None = None,
    ) -> ProvisionedAccount:
        parsed = parse_merchant_input(data)
        email = str(parsed.email).strip().lower()

        if await get_merchant_by_email(self.db, email) is not None:
            raise DuplicateEmail(email)

        temp_password = generate_temp_password()
        business_hours = (
            {day: hours.model_dump() for day, hours in parsed.business_hours.items()}
            if parsed.business_hours is not None
            else default_business_hours()
        )
        address = parsed.address.strip()

        merchant = Merchant(
            email=email,
            business_name=parsed.business_name.strip(),
            phone=parsed.phone.strip(),
            business_type=parsed.business_type.value,
            address=address,
            location=_clean(parsed.location) or address,
            description=_clean(parsed.description),
            website=_clean(parsed.website),
            business_hours=business_hours,
            verification_status=(parsed.verification_status or VerificationStatus.PENDING).value,
            document_status=AggregateDocumentStatus.NONE.value,
            setup_completed=False,
            password_hash=hash_password(temp_password),
            created_by=actor,
            version=1,
        )

        try:
            self.db.add(merchant)
            await self.db.flush()
            setup_token, _ = await self.tokens.issue_token(merchant.id)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if await get_merchant_by_email(self.db, email) is not None:
                raise DuplicateEmail(email) from e
            logger.error("Provisioning for %s hit integrity error: %s", email, e)
            raise ProvisioningFailed("integrity error") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Provisioning for %s failed mid-write: %s", email, e)
            raise ProvisioningFailed(type(e).__name__) from e

        setup_url = get_settings().setup_url(setup_token)
        logger.info(
            "Merchant %s (%s) provisioned by %s with status %s",
            merchant.id, email, actor or "unknown", merchant.verification_status,
        )

        if self.notifier is not None:
            self.notifier.dispatch(
                welcome_message(email, merchant.business_name, setup_url, get_settings().login_url)
            )

        return ProvisionedAccount(
            merchant=merchant,
            temporary_password=temp_password,
            setup_token=setup_token,
            setup_url=setup_url,
        )

    async def bulk_create_merchants(
        self,
        items: list[dict],
        actor: str | None = None,
    ) -> BulkCreateResult:
        """Provision each entry independently; failures are collected, not raised."""
        result = BulkCreateResult(total=len(items))

        for item in items:
            try:
                account = await self.create_merchant_account(item, actor=actor)
            except OnboardingError as e:
                result.failed.append(
                    BulkCreateFailure(
                        email=_field_text(item, "email"),
                        business_name=_field_text(item, "business_name"),
                        code=e.code,
                        message=e.message,
                    )
                )
                continue

            result.successful.append(
                BulkCreateSuccess(
                    merchant_id=account.merchant.id,
                    email=account.merchant.email,
                    business_name=account.merchant.business_name,
                    temporary_password=account.temporary_password,
                    setup_url=account.setup_url,
                )
            )

        logger.info(
            "Bulk creation complete: %d/%d successful", len(result.successful), result.total
        )
        return result
