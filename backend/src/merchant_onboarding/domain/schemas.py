"""Pydantic v2 schemas for service-boundary and API request/response validation."""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator

from merchant_onboarding.domain.enums import (
    WEEKDAYS,
    BulkAction,
    BulkOutcome,
    BusinessType,
    DocumentStatus,
    DocumentType,
    VerificationStatus,
)


# ---------------------------------------------------------------------------
# Business hours
# ---------------------------------------------------------------------------


class BusinessHoursDay(BaseModel):
    """Opening window for one weekday."""

    open_time: str = "09:00"
    close_time: str = "18:00"
    closed: bool = False


def default_business_hours() -> dict[str, dict]:
    """Mon-Fri 09-18, Sat 09-16, Sunday closed."""
    hours = {day: BusinessHoursDay().model_dump() for day in WEEKDAYS[:5]}
    hours["saturday"] = BusinessHoursDay(close_time="16:00").model_dump()
    hours["sunday"] = BusinessHoursDay(open_time="10:00", close_time="16:00", closed=True).model_dump()
    return hours


def _check_weekdays(value: dict[str, BusinessHoursDay] | None):
    if value is None:
        return value
    keys = set(value)
    if keys != set(WEEKDAYS):
        missing = [d for d in WEEKDAYS if d not in keys]
        extra = sorted(keys - set(WEEKDAYS))
        raise ValueError(
            f"business_hours must have exactly the seven weekday keys "
            f"(missing={missing}, unexpected={extra})"
        )
    return value


BusinessHours = Annotated[dict[str, BusinessHoursDay] | None, AfterValidator(_check_weekdays)]


# ---------------------------------------------------------------------------
# Account provisioning
# ---------------------------------------------------------------------------


class MerchantCreate(BaseModel):
    """Input for CreateMerchantAccount.

    Required: business_name, email, phone, business_type, address.
    Everything else is optional and defaulted by the provisioner.
    """

    business_name: str
    email: EmailStr
    phone: str
    business_type: BusinessType
    address: str
    location: str | None = None
    description: str | None = None
    website: str | None = None
    verification_status: VerificationStatus | None = None
    business_hours: BusinessHours = None


class MerchantSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    business_name: str
    email: str
    phone: str
    business_type: str
    verification_status: VerificationStatus
    document_status: str
    setup_completed: bool
    created_at: datetime | None = None


class MerchantDetail(MerchantSummary):
    """Admin view of one merchant, with the verification moves open to it."""

    address: str
    location: str | None = None
    description: str | None = None
    website: str | None = None
    business_hours: dict | None = None
    setup_completed_at: datetime | None = None
    created_by: str | None = None
    version: int
    updated_at: datetime | None = None
    allowed_transitions: list[VerificationStatus] = []


class MerchantCreateResponse(BaseModel):
    """Returned once; the temporary password is never retrievable again."""

    merchant: MerchantSummary
    temporary_password: str
    setup_url: str
    login_url: str


class BulkCreateRequest(BaseModel):
    # Items are validated one by one so a bad entry fails alone
    merchants: list[dict] = Field(min_length=1)


class BulkCreateSuccess(BaseModel):
    merchant_id: str
    email: str
    business_name: str
    temporary_password: str
    setup_url: str


class BulkCreateFailure(BaseModel):
    email: str | None = None
    business_name: str | None = None
    code: str
    message: str


class BulkCreateResult(BaseModel):
    total: int
    successful: list[BulkCreateSuccess] = []
    failed: list[BulkCreateFailure] = []


# ---------------------------------------------------------------------------
# Account setup
# ---------------------------------------------------------------------------


class SetupInfo(BaseModel):
    """Redacted merchant view shown on the setup page."""

    model_config = ConfigDict(from_attributes=True)

    business_name: str
    email: str
    phone: str
    business_type: str


class CompleteSetupRequest(BaseModel):
    new_password: str
    description: str | None = None
    website: str | None = None
    business_hours: BusinessHours = None


class CompleteSetupResponse(BaseModel):
    merchant_id: str
    business_name: str
    email: str
    verification_status: VerificationStatus
    setup_completed: bool
    message: str = "Account setup completed successfully"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentCreate(BaseModel):
    document_type: DocumentType
    document_name: str | None = None


class DocumentReview(BaseModel):
    status: DocumentStatus
    admin_notes: str | None = None

    @field_validator("status")
    @classmethod
    def reviewed_status_only(cls, v: DocumentStatus) -> DocumentStatus:
        if v == DocumentStatus.PENDING_REVIEW:
            raise ValueError("status must be complete or rejected")
        return v


class DocumentBulkReview(BaseModel):
    """One decision applied to many documents. Duplicate ids are dropped."""

    document_ids: list[str] = Field(min_length=1)
    status: DocumentStatus
    admin_notes: str | None = None

    @field_validator("document_ids")
    @classmethod
    def dedupe(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(did.strip() for did in v if did and did.strip()))

    @field_validator("status")
    @classmethod
    def reviewed_status_only(cls, v: DocumentStatus) -> DocumentStatus:
        if v == DocumentStatus.PENDING_REVIEW:
            raise ValueError("status must be complete or rejected")
        return v


class DocumentReviewFailure(BaseModel):
    document_id: str
    code: str
    message: str


class DocumentBulkReviewResult(BaseModel):
    modified_count: int = 0
    reviewed: list[str] = []
    failed: list[DocumentReviewFailure] = []


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant_id: str
    document_type: str
    document_name: str | None = None
    status: DocumentStatus
    admin_notes: str | None = None
    uploaded_at: datetime
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None


class DocumentStats(BaseModel):
    total: int = 0
    pending_review: int = 0
    complete: int = 0
    rejected: int = 0


# ---------------------------------------------------------------------------
# Bulk verification
# ---------------------------------------------------------------------------


class BulkActionRequest(BaseModel):
    """Batch verify/reject. Duplicate ids are dropped, first occurrence wins."""

    merchant_ids: list[str] = Field(min_length=1)
    action: BulkAction
    actor: str | None = None

    @field_validator("merchant_ids")
    @classmethod
    def dedupe(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(mid.strip() for mid in v if mid and mid.strip()))


class BulkActionResult(BaseModel):
    modified_count: int = 0
    outcomes: dict[str, BulkOutcome] = {}
