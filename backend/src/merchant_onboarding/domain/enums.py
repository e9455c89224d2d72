"""Domain enumerations for merchant onboarding.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class VerificationStatus(str, Enum):
    """Trust state of a merchant."""

    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class DocumentStatus(str, Enum):
    """Review state of a single verification document."""

    PENDING_REVIEW = "pending_review"
    COMPLETE = "complete"
    REJECTED = "rejected"


class AggregateDocumentStatus(str, Enum):
    """Composite review state of all of a merchant's active documents."""

    NONE = "none"
    PENDING_REVIEW = "pending_review"
    COMPLETE = "complete"
    REJECTED = "rejected"


class DocumentType(str, Enum):
    """Kinds of verification evidence a merchant can submit."""

    BUSINESS_REGISTRATION = "business_registration"
    ID_DOCUMENT = "id_document"
    UTILITY_BILL = "utility_bill"
    TAX_CERTIFICATE = "tax_certificate"
    OTHER = "other"


class BusinessType(str, Enum):
    """Merchant business category."""

    RETAIL = "retail"
    ELECTRONICS = "electronics"
    FASHION = "fashion"
    FOOD_BEVERAGE = "food_beverage"
    HEALTH_BEAUTY = "health_beauty"
    HOME_GARDEN = "home_garden"
    SERVICES = "services"
    OTHER = "other"


class BulkAction(str, Enum):
    """Administrative batch transitions."""

    VERIFY = "verify"
    REJECT = "reject"


class BulkOutcome(str, Enum):
    """Per-merchant result of a bulk action."""

    APPLIED = "applied"
    SKIPPED_ALREADY_IN_STATE = "skipped-already-in-state"
    SKIPPED_NOT_FOUND = "skipped-not-found"
    SKIPPED_INVALID_TRANSITION = "skipped-invalid-transition"


WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
