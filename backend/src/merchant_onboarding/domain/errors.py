"""Typed failures raised by the onboarding services.

Every error carries a stable ``code`` for API clients and the HTTP status the
routes translate it to.
"""

from merchant_onboarding.domain.enums import VerificationStatus


class OnboardingError(Exception):
    """Base class for all onboarding failures."""

    code = "onboarding_error"
    http_status = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(OnboardingError):
    """Missing or malformed input, correctable by the caller."""

    code = "validation_error"
    http_status = 422

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")

    def to_detail(self) -> dict:
        return {**super().to_detail(), "field": self.field}


class DuplicateEmail(OnboardingError):
    code = "duplicate_email"
    http_status = 409

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"A merchant with email {email} already exists")


class TokenNotFound(OnboardingError):
    code = "token_not_found"
    http_status = 404

    def __init__(self):
        super().__init__("Setup token not found")


class TokenExpired(OnboardingError):
    code = "token_expired"
    http_status = 410

    def __init__(self):
        super().__init__("Setup token has expired")


class TokenAlreadyConsumed(OnboardingError):
    code = "token_already_consumed"
    http_status = 409

    def __init__(self):
        super().__init__("Setup token has already been used")


class PasswordPolicyViolation(OnboardingError):
    """Raised with every unmet rule, not just the first."""

    code = "password_policy_violation"
    http_status = 422

    def __init__(self, unmet_rules: list[str]):
        self.unmet_rules = list(unmet_rules)
        super().__init__(f"Password does not meet policy: {', '.join(self.unmet_rules)}")

    def to_detail(self) -> dict:
        return {**super().to_detail(), "unmet_rules": self.unmet_rules}


class InvalidStateTransition(OnboardingError):
    """Raised when a verification status transition is not allowed."""

    code = "invalid_state_transition"
    http_status = 409

    def __init__(self, current_status: VerificationStatus, target_status: VerificationStatus):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot move merchant from {current_status.value} to {target_status.value}"
        )


class MerchantNotFound(OnboardingError):
    code = "merchant_not_found"
    http_status = 404

    def __init__(self, merchant_id: str):
        self.merchant_id = merchant_id
        super().__init__(f"Merchant {merchant_id} not found")


class DocumentNotFound(OnboardingError):
    code = "document_not_found"
    http_status = 404

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class ConcurrentModification(OnboardingError):
    """Optimistic version check kept losing; safe to retry the request."""

    code = "concurrent_modification"
    http_status = 409

    def __init__(self, merchant_id: str):
        self.merchant_id = merchant_id
        super().__init__(f"Merchant {merchant_id} was modified concurrently, retry the request")


class ProvisioningFailed(OnboardingError):
    """Partial write detected; the whole create must be retried."""

    code = "provisioning_failed"
    http_status = 503

    def __init__(self, reason: str):
        super().__init__(f"Merchant provisioning failed, retry the request: {reason}")
