"""Credential issuer: temporary passwords, password policy, and hashing."""

import hashlib
import secrets
import string

from jose import JWTError, jwt
from passlib.context import CryptContext

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.domain.errors import PasswordPolicyViolation

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 8

# Rule names reported by check_password_policy, in evaluation order
RULE_MIN_LENGTH = "min_length"
RULE_LOWERCASE = "lowercase"
RULE_UPPERCASE = "uppercase"
RULE_DIGIT = "digit"
RULE_SPECIAL = "special"

_random = secrets.SystemRandom()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def decode_token(token: str) -> dict | None:
    """Decode a platform-issued bearer JWT; None if invalid or expired."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def hash_token(token: str) -> str:
    """SHA-256 hex digest used as the setup token's storage key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_token(num_bytes: int | None = None) -> str:
    """Return a URL-safe, high-entropy opaque token."""
    if num_bytes is None:
        num_bytes = get_settings().setup_token_bytes
    return secrets.token_urlsafe(num_bytes)


def check_password_policy(password: str, special_chars: str | None = None) -> list[str]:
    """Return every unmet rule (empty list means the password is compliant)."""
    if special_chars is None:
        special_chars = get_settings().password_special_chars
    password = password or ""

    unmet: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        unmet.append(RULE_MIN_LENGTH)
    if not any(c in string.ascii_lowercase for c in password):
        unmet.append(RULE_LOWERCASE)
    if not any(c in string.ascii_uppercase for c in password):
        unmet.append(RULE_UPPERCASE)
    if not any(c in string.digits for c in password):
        unmet.append(RULE_DIGIT)
    if not any(c in special_chars for c in password):
        unmet.append(RULE_SPECIAL)
    return unmet


def enforce_password_policy(password: str) -> None:
    """Raise PasswordPolicyViolation listing all unmet rules."""
    unmet = check_password_policy(password)
    if unmet:
        raise PasswordPolicyViolation(unmet)


def generate_temp_password(length: int | None = None) -> str:
    """Generate a temporary password that always satisfies the policy.

    One character is drawn from each required class, the rest from the union,
    then the whole sequence is shuffled with the system CSPRNG.
    """
    settings = get_settings()
    if length is None:
        length = settings.temp_password_length
    length = max(length, MIN_PASSWORD_LENGTH)
    special = settings.password_special_chars

    classes = [string.ascii_lowercase, string.ascii_uppercase, string.digits, special]
    alphabet = "".join(classes)

    chars = [secrets.choice(charset) for charset in classes]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    _random.shuffle(chars)
    return "".join(chars)
