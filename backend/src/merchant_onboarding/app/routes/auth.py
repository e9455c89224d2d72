"""Request authentication helpers shared by the routers.

Tokens are issued by the platform's authentication layer; this service only
checks them and reads the acting admin's identity.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from merchant_onboarding.domain.errors import OnboardingError
from merchant_onboarding.services.credentials import decode_token


@dataclass
class AdminPrincipal:
    id: str
    email: str | None = None


async def get_current_admin(request: Request) -> AdminPrincipal:
    """Dependency: require a Bearer token whose role claim is admin."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid token",
        )
    payload = decode_token(auth_header.removeprefix("Bearer "))
    if not payload or "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    if payload.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return AdminPrincipal(id=str(payload["sub"]), email=payload.get("email"))


def http_error(exc: OnboardingError) -> HTTPException:
    """Translate a domain failure into the HTTP response the client sees."""
    return HTTPException(status_code=exc.http_status, detail=exc.to_detail())
