"""Admin authentication for the operational endpoints.

Two modes, selected with AUTH_MODE:
    - none: No auth (development mode)
    - psk: Pre-shared admin token, sent as ``Authorization: Bearer <token>``

Usage:
    # Always require an admin:
    @router.get("/logs")
    async def get_logs(auth: AdminAuth):
        ...

    # Admin unless a bypass flag is set (startup hooks, public probes):
    @router.post("/init")
    async def initialize(startup: bool = False, auth: AuthContext = Depends(get_auth_context)):
        if not startup:
            ensure_admin(auth)
"""

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from eviction_crm.core.config import settings
from eviction_crm.core.exceptions import AuthenticationError, AuthorizationError
from eviction_crm.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AuthContext:
    """Authentication context for a request."""

    authenticated: bool
    is_admin: bool = False
    token_type: Optional[str] = None  # "psk" or None in mode none
    subject: Optional[str] = None


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract token from Authorization header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _validate_psk_token(token: str) -> Optional[AuthContext]:
    """Validate a PSK token and return the auth context.

    Args:
        token: The token to validate

    Returns:
        AuthContext if valid, None if not
    """
    expected = settings.AUTH_TOKEN_ADMIN
    if not expected:
        logger.warning("AUTH_MODE is psk but AUTH_TOKEN_ADMIN is not set; rejecting admin requests")
        return None

    if hmac.compare_digest(token.encode(), expected.encode()):
        return AuthContext(authenticated=True, is_admin=True, token_type="psk", subject="admin")
    return None


def get_auth_context(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> AuthContext:
    """FastAPI dependency to extract and validate auth context.

    Args:
        authorization: Authorization header value

    Returns:
        AuthContext for the request
    """
    # Mode: none - everyone is an admin
    if settings.AUTH_MODE == "none":
        return AuthContext(authenticated=True, is_admin=True)

    token = _extract_bearer_token(authorization)
    if not token:
        return AuthContext(authenticated=False)

    context = _validate_psk_token(token)
    if context:
        return context
    return AuthContext(authenticated=False)


def ensure_admin(auth: AuthContext) -> AuthContext:
    """Raise 401/403 unless the request is from an admin.

    Raises:
        HTTPException: 401 when unauthenticated, 403 when not an admin
    """
    if settings.AUTH_MODE == "none":
        return auth

    if not auth.authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": AuthenticationError().to_dict()},
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": AuthorizationError().to_dict()},
        )

    return auth


def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Dependency that requires an admin caller."""
    return ensure_admin(auth)
