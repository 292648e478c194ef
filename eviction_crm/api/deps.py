"""API dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends

from eviction_crm.core.auth import AuthContext, get_auth_context, require_admin
from eviction_crm.services.ops import OpsServices, get_ops_services


def get_ops() -> OpsServices:
    """Get the process-wide operational services."""
    return get_ops_services()


# Type aliases for cleaner dependency injection
Ops = Annotated[OpsServices, Depends(get_ops)]
OptionalAuth = Annotated[AuthContext, Depends(get_auth_context)]
AdminAuth = Annotated[AuthContext, Depends(require_admin)]
