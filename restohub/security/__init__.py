"""Security utilities exposed for convenience."""

from .auth import (
    TenantContext,
    get_current_token_payload,
    get_tenant_context,
    require_role,
)

__all__ = [
    "TenantContext",
    "get_current_token_payload",
    "get_tenant_context",
    "require_role",
]
