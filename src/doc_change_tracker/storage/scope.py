"""Tenant scoping shared by the tracking stores."""

from doc_change_tracker.models.exceptions import raise_tenant_scope_error


def require_tenant(tenant_id: str | None, operation: str) -> str:
    """Fail closed when no tenant scope was supplied."""
    if tenant_id is None or not str(tenant_id).strip():
        raise_tenant_scope_error(operation)
    return tenant_id
