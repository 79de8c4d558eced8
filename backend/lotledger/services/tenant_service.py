"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to a tenant, and cross-tenant access must look
exactly like access to something that does not exist.

SECURITY INVARIANTS:
1. Every authenticated request has g.tenant_id set
2. Entity ids from client input are always looked up together with tenant_id
3. A foreign-tenant id raises NotFoundError, never ForbiddenError

USAGE:
    from lotledger.services.tenant_service import scoped_query, get_scoped

    lots = scoped_query(Lot, g.tenant_id).all()
    lot = get_scoped(Lot, g.tenant_id, lot_id, "Lot not found")
"""

from __future__ import annotations

from flask import g

from ..errors import NotFoundError
from ..extensions import db
from ..models import Tenant


class TenantAccessError(NotFoundError):
    """Raised when the tenant context is missing, unknown or inactive."""


def get_current_tenant_id() -> int:
    """
    Get current tenant_id from Flask g context.

    SECURITY: Raises TenantAccessError if tenant_id not set.
    This should never happen after @require_auth, but is a safety check.
    """
    tenant_id = getattr(g, "tenant_id", None)
    if tenant_id is None:
        raise TenantAccessError("Tenant context not established")
    return tenant_id


def require_tenant(tenant_id: int) -> Tenant:
    """Return the active tenant or raise TenantAccessError."""
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant or not tenant.is_active:
        raise TenantAccessError("Tenant not found")
    return tenant


def scoped_query(model, tenant_id: int | None = None):
    """
    Base query for a tenant-owned model (must have a tenant_id column).

    Usage:
        lots = scoped_query(Lot).order_by(Lot.created_at.desc()).all()
    """
    if tenant_id is None:
        tenant_id = get_current_tenant_id()
    return db.session.query(model).filter(model.tenant_id == tenant_id)


def get_scoped(model, tenant_id: int, entity_id: int, message: str = "Not found"):
    """
    Fetch one tenant-owned row by id.

    Missing and foreign-tenant rows are indistinguishable: both raise
    NotFoundError with the same generic message.
    """
    entity = scoped_query(model, tenant_id).filter(model.id == entity_id).first()
    if entity is None:
        raise NotFoundError(message)
    return entity
