# services/tenant_service.py
"""
Tenant isolation helpers for the multi-tenant CRM.
ALWAYS use tenant_query() for tenant-scoped models.
Rows belonging to another business account must look exactly like missing rows.
"""

from functools import wraps

from flask import abort
from flask_login import current_user

from entitlements import Role
from services.exceptions import (
    AccountInactive, InsufficientRole, MissingBusinessAccount, ValidationFailed
)


# =============================================================================
# QUERY HELPERS
# =============================================================================

def _live(query, model):
    if hasattr(model, 'deleted_at'):
        query = query.filter(model.deleted_at.is_(None))
    return query


def tenant_query(model):
    """
    Return query filtered to current user's business account.
    ALWAYS use this for tenant-scoped models instead of Model.query.

    Example:
        companies = tenant_query(Company).order_by(Company.name).all()

    Args:
        model: SQLAlchemy model class with business_account_id column

    Returns:
        Query object filtered to the user's account, soft-deleted rows excluded

    Raises:
        RuntimeError: If called without authenticated user
        MissingBusinessAccount: If the user has no account (platform admins)
    """
    if not current_user.is_authenticated:
        raise RuntimeError("tenant_query() requires authenticated user")
    if current_user.business_account_id is None:
        raise MissingBusinessAccount()

    return tenant_query_for_id(model, current_user.business_account_id)


def tenant_query_for_id(model, account_id: int):
    """
    Return query filtered to a specific business account.
    Use in background jobs and platform admin views where the account is explicit.

    Args:
        model: SQLAlchemy model class with business_account_id column
        account_id: Business account ID to filter by

    Returns:
        Query object filtered to the account, soft-deleted rows excluded
    """
    return _live(model.query.filter_by(business_account_id=account_id), model)


def scoped_query(model, args=None):
    """
    Tenant query for list views.
    SUPER_ADMIN sees every account unless args name a business_account_id.

    Args:
        model: SQLAlchemy model class with business_account_id column
        args: Request query args

    Returns:
        Query object, soft-deleted rows excluded
    """
    if current_user.is_super_admin:
        account_id = (args or {}).get('business_account_id') or (args or {}).get('businessAccountId')
        if account_id:
            try:
                return tenant_query_for_id(model, int(account_id))
            except (TypeError, ValueError):
                raise ValidationFailed(details={'business_account_id': ['Not a valid integer value.']})
        return _live(model.query, model)
    return tenant_query(model)


def get_or_404_tenant(model, resource_id: int):
    """
    Get a resource by ID or abort 404 if not found, deleted or wrong account.
    SUPER_ADMIN sees every account.

    Args:
        model: SQLAlchemy model class
        resource_id: ID of the resource

    Returns:
        The resource if found and visible to the current user
    """
    from models import db

    resource = db.session.get(model, resource_id)
    if resource is None:
        abort(404)
    if getattr(resource, 'deleted_at', None) is not None:
        abort(404)
    if current_user.is_super_admin:
        return resource
    if resource.business_account_id != current_user.business_account_id:
        abort(404)
    return resource


def resolve_target_account(data: dict):
    """
    Pick the business account a create or list acts on.
    Tenant users always act on their own account; SUPER_ADMIN must name one.

    Args:
        data: Request payload or query args, may carry business_account_id

    Returns:
        BusinessAccount instance

    Raises:
        ValidationFailed: SUPER_ADMIN without a business_account_id
        MissingBusinessAccount: Tenant user without an account
        404: Unknown or deleted account
    """
    from models import db, BusinessAccount

    if current_user.is_super_admin:
        account_id = data.get('business_account_id') or data.get('businessAccountId')
        if not account_id:
            raise ValidationFailed(
                'business_account_id is required when acting as platform admin',
                details={'business_account_id': ['This field is required.']},
            )
        try:
            account_id = int(account_id)
        except (TypeError, ValueError):
            raise ValidationFailed(details={'business_account_id': ['Not a valid integer value.']})
    else:
        account_id = current_user.business_account_id
        if account_id is None:
            raise MissingBusinessAccount()

    account = db.session.get(BusinessAccount, account_id)
    if account is None or account.deleted_at is not None:
        abort(404)
    return account


# =============================================================================
# ROLE MANAGEMENT
# =============================================================================

ROLE_HIERARCHY = {Role.SUPER_ADMIN: 3, Role.BUSINESS_ADMIN: 2, Role.USER: 1}


def get_role_level(role: str) -> int:
    """Get numeric level for a role."""
    return ROLE_HIERARCHY.get(role, 0)


def can_assign_role(assigner_role: str, target_role: str) -> bool:
    """
    Check if assigner can assign target_role.
    Can only assign roles BELOW your level.

    Args:
        assigner_role: Role of the user assigning the role
        target_role: Role being assigned

    Returns:
        True if assignment is allowed
    """
    if target_role not in ROLE_HIERARCHY:
        return False
    return get_role_level(assigner_role) > get_role_level(target_role)


def can_modify_user(modifier, target_user) -> bool:
    """
    Check if modifier can change target_user's role or remove them.

    Args:
        modifier: User attempting the modification
        target_user: User being modified

    Returns:
        True if modification is allowed
    """
    if modifier.id == target_user.id:
        return False  # Cannot modify self
    if modifier.is_super_admin:
        return not target_user.is_super_admin
    if modifier.business_account_id != target_user.business_account_id:
        return False  # Must be same account
    return get_role_level(modifier.role) > get_role_level(target_user.role)


# =============================================================================
# DECORATORS
# =============================================================================

def role_required(*roles):
    """Decorator to require one of the given roles. Use below @login_required."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if current_user.role not in roles:
                raise InsufficientRole(details={'requiredRoles': list(roles)})
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def super_admin_required(f):
    """Decorator to require the platform super admin."""
    return role_required(Role.SUPER_ADMIN)(f)


def business_account_required(f):
    """Decorator to require a usable business account (platform admins pass through)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_super_admin:
            account = current_user.business_account
            if account is None:
                raise MissingBusinessAccount()
            if not account.is_usable:
                raise AccountInactive()
        return f(*args, **kwargs)
    return decorated_function
