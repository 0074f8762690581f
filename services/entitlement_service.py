# services/entitlement_service.py
"""
Entitlement Service - feeds the pure resolver with live data.

Every check reads the plan row and counts the tenant's resources at the moment
of the call. Nothing is cached between requests, so a plan change or a delete
is visible to the very next check.
"""

from datetime import datetime
from functools import wraps
from typing import Optional

from flask import current_app, g
from flask_login import current_user
from sqlalchemy import update

from entitlements import (
    Action, ModuleType, PermissionOverride, PlanModuleConfig, Role,
    apply_permission_override, denial_for, resolve_entitlement,
)
from models import (
    db, AccountModuleOverride, ModuleUsage, PlanModule, RESOURCE_MODELS,
    UserModulePermission,
)
from services.exceptions import AccountInactive, MissingBusinessAccount
from services.tenant_service import tenant_query_for_id


# =============================================================================
# DATA ACCESS
# =============================================================================

def get_plan_module_config(plan_id: Optional[int], module_type: str) -> Optional[PlanModuleConfig]:
    """
    Fetch the PlanModule row for a plan and module.

    Returns:
        PlanModuleConfig, or None when the plan has no row for the module
    """
    if plan_id is None:
        return None
    row = PlanModule.query.filter_by(plan_id=plan_id, module_type=module_type).first()
    return row.to_config() if row else None


def count_resources_for_tenant(business_account_id: int, module_type: str) -> int:
    """Live count of the account's non-deleted resources in a module."""
    model = RESOURCE_MODELS.get(module_type)
    if model is None:
        return 0
    return tenant_query_for_id(model, business_account_id).count()


def is_module_disabled(business_account_id: int, module_type: str) -> bool:
    """Check the platform admin switch for an account and module."""
    override = AccountModuleOverride.query.filter_by(
        business_account_id=business_account_id, module_type=module_type
    ).first()
    return bool(override and override.is_disabled)


def get_user_override(user, module_type: str) -> Optional[PermissionOverride]:
    """Per-user restriction set by a business admin. Only USER role accounts carry one."""
    if user.role != Role.USER:
        return None
    row = UserModulePermission.query.filter_by(user_id=user.id, module_type=module_type).first()
    if row is None:
        return None
    return PermissionOverride(
        can_view=row.can_view,
        can_create=row.can_create,
        can_edit=row.can_edit,
        can_delete=row.can_delete,
    )


# =============================================================================
# VERDICTS
# =============================================================================

def get_module_verdict(user, module_type: str, business_account=None):
    """
    Resolve what a user may do in a module of a business account.

    Args:
        user: Acting User
        module_type: One of ModuleType.ALL
        business_account: Account acted on; defaults to the user's own account

    Returns:
        EntitlementVerdict
    """
    role = getattr(user, 'role', None)
    account = business_account if business_account is not None else getattr(user, 'business_account', None)

    if account is None:
        # Platform admins outside any tenant still see everything
        return resolve_entitlement(role, None, 0)

    current_count = count_resources_for_tenant(account.id, module_type)

    if role == Role.SUPER_ADMIN:
        return resolve_entitlement(role, None, current_count)

    if not account.is_usable or is_module_disabled(account.id, module_type):
        plan_module = None
    else:
        plan_module = get_plan_module_config(account.plan_id, module_type)

    verdict = resolve_entitlement(role, plan_module, current_count)
    return apply_permission_override(verdict, get_user_override(user, module_type))


def get_all_module_verdicts(user, business_account=None) -> dict:
    """Verdicts for every catalog module, keyed by module type."""
    return {
        module_type: get_module_verdict(user, module_type, business_account)
        for module_type in ModuleType.ALL
    }


def get_account_usage(account) -> list:
    """
    Usage of every module for an account, as the plan sees it.
    Used by platform admin views; ignores per-user overrides.
    """
    usage = []
    for module_type in ModuleType.ALL:
        plan_module = get_plan_module_config(account.plan_id, module_type)
        disabled = is_module_disabled(account.id, module_type)
        verdict = resolve_entitlement(
            Role.BUSINESS_ADMIN,
            None if disabled else plan_module,
            count_resources_for_tenant(account.id, module_type),
        )
        usage.append({
            'moduleType': module_type,
            'isIncluded': verdict.can_view,
            'isDisabled': disabled,
            'currentCount': verdict.current_count,
            'itemLimit': verdict.item_limit,
            'isNearLimit': verdict.is_near_limit,
            'isAtLimit': verdict.is_at_limit,
        })
    return usage


def check_module_access(user, module_type: str, action: str, business_account=None):
    """
    Resolve and enforce an action.

    Returns:
        EntitlementVerdict when the action is allowed

    Raises:
        EntitlementError subclass describing the denial
    """
    verdict = get_module_verdict(user, module_type, business_account)
    denial = denial_for(verdict, action, module_type)
    if denial is not None:
        account = business_account if business_account is not None else getattr(user, 'business_account', None)
        current_app.logger.warning(
            f"Entitlement denied: {denial.code} user={getattr(user, 'id', None)} "
            f"account={getattr(account, 'id', None)} module={module_type} action={action} "
            f"count={verdict.current_count} limit={verdict.item_limit}"
        )
        raise denial
    return verdict


def module_required(module_type: str, action: str = Action.VIEW):
    """
    Decorator enforcing a module entitlement on a route. Use below @login_required.
    The verdict is kept on g.entitlement for the view.

    This check alone is check-then-act; creates must still go through
    create_within_limit().
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_super_admin:
                account = current_user.business_account
                if account is None:
                    raise MissingBusinessAccount()
                if not account.is_usable:
                    raise AccountInactive()
            g.entitlement = check_module_access(current_user, module_type, action)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


# =============================================================================
# LIMIT-GUARDED CREATE
# =============================================================================

def _lock_usage_row(business_account_id: int, module_type: str):
    """
    Take the tenant-module lock by writing to its ModuleUsage row.
    PostgreSQL holds a row lock until commit; SQLite holds the database write lock.
    """
    stmt = (
        update(ModuleUsage)
        .where(ModuleUsage.business_account_id == business_account_id)
        .where(ModuleUsage.module_type == module_type)
        .values(last_calculated=datetime.utcnow())
    )
    if db.session.execute(stmt).rowcount:
        return

    # Rows are created with the account; this only covers accounts that predate them.
    # A concurrent insert loses on uq_module_usage and the caller rolls back.
    db.session.add(ModuleUsage(
        business_account_id=business_account_id,
        module_type=module_type,
        current_count=0,
    ))
    db.session.flush()


def ensure_usage_rows(business_account_id: int):
    """Create the zeroed usage rows of a new account. Caller commits."""
    existing = {
        usage.module_type for usage in
        ModuleUsage.query.filter_by(business_account_id=business_account_id).all()
    }
    for module_type in ModuleType.ALL:
        if module_type not in existing:
            db.session.add(ModuleUsage(
                business_account_id=business_account_id,
                module_type=module_type,
                current_count=0,
            ))


def refresh_usage(business_account_id: int, module_type: str) -> int:
    """
    Rewrite the usage snapshot for an account and module. Caller commits.

    Returns:
        The fresh count
    """
    count = count_resources_for_tenant(business_account_id, module_type)
    usage = ModuleUsage.query.filter_by(
        business_account_id=business_account_id, module_type=module_type
    ).first()
    if usage is None:
        usage = ModuleUsage(business_account_id=business_account_id, module_type=module_type)
        db.session.add(usage)
    usage.current_count = count
    usage.last_calculated = datetime.utcnow()
    return count


def create_within_limit(user, module_type: str, instance, business_account):
    """
    Insert a limited resource without admitting the double-create race.

    The count, the verdict and the insert happen inside one transaction that
    holds the tenant-module usage lock, so two concurrent creates at N-1 of N
    cannot both pass.

    Args:
        user: Acting User
        module_type: Module the instance counts toward
        instance: Unsaved model instance with business_account_id set
        business_account: Account the instance belongs to

    Returns:
        The committed instance

    Raises:
        EntitlementError subclass when the create is not allowed
    """
    try:
        _lock_usage_row(business_account.id, module_type)
        if not user.is_super_admin:
            check_module_access(user, module_type, Action.CREATE, business_account)
        db.session.add(instance)
        db.session.flush()
        refresh_usage(business_account.id, module_type)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return instance
