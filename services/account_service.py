# services/account_service.py
"""
Business account lifecycle for platform admins.
Accounts are soft-deleted only; their data stays in place.
"""

from flask import current_app

from entitlements import ModuleType, Role
from models import db, AccountModuleOverride, BusinessAccount, Plan, User
from services.audit_service import log_platform_action
from services.entitlement_service import ensure_usage_rows, refresh_usage
from services.exceptions import Conflict, ValidationFailed
from services.plan_service import get_default_plan
from utils import format_phone_number


def email_taken(email: str, user_id: int = None) -> bool:
    """Check whether any user, deleted or not, already holds an email."""
    query = User.query.filter(db.func.lower(User.email) == email.strip().lower())
    if user_id is not None:
        query = query.filter(User.id != user_id)
    return query.first() is not None


def _resolve_plan(plan_id):
    if plan_id is None:
        plan = get_default_plan()
        if plan is None:
            raise ValidationFailed(
                'No plan given and no default plan is configured',
                details={'plan_id': ['This field is required.']},
            )
        return plan

    plan = db.session.get(Plan, plan_id)
    if plan is None:
        raise ValidationFailed(details={'plan_id': ['Unknown plan.']})
    if plan.status != Plan.STATUS_ACTIVE:
        raise ValidationFailed(
            f'Plan "{plan.name}" is {plan.status.lower()} and cannot be assigned',
            details={'plan_id': ['Only active plans can be assigned.']},
        )
    return plan


def create_business_account(name: str, plan_id: int = None, admin: dict = None):
    """
    Create a business account and, optionally, its first BUSINESS_ADMIN.

    Args:
        name: Account name
        plan_id: Plan to assign; the default plan when None
        admin: Optional {'name', 'email', 'password', 'phone'} for the first admin

    Returns:
        (account, admin_user or None)
    """
    plan = _resolve_plan(plan_id)

    if admin and email_taken(admin['email']):
        raise Conflict('A user with this email already exists', details={'email': admin['email']})

    account = BusinessAccount(name=name.strip(), plan_id=plan.id, is_active=True)
    db.session.add(account)
    db.session.flush()
    ensure_usage_rows(account.id)

    admin_user = None
    if admin:
        admin_user = User(
            name=admin['name'].strip(),
            email=admin['email'].strip().lower(),
            phone=format_phone_number(admin.get('phone')),
            role=Role.BUSINESS_ADMIN,
            business_account_id=account.id,
        )
        admin_user.set_password(admin['password'])
        db.session.add(admin_user)
        db.session.flush()

        refresh_usage(account.id, ModuleType.USERS)

    log_platform_action('account_created', target_account_id=account.id, details={
        'name': account.name,
        'planId': plan.id,
        'adminUserId': admin_user.id if admin_user else None,
    })
    db.session.commit()
    return account, admin_user


def update_business_account(account, data: dict):
    """Update name and active flag. Plan changes go through change_account_plan()."""
    if 'name' in data:
        account.name = data['name'].strip()
    if 'is_active' in data:
        account.is_active = bool(data['is_active'])

    log_platform_action('account_updated', target_account_id=account.id,
                        details={'fields': sorted(data)})
    db.session.commit()
    return account


def soft_delete_business_account(account):
    """Deactivate an account. Users of a deleted account can no longer log in."""
    if account.deleted_at is not None:
        return account
    account.soft_delete()
    log_platform_action('account_deleted', target_account_id=account.id)
    db.session.commit()
    current_app.logger.info(f"Business account {account.id} soft-deleted")
    return account


def set_module_override(account, module_type: str, is_disabled: bool, admin_user):
    """
    Switch a module off (or back on) for a single account.

    Returns:
        The AccountModuleOverride row
    """
    if module_type not in ModuleType.ALL:
        raise ValidationFailed(
            f'Unknown module {module_type}',
            details={'module_type': [f'Must be one of {", ".join(ModuleType.ALL)}.']},
        )

    override = AccountModuleOverride.query.filter_by(
        business_account_id=account.id, module_type=module_type
    ).first()
    if override is None:
        override = AccountModuleOverride(business_account_id=account.id, module_type=module_type)
        db.session.add(override)
    override.is_disabled = is_disabled
    override.disabled_by_id = admin_user.id if is_disabled else None

    log_platform_action('account_module_override', target_account_id=account.id, details={
        'moduleType': module_type,
        'isDisabled': is_disabled,
    })
    db.session.commit()
    return override
