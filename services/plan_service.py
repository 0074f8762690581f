# services/plan_service.py
"""
Plan management for platform admins.

Plans are data, not code: the seed bundles in plan_config only populate a
fresh install. Changing a plan or an account's plan never touches tenant data;
an account left above a limit simply cannot create more until it is back under.
"""

from decimal import Decimal

from flask import current_app

from entitlements import ModuleType, resolve_entitlement, Role
from models import db, BusinessAccount, Module, Plan, PlanModule
from plan_config import (
    DEFAULT_PLANS, MODULE_CATALOG, apply_plan_defaults, default_limit_for,
    get_module_definition,
)
from services.audit_service import log_platform_action
from services.entitlement_service import count_resources_for_tenant
from services.exceptions import Conflict, ValidationFailed

PLAN_FIELDS = (
    'name', 'description', 'status', 'monthly_price', 'annual_price',
    'trial_days', 'display_order',
)
PLAN_MODULE_FIELDS = ('is_included', 'item_limit', 'can_create', 'can_edit', 'can_delete')


# =============================================================================
# SEEDING
# =============================================================================

def seed_module_catalog():
    """
    Create or refresh the Module rows from MODULE_CATALOG.
    Idempotent - safe to call multiple times.

    Returns:
        List of Module objects
    """
    modules = []
    for module_type, definition in MODULE_CATALOG.items():
        module = Module.query.filter_by(type=module_type).first()
        if module is None:
            module = Module(type=module_type)
            db.session.add(module)
        module.name = definition['name']
        module.description = definition['description']
        module.has_limits = definition['has_limits']
        module.default_limit = definition['default_limit']
        modules.append(module)

    db.session.commit()
    return modules


def seed_default_plans():
    """
    Create the seed plans that do not exist yet.
    Idempotent - existing plans are left as the platform admin edited them.

    Returns:
        List of created Plan objects
    """
    created = []
    has_default = Plan.query.filter_by(is_default=True).first() is not None

    for key in DEFAULT_PLANS:
        if Plan.query.filter_by(name=DEFAULT_PLANS[key]['name']).first():
            continue
        plan = Plan(status=Plan.STATUS_ACTIVE)
        apply_plan_defaults(plan, key)
        if has_default:
            plan.is_default = False
        has_default = has_default or plan.is_default
        db.session.add(plan)
        created.append(plan)

    db.session.commit()
    if created:
        current_app.logger.info(f"Seeded plans: {', '.join(p.name for p in created)}")
    return created


# =============================================================================
# LOOKUPS
# =============================================================================

def get_default_plan():
    """The plan given to accounts created without one, or None."""
    return Plan.query.filter_by(is_default=True, status=Plan.STATUS_ACTIVE).first()


def get_listed_plans(include_all: bool = False):
    """Plans in display order. Only ACTIVE ones unless include_all."""
    query = Plan.query
    if not include_all:
        query = query.filter_by(status=Plan.STATUS_ACTIVE)
    return query.order_by(Plan.display_order, Plan.id).all()


def _money(value):
    return float(value) if value is not None else None


def serialize_plan(plan, include_usage: bool = False) -> dict:
    """Plan as JSON, modules in catalog order."""
    data = {
        'id': plan.id,
        'name': plan.name,
        'description': plan.description,
        'status': plan.status,
        'monthlyPrice': _money(plan.monthly_price),
        'annualPrice': _money(plan.annual_price),
        'trialDays': plan.trial_days,
        'isDefault': plan.is_default,
        'displayOrder': plan.display_order,
        'modules': [
            plan.get_module(module_type).to_dict()
            for module_type in ModuleType.ALL
            if plan.get_module(module_type) is not None
        ],
    }
    if include_usage:
        data['accountCount'] = plan.accounts.filter(BusinessAccount.deleted_at.is_(None)).count()
    return data


# =============================================================================
# PLAN CRUD
# =============================================================================

def _check_name_available(name: str, plan_id: int = None):
    query = Plan.query.filter(db.func.lower(Plan.name) == name.strip().lower())
    if plan_id is not None:
        query = query.filter(Plan.id != plan_id)
    if query.first():
        raise Conflict(f'A plan named "{name}" already exists', details={'name': name})


def _apply_plan_fields(plan, data: dict):
    for field in PLAN_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if value is None and field != 'description':
            continue  # NOT NULL columns keep their current or default value
        if field in ('monthly_price', 'annual_price'):
            value = Decimal(str(value))
        if field == 'name':
            value = value.strip()
        setattr(plan, field, value)


def set_default_plan(plan):
    """Make plan the single default plan. Caller commits."""
    if plan.status != Plan.STATUS_ACTIVE:
        raise ValidationFailed(
            'Only an active plan can be the default plan',
            details={'is_default': ['Plan is not active.']},
        )
    Plan.query.filter(Plan.id != plan.id, Plan.is_default.is_(True)).update(
        {'is_default': False}, synchronize_session='fetch'
    )
    plan.is_default = True


def create_plan(data: dict, modules: dict = None):
    """
    Create a plan.

    Args:
        data: Validated plan fields (snake_case)
        modules: Optional {module_type: plan module fields}. Catalog modules
            not listed are created as not included.

    Returns:
        The committed Plan
    """
    _check_name_available(data['name'])

    plan = Plan(status=Plan.STATUS_ACTIVE)
    _apply_plan_fields(plan, data)
    db.session.add(plan)

    modules = modules or {}
    for module_type in ModuleType.ALL:
        _upsert_plan_module(plan, module_type, modules.get(module_type, {'is_included': False}))

    if data.get('is_default'):
        db.session.flush()
        set_default_plan(plan)

    db.session.flush()
    log_platform_action('plan_created', details={'planId': plan.id, 'name': plan.name})
    db.session.commit()
    return plan


def update_plan(plan, data: dict, commit: bool = True):
    """
    Apply the given fields to a plan. Keys absent from data are left unchanged.
    With commit=False the caller commits, so plan and module changes land together.
    """
    if 'name' in data:
        _check_name_available(data['name'], plan.id)

    if plan.is_default and data.get('status', plan.status) != Plan.STATUS_ACTIVE:
        raise ValidationFailed(
            'The default plan must stay active. Choose another default plan first.',
            details={'status': ['Default plan must be ACTIVE.']},
        )
    if plan.is_default and data.get('is_default') is False:
        raise ValidationFailed(
            'Choose another default plan instead of clearing this one.',
            details={'is_default': ['A default plan is required.']},
        )

    _apply_plan_fields(plan, data)
    if data.get('is_default'):
        set_default_plan(plan)

    log_platform_action('plan_updated', details={'planId': plan.id, 'fields': sorted(data)})
    if commit:
        db.session.commit()
    return plan


def delete_plan(plan):
    """
    Delete a plan nobody uses.

    Raises:
        Conflict: Plan is the default or still referenced by an account
    """
    if plan.is_default:
        raise Conflict('The default plan cannot be deleted', details={'planId': plan.id})

    account_count = plan.accounts.count()
    if account_count:
        raise Conflict(
            f'Plan is assigned to {account_count} business account(s). '
            f'Move them to another plan or deprecate this one instead.',
            details={'planId': plan.id, 'accountCount': account_count},
        )

    log_platform_action('plan_deleted', details={'planId': plan.id, 'name': plan.name})
    db.session.delete(plan)
    db.session.commit()


# =============================================================================
# PLAN MODULES
# =============================================================================

def _upsert_plan_module(plan, module_type: str, data: dict):
    definition = get_module_definition(module_type)
    if definition is None:
        raise ValidationFailed(
            f'Unknown module {module_type}',
            details={'module_type': [f'Must be one of {", ".join(ModuleType.ALL)}.']},
        )

    item_limit = data.get('item_limit')
    if item_limit is not None and not definition['has_limits']:
        raise ValidationFailed(
            f'The {module_type} module does not support item limits',
            details={'item_limit': ['Must be empty for this module.']},
        )
    if item_limit is not None and item_limit < 0:
        raise ValidationFailed(details={'item_limit': ['Must be zero or greater.']})

    plan_module = plan.get_module(module_type)
    if plan_module is None:
        plan_module = PlanModule(module_type=module_type, is_included=False,
                                 can_create=True, can_edit=True, can_delete=True)
        plan.modules.append(plan_module)
    was_included = plan_module.is_included

    for field in PLAN_MODULE_FIELDS:
        if field in data:
            setattr(plan_module, field, data[field])

    # Switching a limited module on without a limit falls back to the catalog default
    switched_on = plan_module.is_included and not was_included
    if switched_on and 'item_limit' not in data and plan_module.item_limit is None:
        plan_module.item_limit = default_limit_for(module_type)

    return plan_module


def set_plan_module(plan, module_type: str, data: dict, commit: bool = True):
    """
    Create or update the row of a plan for one module.

    Args:
        plan: Plan instance
        module_type: One of ModuleType.ALL
        data: Validated fields; only keys present are changed
        commit: False leaves the commit to the caller

    Returns:
        The PlanModule
    """
    plan_module = _upsert_plan_module(plan, module_type, data)
    log_platform_action('plan_module_updated', details={
        'planId': plan.id,
        'moduleType': module_type,
        'changes': {k: data[k] for k in PLAN_MODULE_FIELDS if k in data},
    })
    if commit:
        db.session.commit()
    return plan_module


# =============================================================================
# ACCOUNT PLAN CHANGES
# =============================================================================

def get_over_limit_report(account, plan) -> dict:
    """
    Compare an account's live usage against a plan.

    Returns:
        {'overLimit': [...], 'unavailable': [...]} where overLimit lists
        modules whose count exceeds the plan limit and unavailable lists
        modules holding data the plan does not include
    """
    over_limit = []
    unavailable = []
    for module_type in ModuleType.ALL:
        plan_module = plan.get_module(module_type)
        count = count_resources_for_tenant(account.id, module_type)
        config = plan_module.to_config() if plan_module else None
        verdict = resolve_entitlement(Role.BUSINESS_ADMIN, config, count)

        if not verdict.can_view:
            if count:
                unavailable.append({'moduleType': module_type, 'currentCount': count})
        elif verdict.item_limit is not None and count > verdict.item_limit:
            over_limit.append({
                'moduleType': module_type,
                'currentCount': count,
                'itemLimit': verdict.item_limit,
            })
    return {'overLimit': over_limit, 'unavailable': unavailable}


def change_account_plan(account, plan) -> dict:
    """
    Move an account to another plan. Existing data is never deleted.

    Raises:
        ValidationFailed: Plan is not ACTIVE and not already the account's plan

    Returns:
        Over-limit report for the new plan
    """
    if plan.status != Plan.STATUS_ACTIVE and plan.id != account.plan_id:
        raise ValidationFailed(
            f'Plan "{plan.name}" is {plan.status.lower()} and cannot be assigned',
            details={'plan_id': ['Only active plans can be assigned.']},
        )

    old_plan_id = account.plan_id
    account.plan_id = plan.id
    report = get_over_limit_report(account, plan)

    if report['overLimit'] or report['unavailable']:
        current_app.logger.warning(
            f"Account {account.id} moved to plan {plan.id} while over its limits: {report}"
        )

    log_platform_action('account_plan_changed', target_account_id=account.id, details={
        'fromPlanId': old_plan_id,
        'toPlanId': plan.id,
        'report': report,
    })
    db.session.commit()
    return report
