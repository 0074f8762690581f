# routes/business_accounts.py
"""
Platform admin management of business accounts (tenants).
SUPER_ADMIN only. Every mutation lands in the platform audit log.
"""

from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from entitlements import ModuleType
from forms import (
    BusinessAccountForm, ChangePlanForm, ModuleOverrideForm, UserForm, parse_request
)
from models import db, AccountModuleOverride, BusinessAccount, Plan, User
from routes.users import build_user
from services.account_service import (
    create_business_account, set_module_override, soft_delete_business_account,
    update_business_account,
)
from services.entitlement_service import create_within_limit, get_account_usage
from services.plan_service import change_account_plan, serialize_plan
from services.tenant_service import super_admin_required, tenant_query_for_id

business_accounts_bp = Blueprint('business_accounts', __name__, url_prefix='/api/business-accounts')


def _get_account(account_id, allow_deleted=False):
    account = db.get_or_404(BusinessAccount, account_id)
    if account.deleted_at is not None and not allow_deleted:
        abort(404)
    return account


def _account_detail(account):
    data = account.to_dict()
    data['plan'] = serialize_plan(account.plan) if account.plan else None
    data['usage'] = get_account_usage(account)
    data['userCount'] = tenant_query_for_id(User, account.id).count()
    data['moduleOverrides'] = [
        {'moduleType': o.module_type, 'isDisabled': o.is_disabled}
        for o in AccountModuleOverride.query.filter_by(business_account_id=account.id).all()
    ]
    return data


@business_accounts_bp.route('')
@login_required
@super_admin_required
def list_accounts():
    query = BusinessAccount.query
    if request.args.get('include_deleted') != '1':
        query = query.filter(BusinessAccount.deleted_at.is_(None))

    accounts = query.order_by(BusinessAccount.name).all()
    results = []
    for account in accounts:
        data = account.to_dict()
        data['userCount'] = tenant_query_for_id(User, account.id).count()
        results.append(data)
    return jsonify(results)


@business_accounts_bp.route('', methods=['POST'])
@login_required
@super_admin_required
def create_account():
    data = parse_request(BusinessAccountForm)

    admin = None
    if data.get('admin_email'):
        admin = {
            'name': data['admin_name'],
            'email': data['admin_email'],
            'password': data['admin_password'],
            'phone': data.get('admin_phone'),
        }

    account, admin_user = create_business_account(data['name'], data.get('plan_id'), admin)
    return jsonify({
        'businessAccount': _account_detail(account),
        'adminUser': admin_user.to_dict() if admin_user else None,
    }), 201


@business_accounts_bp.route('/<int:account_id>')
@login_required
@super_admin_required
def get_account(account_id):
    account = _get_account(account_id, allow_deleted=True)
    return jsonify(_account_detail(account))


@business_accounts_bp.route('/<int:account_id>', methods=['PUT'])
@login_required
@super_admin_required
def update_account(account_id):
    account = _get_account(account_id)
    data = parse_request(BusinessAccountForm, partial=True)

    report = None
    plan_id = data.pop('plan_id', None)
    fields = {k: v for k, v in data.items() if k in ('name', 'is_active')}
    if fields:
        update_business_account(account, fields)
    if plan_id is not None and plan_id != account.plan_id:
        report = change_account_plan(account, db.get_or_404(Plan, plan_id))

    result = _account_detail(account)
    result['planChangeReport'] = report
    return jsonify(result)


@business_accounts_bp.route('/<int:account_id>', methods=['DELETE'])
@login_required
@super_admin_required
def delete_account(account_id):
    account = _get_account(account_id)
    soft_delete_business_account(account)
    return jsonify({'message': 'Business account deleted successfully'})


@business_accounts_bp.route('/<int:account_id>/plan', methods=['PUT'])
@login_required
@super_admin_required
def change_plan(account_id):
    """Move an account to another plan. Data above the new limits is kept."""
    account = _get_account(account_id)
    data = parse_request(ChangePlanForm)
    plan = db.get_or_404(Plan, data['plan_id'])

    report = change_account_plan(account, plan)
    return jsonify({
        'businessAccount': _account_detail(account),
        'report': report,
    })


@business_accounts_bp.route('/<int:account_id>/users')
@login_required
@super_admin_required
def list_account_users(account_id):
    account = _get_account(account_id, allow_deleted=True)
    users = tenant_query_for_id(User, account.id).order_by(User.name).all()
    return jsonify([u.to_dict() for u in users])


@business_accounts_bp.route('/<int:account_id>/users', methods=['POST'])
@login_required
@super_admin_required
def create_account_user(account_id):
    account = _get_account(account_id)
    data = parse_request(UserForm)
    user = build_user(data, account)

    create_within_limit(current_user, ModuleType.USERS, user, account)
    return jsonify(user.to_dict()), 201


@business_accounts_bp.route('/<int:account_id>/modules/<module_type>', methods=['PUT'])
@login_required
@super_admin_required
def override_module(account_id, module_type):
    """Switch a module off for one account without touching its plan."""
    account = _get_account(account_id)
    data = parse_request(ModuleOverrideForm)

    override = set_module_override(account, module_type.upper(), data['is_disabled'], current_user)
    return jsonify({
        'moduleType': override.module_type,
        'isDisabled': override.is_disabled,
        'usage': get_account_usage(account),
    })
