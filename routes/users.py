from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required

from entitlements import Action, ModuleType, Role
from forms import PermissionOverrideForm, UserForm, UserUpdateForm, parse_request
from models import db, User, UserModulePermission
from services.account_service import email_taken
from services.entitlement_service import (
    create_within_limit, get_module_verdict, module_required, refresh_usage
)
from services.exceptions import Conflict, InsufficientRole, ValidationFailed
from services.tenant_service import (
    business_account_required, can_assign_role, can_modify_user, get_or_404_tenant,
    resolve_target_account, role_required, scoped_query
)
from utils import format_phone_number

users_bp = Blueprint('users', __name__, url_prefix='/api')

ADMIN_ROLES = (Role.SUPER_ADMIN, Role.BUSINESS_ADMIN)


def build_user(data, account):
    """
    Validate role and email for a new member of account.

    Returns:
        Unsaved User
    """
    role = data.get('role') or Role.USER
    if not can_assign_role(current_user.role, role):
        raise InsufficientRole(
            f'You cannot create users with the {role} role.',
            details={'role': role},
        )
    if email_taken(data['email']):
        raise Conflict('A user with this email already exists', details={'email': data['email']})

    user = User(
        name=data['name'],
        email=data['email'].lower(),
        phone=format_phone_number(data.get('phone')),
        role=role,
        business_account_id=account.id,
    )
    user.set_password(data['password'])
    return user


@users_bp.route('/users')
@login_required
@role_required(*ADMIN_ROLES)
@module_required(ModuleType.USERS, Action.VIEW)
def list_users():
    users = scoped_query(User, request.args).order_by(User.name).all()
    return jsonify([u.to_dict() for u in users])


@users_bp.route('/user/business-account/users')
@login_required
@business_account_required
def list_account_members():
    """Active members of the caller's account, for seller pickers."""
    account = resolve_target_account(request.args)
    users = scoped_query(User, {'business_account_id': account.id}) \
        .filter(User.is_active.is_(True)).order_by(User.name).all()
    return jsonify([
        {'id': u.id, 'name': u.name, 'email': u.email, 'role': u.role}
        for u in users
    ])


@users_bp.route('/users/<int:user_id>')
@login_required
@role_required(*ADMIN_ROLES)
@module_required(ModuleType.USERS, Action.VIEW)
def get_user(user_id):
    user = get_or_404_tenant(User, user_id)
    data = user.to_dict()
    data['modulePermissions'] = [p.to_dict() for p in user.module_permissions]
    return jsonify(data)


@users_bp.route('/users', methods=['POST'])
@login_required
@role_required(*ADMIN_ROLES)
@module_required(ModuleType.USERS, Action.CREATE)
def create_user():
    data = parse_request(UserForm)
    account = resolve_target_account(data)
    user = build_user(data, account)

    create_within_limit(current_user, ModuleType.USERS, user, account)
    current_app.logger.info(f"User {user.id} created in account {account.id} by {current_user.id}")
    return jsonify(user.to_dict()), 201


@users_bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required
@role_required(*ADMIN_ROLES)
@module_required(ModuleType.USERS, Action.EDIT)
def update_user(user_id):
    user = get_or_404_tenant(User, user_id)
    is_self = user.id == current_user.id
    if not is_self and not can_modify_user(current_user, user):
        raise InsufficientRole('You cannot modify this user.')

    data = parse_request(UserUpdateForm, partial=True)

    if 'role' in data and data['role'] != user.role:
        if is_self or not can_assign_role(current_user.role, data['role']):
            raise InsufficientRole(
                f'You cannot assign the {data["role"]} role.',
                details={'role': data['role']},
            )
        user.role = data['role']
    if 'is_active' in data and data['is_active'] != user.is_active:
        if is_self:
            raise ValidationFailed('You cannot deactivate your own account',
                                   details={'is_active': ['Cannot change your own status.']})
        user.is_active = data['is_active']

    if 'email' in data:
        if email_taken(data['email'], user.id):
            raise Conflict('A user with this email already exists', details={'email': data['email']})
        user.email = data['email'].lower()
    if 'name' in data:
        user.name = data['name']
    if 'phone' in data:
        user.phone = format_phone_number(data['phone'])
    if data.get('password'):
        user.set_password(data['password'])

    db.session.commit()
    return jsonify(user.to_dict())


@users_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
@role_required(*ADMIN_ROLES)
@module_required(ModuleType.USERS, Action.DELETE)
def delete_user(user_id):
    user = get_or_404_tenant(User, user_id)
    if user.id == current_user.id:
        raise ValidationFailed('You cannot delete your own account')
    if not can_modify_user(current_user, user):
        raise InsufficientRole('You cannot delete this user.')

    try:
        user.soft_delete()
        refresh_usage(user.business_account_id, ModuleType.USERS)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return jsonify({'message': 'User deleted successfully'})


# =============================================================================
# PER-USER MODULE PERMISSIONS
# =============================================================================

@users_bp.route('/users/<int:user_id>/permissions/<module_type>', methods=['PUT'])
@login_required
@business_account_required
@role_required(*ADMIN_ROLES)
def set_user_permission(user_id, module_type):
    """Narrow what a USER may do in one module. Overrides never grant beyond the plan."""
    module_type = module_type.upper()
    if module_type not in ModuleType.ALL:
        abort(404)

    user = get_or_404_tenant(User, user_id)
    if user.role != Role.USER:
        raise ValidationFailed('Module permissions can only be set for USER accounts',
                               details={'role': user.role})

    data = parse_request(PermissionOverrideForm, partial=True)

    permission = UserModulePermission.query.filter_by(user_id=user.id, module_type=module_type).first()
    if permission is None:
        permission = UserModulePermission(user_id=user.id, module_type=module_type,
                                          can_view=True, can_create=True, can_edit=True, can_delete=True)
        db.session.add(permission)
    for field in ('can_view', 'can_create', 'can_edit', 'can_delete', 'notes'):
        if field in data:
            setattr(permission, field, data[field])
    permission.assigned_by_id = current_user.id
    db.session.commit()

    result = permission.to_dict()
    result['effective'] = get_module_verdict(user, module_type).to_dict()
    return jsonify(result)
