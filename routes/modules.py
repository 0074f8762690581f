from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from entitlements import ModuleType
from models import Module
from plan_config import MODULE_CATALOG
from services.entitlement_service import get_all_module_verdicts, get_module_verdict
from services.tenant_service import business_account_required, resolve_target_account

modules_bp = Blueprint('modules', __name__, url_prefix='/api')


def _account_for_request():
    """Platform admins may inspect one account via ?business_account_id."""
    if current_user.is_super_admin and (request.args.get('business_account_id')
                                         or request.args.get('businessAccountId')):
        return resolve_target_account(request.args)
    return None


@modules_bp.route('/modules')
@login_required
def list_modules():
    modules = Module.query.filter_by(is_active=True).order_by(Module.id).all()
    return jsonify([m.to_dict() for m in modules])


@modules_bp.route('/user/business-account/modules')
@login_required
@business_account_required
def enabled_modules():
    """Sidebar feed: which modules the current user can open at all."""
    verdicts = get_all_module_verdicts(current_user)
    return jsonify([
        {
            'type': module_type,
            'name': MODULE_CATALOG[module_type]['name'],
            'isEnabled': verdict.can_view,
        }
        for module_type, verdict in verdicts.items()
    ])


@modules_bp.route('/permissions')
@login_required
def list_permissions():
    verdicts = get_all_module_verdicts(current_user, _account_for_request())
    return jsonify({module_type: verdict.to_dict() for module_type, verdict in verdicts.items()})


@modules_bp.route('/permissions/<module_type>')
@login_required
def module_permission(module_type):
    """Advisory only. Mutating routes re-check at the moment of the action."""
    module_type = module_type.upper()
    if module_type not in ModuleType.ALL:
        abort(404)

    verdict = get_module_verdict(current_user, module_type, _account_for_request())
    data = verdict.to_dict()
    data['moduleType'] = module_type
    return jsonify(data)
