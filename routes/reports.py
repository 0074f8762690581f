from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from entitlements import Action, ModuleType
from services.entitlement_service import module_required
from services.report_service import ReportService
from services.tenant_service import resolve_target_account

reports_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


@reports_bp.route('/stats')
@login_required
@module_required(ModuleType.CRM, Action.VIEW)
def stats():
    if current_user.is_super_admin:
        # Platform admins aggregate everything unless an account is named
        if request.args.get('business_account_id') or request.args.get('businessAccountId'):
            account_id = resolve_target_account(request.args).id
        else:
            account_id = None
    else:
        account_id = current_user.business_account_id

    return jsonify(ReportService(account_id).get_stats())
