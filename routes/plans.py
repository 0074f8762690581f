from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from entitlements import ModuleType
from forms import PlanForm, PlanModuleForm, parse_json, parse_request
from models import db, Plan
from services.exceptions import ValidationFailed
from services.plan_service import (
    create_plan, delete_plan, get_listed_plans, serialize_plan, set_plan_module, update_plan
)
from services.tenant_service import super_admin_required

plans_bp = Blueprint('plans', __name__, url_prefix='/api/plans')


def _is_super_admin():
    return current_user.is_authenticated and current_user.is_super_admin


def _parse_modules(payload):
    """Validate the optional {moduleType: {...}} block of a plan payload."""
    modules = payload.get('modules') if isinstance(payload, dict) else None
    if modules is None:
        return None
    if not isinstance(modules, dict):
        raise ValidationFailed(details={'modules': ['Must be an object keyed by module type.']})
    unknown = sorted(k for k in modules if k.upper() not in ModuleType.ALL)
    if unknown:
        raise ValidationFailed(
            f'Unknown module {", ".join(unknown)}',
            details={'modules': [f'Must be one of {", ".join(ModuleType.ALL)}.']},
        )
    return {
        module_type.upper(): parse_json(PlanModuleForm, settings, partial=True)
        for module_type, settings in modules.items()
    }


@plans_bp.route('')
def list_plans():
    """Public: ACTIVE plans for onboarding. Platform admins may pass ?all=1."""
    include_all = request.args.get('all') == '1' and _is_super_admin()
    plans = get_listed_plans(include_all=include_all)
    return jsonify([serialize_plan(p, include_usage=include_all) for p in plans])


@plans_bp.route('/<int:plan_id>')
def get_plan(plan_id):
    plan = db.get_or_404(Plan, plan_id)
    if plan.status != Plan.STATUS_ACTIVE and not _is_super_admin():
        abort(404)
    return jsonify(serialize_plan(plan, include_usage=_is_super_admin()))


@plans_bp.route('', methods=['POST'])
@login_required
@super_admin_required
def create():
    data = parse_request(PlanForm)
    plan = create_plan(data, _parse_modules(request.get_json(silent=True)))
    return jsonify(serialize_plan(plan, include_usage=True)), 201


@plans_bp.route('/<int:plan_id>', methods=['PUT'])
@login_required
@super_admin_required
def update(plan_id):
    plan = db.get_or_404(Plan, plan_id)
    data = parse_request(PlanForm, partial=True)
    modules = _parse_modules(request.get_json(silent=True))

    # Plan fields and module rows are saved together or not at all
    try:
        update_plan(plan, data, commit=False)
        for module_type, settings in (modules or {}).items():
            set_plan_module(plan, module_type, settings, commit=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify(serialize_plan(plan, include_usage=True))


@plans_bp.route('/<int:plan_id>', methods=['DELETE'])
@login_required
@super_admin_required
def delete(plan_id):
    plan = db.get_or_404(Plan, plan_id)
    delete_plan(plan)
    return jsonify({'message': 'Plan deleted successfully'})


@plans_bp.route('/<int:plan_id>/modules/<module_type>', methods=['PUT'])
@login_required
@super_admin_required
def update_module(plan_id, module_type):
    plan = db.get_or_404(Plan, plan_id)
    data = parse_request(PlanModuleForm, partial=True)
    plan_module = set_plan_module(plan, module_type.upper(), data)
    return jsonify(plan_module.to_dict())
