from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from entitlements import Action, ModuleType
from forms import ActivityForm, parse_request
from models import db, Activity, Opportunity
from services.entitlement_service import module_required
from services.tenant_service import get_or_404_tenant, scoped_query

activities_bp = Blueprint('activities', __name__, url_prefix='/api')


@activities_bp.route('/activities')
@login_required
@module_required(ModuleType.CRM, Action.VIEW)
def list_activities():
    query = scoped_query(Activity, request.args).join(
        Opportunity, Activity.opportunity_id == Opportunity.id
    ).filter(Opportunity.deleted_at.is_(None))

    opportunity_id = request.args.get('opportunity_id', type=int)
    if opportunity_id:
        query = query.filter(Activity.opportunity_id == opportunity_id)
    if request.args.get('tasks') == '1':
        query = query.filter(Activity.is_task.is_(True))

    activities = query.order_by(Activity.activity_date.desc()).all()
    return jsonify([a.to_dict() for a in activities])


@activities_bp.route('/activities', methods=['POST'])
@login_required
@module_required(ModuleType.CRM, Action.EDIT)
def create_activity():
    """Logging an activity edits its opportunity; activities do not count toward the CRM limit."""
    data = parse_request(ActivityForm)
    opportunity = get_or_404_tenant(Opportunity, data['opportunity_id'])

    activity = Activity(
        business_account_id=opportunity.business_account_id,
        opportunity_id=opportunity.id,
        author_id=current_user.id,
        type=data['type'],
        details=data.get('details'),
        activity_date=data['activity_date'],
        is_task=bool(data.get('is_task')),
        reminder_date=data.get('reminder_date'),
    )
    db.session.add(activity)
    db.session.commit()
    return jsonify(activity.to_dict()), 201
