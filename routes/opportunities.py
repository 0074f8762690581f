from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from entitlements import Action, ModuleType
from forms import OpportunityForm, parse_request
from models import db, Activity, Company, Opportunity, User
from services.entitlement_service import create_within_limit, module_required, refresh_usage
from services.exceptions import ValidationFailed
from services.tenant_service import (
    get_or_404_tenant, resolve_target_account, scoped_query, tenant_query_for_id
)

opportunities_bp = Blueprint('opportunities', __name__, url_prefix='/api')


def _company_in_account(company_id, account_id):
    company = tenant_query_for_id(Company, account_id).filter_by(id=company_id).first()
    if company is None:
        raise ValidationFailed(details={'company_id': ['Company not found in this account.']})
    return company


def _seller_in_account(seller_id, account_id):
    seller = tenant_query_for_id(User, account_id).filter_by(id=seller_id).first()
    if seller is None or not seller.is_active:
        raise ValidationFailed(details={'seller_id': ['Seller not found in this account.']})
    return seller


@opportunities_bp.route('/opportunities')
@login_required
@module_required(ModuleType.CRM, Action.VIEW)
def list_opportunities():
    query = scoped_query(Opportunity, request.args)

    status = request.args.get('status')
    if status:
        query = query.filter(Opportunity.status == status.upper())
    company_id = request.args.get('company_id', type=int)
    if company_id:
        query = query.filter(Opportunity.company_id == company_id)
    seller_id = request.args.get('seller_id', type=int)
    if seller_id:
        query = query.filter(Opportunity.seller_id == seller_id)

    opportunities = query.order_by(Opportunity.created_at.desc()).all()
    return jsonify([o.to_dict() for o in opportunities])


@opportunities_bp.route('/opportunities/<int:opportunity_id>')
@login_required
@module_required(ModuleType.CRM, Action.VIEW)
def get_opportunity(opportunity_id):
    opportunity = get_or_404_tenant(Opportunity, opportunity_id)
    return jsonify(opportunity.to_dict(include_activities=True))


@opportunities_bp.route('/opportunities/<int:opportunity_id>/activities')
@login_required
@module_required(ModuleType.CRM, Action.VIEW)
def list_opportunity_activities(opportunity_id):
    opportunity = get_or_404_tenant(Opportunity, opportunity_id)
    activities = opportunity.activities.order_by(Activity.activity_date.desc()).all()
    return jsonify([a.to_dict() for a in activities])


@opportunities_bp.route('/opportunities', methods=['POST'])
@login_required
@module_required(ModuleType.CRM, Action.CREATE)
def create_opportunity():
    data = parse_request(OpportunityForm)
    account = resolve_target_account(data)
    company = _company_in_account(data['company_id'], account.id)

    if data.get('seller_id'):
        seller = _seller_in_account(data['seller_id'], account.id)
    elif current_user.business_account_id == account.id:
        seller = current_user
    else:
        raise ValidationFailed(details={'seller_id': ['This field is required.']})

    opportunity = Opportunity(
        business_account_id=account.id,
        company_id=company.id,
        seller_id=seller.id,
        title=data['title'],
        type=data.get('type') or 'NEW_CLIENT',
        status=data.get('status') or 'NEW',
        estimated_close_date=data.get('estimated_close_date'),
        notes=data.get('notes'),
    )
    create_within_limit(current_user, ModuleType.CRM, opportunity, account)
    return jsonify(opportunity.to_dict()), 201


@opportunities_bp.route('/opportunities/<int:opportunity_id>', methods=['PUT'])
@login_required
@module_required(ModuleType.CRM, Action.EDIT)
def update_opportunity(opportunity_id):
    opportunity = get_or_404_tenant(Opportunity, opportunity_id)
    data = parse_request(OpportunityForm, partial=True)
    account_id = opportunity.business_account_id

    if data.get('company_id') is not None:
        opportunity.company_id = _company_in_account(data['company_id'], account_id).id
    if data.get('seller_id') is not None:
        opportunity.seller_id = _seller_in_account(data['seller_id'], account_id).id
    for field in ('title', 'type', 'status'):
        if data.get(field):
            setattr(opportunity, field, data[field])
    for field in ('estimated_close_date', 'notes'):
        if field in data:
            setattr(opportunity, field, data[field])

    db.session.commit()
    return jsonify(opportunity.to_dict())


@opportunities_bp.route('/opportunities/<int:opportunity_id>', methods=['DELETE'])
@login_required
@module_required(ModuleType.CRM, Action.DELETE)
def delete_opportunity(opportunity_id):
    opportunity = get_or_404_tenant(Opportunity, opportunity_id)

    try:
        opportunity.soft_delete()
        refresh_usage(opportunity.business_account_id, ModuleType.CRM)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return jsonify({'message': 'Opportunity deleted successfully'})
