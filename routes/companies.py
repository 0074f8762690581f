from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from entitlements import Action, ModuleType
from forms import CompanyForm, parse_request
from models import db, Company, User
from services.entitlement_service import create_within_limit, module_required, refresh_usage
from services.exceptions import ValidationFailed
from services.tenant_service import (
    get_or_404_tenant, resolve_target_account, scoped_query, tenant_query_for_id
)
from utils import format_phone_number

companies_bp = Blueprint('companies', __name__, url_prefix='/api')

COMPANY_FIELDS = ('name', 'contact_name', 'email', 'website', 'industry')


def _resolve_owner(owner_id, account_id):
    if owner_id is None:
        return None
    owner = tenant_query_for_id(User, account_id).filter_by(id=owner_id).first()
    if owner is None:
        raise ValidationFailed(details={'owner_id': ['User not found in this account.']})
    return owner.id


@companies_bp.route('/companies')
@login_required
@module_required(ModuleType.CONTACTS, Action.VIEW)
def list_companies():
    query = scoped_query(Company, request.args)

    status = request.args.get('status')
    if status:
        query = query.filter(Company.status == status.upper())

    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(
            Company.name.ilike(pattern) |
            Company.contact_name.ilike(pattern) |
            Company.email.ilike(pattern)
        )

    companies = query.order_by(Company.name).all()
    return jsonify([c.to_dict() for c in companies])


@companies_bp.route('/companies/<int:company_id>')
@login_required
@module_required(ModuleType.CONTACTS, Action.VIEW)
def get_company(company_id):
    company = get_or_404_tenant(Company, company_id)
    return jsonify(company.to_dict())


@companies_bp.route('/companies', methods=['POST'])
@login_required
@module_required(ModuleType.CONTACTS, Action.CREATE)
def create_company():
    data = parse_request(CompanyForm)
    account = resolve_target_account(data)

    owner_id = _resolve_owner(data.get('owner_id'), account.id)
    if owner_id is None and current_user.business_account_id == account.id:
        owner_id = current_user.id

    company = Company(
        business_account_id=account.id,
        owner_id=owner_id,
        name=data['name'],
        status=data.get('status') or 'LEAD',
        contact_name=data.get('contact_name'),
        email=data.get('email'),
        phone=format_phone_number(data.get('phone')),
        website=data.get('website'),
        industry=data.get('industry'),
    )
    create_within_limit(current_user, ModuleType.CONTACTS, company, account)
    return jsonify(company.to_dict()), 201


@companies_bp.route('/companies/<int:company_id>', methods=['PUT'])
@login_required
@module_required(ModuleType.CONTACTS, Action.EDIT)
def update_company(company_id):
    company = get_or_404_tenant(Company, company_id)
    data = parse_request(CompanyForm, partial=True)

    for field in COMPANY_FIELDS:
        if field in data:
            setattr(company, field, data[field])
    if data.get('status'):
        company.status = data['status']
    if 'phone' in data:
        company.phone = format_phone_number(data['phone'])
    if 'owner_id' in data:
        company.owner_id = _resolve_owner(data['owner_id'], company.business_account_id)

    if not company.email and not company.phone:
        db.session.rollback()
        raise ValidationFailed(details={'email': ['Provide an email or a phone number.']})

    db.session.commit()
    return jsonify(company.to_dict())


@companies_bp.route('/companies/<int:company_id>', methods=['DELETE'])
@login_required
@module_required(ModuleType.CONTACTS, Action.DELETE)
def delete_company(company_id):
    company = get_or_404_tenant(Company, company_id)

    try:
        company.soft_delete()
        refresh_usage(company.business_account_id, ModuleType.CONTACTS)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return jsonify({'message': 'Company deleted successfully'})
