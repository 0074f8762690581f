# tests/conftest.py
import itertools

import pytest

from app import create_app
from entitlements import ModuleType, Role
from models import db as _db, BusinessAccount, Company, Opportunity, Plan, PlanModule, User
from services.entitlement_service import ensure_usage_rows, refresh_usage
from services.plan_service import seed_default_plans, seed_module_catalog

PASSWORD = 'correct-horse-battery'


@pytest.fixture
def app():
    """App bound to a fresh in-memory database with the catalog and seed plans."""
    app = create_app('config.TestingConfig')
    with app.app_context():
        _db.create_all()
        seed_module_catalog()
        seed_default_plans()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


class Factory:
    """Builds committed rows for tests."""

    def __init__(self):
        self._seq = itertools.count(1)

    def plan(self, name=None, users=3, contacts=5, crm=True, status=Plan.STATUS_ACTIVE,
             users_flags=None, contacts_flags=None):
        plan = Plan(name=name or f'Plan {next(self._seq)}', status=status)
        plan.modules.append(PlanModule(module_type=ModuleType.USERS, is_included=True,
                                       item_limit=users, **(users_flags or {})))
        plan.modules.append(PlanModule(module_type=ModuleType.CONTACTS, is_included=True,
                                       item_limit=contacts, **(contacts_flags or {})))
        plan.modules.append(PlanModule(module_type=ModuleType.CRM, is_included=crm, item_limit=None))
        _db.session.add(plan)
        _db.session.commit()
        return plan

    def account(self, plan=None, name=None, is_active=True):
        if plan is None:
            plan = self.plan()
        account = BusinessAccount(name=name or f'Account {next(self._seq)}', plan_id=plan.id,
                                  is_active=is_active)
        _db.session.add(account)
        _db.session.flush()
        ensure_usage_rows(account.id)
        _db.session.commit()
        return account

    def user(self, account=None, role=Role.USER, email=None, name=None):
        n = next(self._seq)
        user = User(
            name=name or f'User {n}',
            email=email or f'user{n}@acme.io',
            role=role,
            business_account_id=account.id if account else None,
        )
        user.set_password(PASSWORD)
        _db.session.add(user)
        _db.session.commit()
        if account:
            refresh_usage(account.id, ModuleType.USERS)
            _db.session.commit()
        return user

    def admin(self, account):
        return self.user(account, role=Role.BUSINESS_ADMIN)

    def super_admin(self):
        return self.user(None, role=Role.SUPER_ADMIN)

    def company(self, account, name=None, deleted=False):
        n = next(self._seq)
        company = Company(
            business_account_id=account.id,
            name=name or f'Company {n}',
            email=f'contact{n}@client.io',
        )
        if deleted:
            company.soft_delete()
        _db.session.add(company)
        _db.session.commit()
        return company

    def companies(self, account, count):
        return [self.company(account) for _ in range(count)]

    def opportunity(self, account, company=None, seller=None, title=None):
        company = company or self.company(account)
        seller = seller or self.user(account)
        opportunity = Opportunity(
            business_account_id=account.id,
            company_id=company.id,
            seller_id=seller.id,
            title=title or f'Deal {next(self._seq)}',
        )
        _db.session.add(opportunity)
        _db.session.commit()
        return opportunity


@pytest.fixture
def factory(app):
    return Factory()


@pytest.fixture
def login(client):
    """Log a user in on the shared test client."""
    def _login(user, password=PASSWORD):
        response = client.post('/api/auth/login', json={'email': user.email, 'password': password})
        assert response.status_code == 200, response.get_json()
        return response
    return _login
