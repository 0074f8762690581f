# tests/test_limit_race.py
"""
Creates competing for the last slot of a limited module.

Every request may resolve its verdict before any of them inserts. Without the
usage lock they would all succeed and the tenant would end up above its limit.
"""

import threading

import pytest

from app import create_app
from config import TestingConfig
from entitlements import ModuleType, Role
from models import db as _db, BusinessAccount, Company, ModuleUsage, Plan, PlanModule, User
from services.entitlement_service import (
    count_resources_for_tenant, create_within_limit, ensure_usage_rows, get_module_verdict
)
from services.exceptions import PlanLimitExceeded
from services.plan_service import seed_module_catalog

THREADS = 8


def _company(account, name):
    return Company(business_account_id=account.id, name=name, email=f'{name.lower()}@client.io')


def test_second_create_at_last_slot_is_rejected(factory):
    account = factory.account(plan=factory.plan(contacts=5))
    admin = factory.admin(account)
    factory.companies(account, 4)

    # Both requests saw 4/5 and were told they may create
    first_verdict = get_module_verdict(admin, ModuleType.CONTACTS)
    second_verdict = get_module_verdict(admin, ModuleType.CONTACTS)
    assert first_verdict.can_create and second_verdict.can_create

    create_within_limit(admin, ModuleType.CONTACTS, _company(account, 'Initech'), account)

    with pytest.raises(PlanLimitExceeded) as exc:
        create_within_limit(admin, ModuleType.CONTACTS, _company(account, 'Umbrella'), account)

    assert exc.value.details['currentCount'] == 5
    assert exc.value.details['limit'] == 5
    assert count_resources_for_tenant(account.id, ModuleType.CONTACTS) == 5
    assert Company.query.filter_by(name='Umbrella').first() is None


def test_create_updates_usage_snapshot(factory):
    account = factory.account(plan=factory.plan(contacts=5))
    admin = factory.admin(account)
    factory.companies(account, 2)

    create_within_limit(admin, ModuleType.CONTACTS, _company(account, 'Hooli'), account)

    usage = ModuleUsage.query.filter_by(business_account_id=account.id,
                                        module_type=ModuleType.CONTACTS).one()
    assert usage.current_count == 3


def test_usage_row_is_created_when_missing(factory, db):
    account = factory.account(plan=factory.plan(contacts=5))
    admin = factory.admin(account)
    ModuleUsage.query.filter_by(business_account_id=account.id).delete()
    db.session.commit()

    create_within_limit(admin, ModuleType.CONTACTS, _company(account, 'Stark'), account)

    usage = ModuleUsage.query.filter_by(business_account_id=account.id,
                                        module_type=ModuleType.CONTACTS).one()
    assert usage.current_count == 1


def test_super_admin_create_ignores_limit(factory):
    account = factory.account(plan=factory.plan(contacts=1))
    root = factory.super_admin()
    factory.company(account)

    create_within_limit(root, ModuleType.CONTACTS, _company(account, 'Wayne'), account)

    assert count_resources_for_tenant(account.id, ModuleType.CONTACTS) == 2


def test_rejected_create_leaves_session_usable(factory):
    account = factory.account(plan=factory.plan(contacts=1))
    user = factory.user(account)
    factory.company(account)

    with pytest.raises(PlanLimitExceeded):
        create_within_limit(user, ModuleType.CONTACTS, _company(account, 'Cyberdyne'), account)

    # Lock released by the rollback; another tenant-module can still write
    create_within_limit(user, ModuleType.USERS, _new_user(account), account)
    assert count_resources_for_tenant(account.id, ModuleType.USERS) == 2


def _new_user(account):
    user = User(name='Miles', email='miles@acme.io', role=Role.USER, business_account_id=account.id)
    user.set_password('correct-horse-battery')
    return user


# =============================================================================
# CONCURRENT CREATES
# =============================================================================

@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database so threads get real connections."""
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30, 'check_same_thread': False}}

    app = create_app(FileConfig)
    with app.app_context():
        _db.create_all()
        seed_module_catalog()
    yield app
    with app.app_context():
        _db.session.remove()
        _db.engine.dispose()


def _seed_tenant_at(app, contacts, limit):
    with app.app_context():
        plan = Plan(name='Tight')
        plan.modules.append(PlanModule(module_type=ModuleType.USERS, is_included=True, item_limit=None))
        plan.modules.append(PlanModule(module_type=ModuleType.CONTACTS, is_included=True, item_limit=limit))
        _db.session.add(plan)
        _db.session.flush()

        account = BusinessAccount(name='Acme', plan_id=plan.id)
        _db.session.add(account)
        _db.session.flush()
        ensure_usage_rows(account.id)

        user = _new_user(account)
        user.email = 'racer@acme.io'
        _db.session.add(user)
        for n in range(contacts):
            _db.session.add(_company(account, f'Existing{n}'))
        _db.session.commit()
        return account.id, user.id


def test_concurrent_creates_fill_only_the_last_slot(file_app):
    account_id, user_id = _seed_tenant_at(file_app, contacts=4, limit=5)
    barrier = threading.Barrier(THREADS)
    results = []

    def attempt(n):
        with file_app.app_context():
            user = _db.session.get(User, user_id)
            account = _db.session.get(BusinessAccount, account_id)
            # Every thread has already been told it may create
            verdict = get_module_verdict(user, ModuleType.CONTACTS)
            try:
                barrier.wait(timeout=30)
                if not verdict.can_create:
                    results.append('denied before create')
                    return
                create_within_limit(user, ModuleType.CONTACTS, _company(account, f'Racer{n}'), account)
                results.append('ok')
            except PlanLimitExceeded:
                results.append('limit')
            except Exception as exc:
                results.append(repr(exc))

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(THREADS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(results) == ['limit'] * (THREADS - 1) + ['ok']
    with file_app.app_context():
        assert count_resources_for_tenant(account_id, ModuleType.CONTACTS) == 5
        usage = ModuleUsage.query.filter_by(business_account_id=account_id,
                                            module_type=ModuleType.CONTACTS).one()
        assert usage.current_count == 5
