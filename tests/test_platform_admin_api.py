# tests/test_platform_admin_api.py
"""Plans and business accounts, managed by the platform super admin."""

from entitlements import ModuleType, Role
from models import BusinessAccount, Plan, PlatformAuditLog, User


# =============================================================================
# PLANS
# =============================================================================

def test_public_plan_list_hides_inactive(client, factory):
    factory.plan(name='Legacy', status=Plan.STATUS_DEPRECATED)

    names = [p['name'] for p in client.get('/api/plans').get_json()]

    assert names == ['Starter', 'Professional', 'Enterprise']


def test_super_admin_lists_every_plan(client, factory, login):
    factory.plan(name='Legacy', status=Plan.STATUS_DEPRECATED)
    login(factory.super_admin())

    plans = {p['name']: p for p in client.get('/api/plans?all=1').get_json()}

    assert 'Legacy' in plans
    assert plans['Legacy']['accountCount'] == 0


def test_inactive_plan_detail_hidden_from_public(client, factory):
    legacy = factory.plan(status=Plan.STATUS_INACTIVE)
    assert client.get(f'/api/plans/{legacy.id}').status_code == 404


def test_create_plan_with_modules(client, factory, login):
    login(factory.super_admin())

    response = client.post('/api/plans', json={
        'name': 'Growth',
        'monthlyPrice': 49,
        'modules': {
            'CONTACTS': {'isIncluded': True},
            'USERS': {'isIncluded': True, 'itemLimit': 20},
        },
    })

    assert response.status_code == 201
    body = response.get_json()
    modules = {m['moduleType']: m for m in body['modules']}
    assert body['monthlyPrice'] == 49.0
    # Included limited module without a limit gets the catalog default
    assert modules['CONTACTS']['itemLimit'] == 100
    assert modules['USERS']['itemLimit'] == 20
    assert modules['CRM']['isIncluded'] is False
    assert PlatformAuditLog.query.filter_by(action='plan_created').count() == 1


def test_unlimited_module_rejects_item_limit(client, factory, login):
    plan = factory.plan()
    login(factory.super_admin())

    response = client.put(f'/api/plans/{plan.id}/modules/CRM', json={'isIncluded': True, 'itemLimit': 10})

    assert response.status_code == 400
    assert 'item_limit' in response.get_json()['details']


def test_null_item_limit_means_unbounded(client, factory, login):
    plan = factory.plan(contacts=5)
    login(factory.super_admin())

    response = client.put(f'/api/plans/{plan.id}/modules/CONTACTS', json={'itemLimit': None})

    assert response.status_code == 200
    assert response.get_json()['itemLimit'] is None
    assert response.get_json()['isIncluded'] is True


def test_plan_limit_change_applies_to_next_check(client, factory, login):
    plan = factory.plan(contacts=1)
    account = factory.account(plan=plan)
    admin = factory.admin(account)
    factory.company(account)
    root = factory.super_admin()

    login(root)
    client.put(f'/api/plans/{plan.id}/modules/CONTACTS', json={'itemLimit': 5})
    client.post('/api/auth/logout')

    login(admin)
    response = client.post('/api/companies', json={'name': 'Second', 'email': 's@second.io'})
    assert response.status_code == 201


def test_switching_module_on_applies_default_limit(client, factory, login):
    login(factory.super_admin())
    plan_id = client.post('/api/plans', json={
        'name': 'Contacts Only',
        'modules': {'CONTACTS': {'isIncluded': True}},
    }).get_json()['id']

    response = client.put(f'/api/plans/{plan_id}/modules/USERS', json={'isIncluded': True})

    assert response.status_code == 200
    assert response.get_json()['isIncluded'] is True
    assert response.get_json()['itemLimit'] == 5


def test_failed_module_change_keeps_plan_unchanged(client, factory, login, db):
    plan = factory.plan(name='Alpha')
    login(factory.super_admin())

    response = client.put(f'/api/plans/{plan.id}', json={
        'name': 'Renamed',
        'modules': {'CRM': {'itemLimit': 5}},
    })

    assert response.status_code == 400
    db.session.refresh(plan)
    assert plan.name == 'Alpha'
    assert plan.get_module(ModuleType.CRM).item_limit is None
    assert PlatformAuditLog.query.filter_by(action='plan_updated').count() == 0


def test_unknown_module_key_is_rejected(client, factory, login):
    plan = factory.plan(name='Beta')
    login(factory.super_admin())

    created = client.post('/api/plans', json={'name': 'Gamma', 'modules': {'BILLING': {}}})
    updated = client.put(f'/api/plans/{plan.id}', json={'name': 'Delta', 'modules': {'BILLING': {}}})

    assert created.status_code == 400
    assert 'modules' in created.get_json()['details']
    assert Plan.query.filter_by(name='Gamma').first() is None
    assert updated.status_code == 400
    assert Plan.query.filter_by(name='Delta').first() is None


def test_duplicate_plan_name_conflicts(client, factory, login):
    login(factory.super_admin())

    response = client.post('/api/plans', json={'name': 'starter'})

    assert response.status_code == 409


def test_referenced_plan_cannot_be_deleted(client, factory, login):
    plan = factory.plan()
    factory.account(plan=plan)
    unused = factory.plan()
    login(factory.super_admin())

    assert client.delete(f'/api/plans/{plan.id}').status_code == 409
    assert client.delete(f'/api/plans/{unused.id}').status_code == 200
    assert Plan.query.filter_by(id=unused.id).first() is None


def test_single_default_plan(client, factory, login):
    plan = factory.plan(name='Team')
    login(factory.super_admin())

    response = client.put(f'/api/plans/{plan.id}', json={'isDefault': True})

    assert response.status_code == 200
    defaults = [p.name for p in Plan.query.filter_by(is_default=True).all()]
    assert defaults == ['Team']


def test_default_plan_must_stay_active(client, login, factory):
    login(factory.super_admin())
    starter = Plan.query.filter_by(name='Starter').one()

    response = client.put(f'/api/plans/{starter.id}', json={'status': Plan.STATUS_DEPRECATED})

    assert response.status_code == 400


def test_tenant_admin_cannot_manage_plans(client, factory, login):
    login(factory.admin(factory.account()))

    response = client.post('/api/plans', json={'name': 'Free Lunch'})

    assert response.status_code == 403
    assert response.get_json()['error'] == 'INSUFFICIENT_ROLE'


# =============================================================================
# BUSINESS ACCOUNTS
# =============================================================================

def test_create_account_with_first_admin(client, factory, login):
    login(factory.super_admin())

    response = client.post('/api/business-accounts', json={
        'name': 'Initrode',
        'adminName': 'Dom Portwood',
        'adminEmail': 'dom@initrode.io',
        'adminPassword': 'initrode-2024',
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body['businessAccount']['planName'] == 'Starter'
    assert body['adminUser']['role'] == Role.BUSINESS_ADMIN

    usage = {u['moduleType']: u for u in body['businessAccount']['usage']}
    assert usage['USERS']['currentCount'] == 1
    assert usage['USERS']['itemLimit'] == 2
    assert usage['CRM']['isIncluded'] is False


def test_first_admin_phone_is_normalized(client, factory, login):
    login(factory.super_admin())

    response = client.post('/api/business-accounts', json={
        'name': 'Chotchkies',
        'adminName': 'Joanna',
        'adminEmail': 'joanna@chotchkies.io',
        'adminPassword': 'flair-pieces-15',
        'adminPhone': '555.867.5309',
    })

    assert response.status_code == 201
    assert response.get_json()['adminUser']['phone'] == '(555) 867-5309'


def test_partial_admin_fields_are_rejected(client, factory, login):
    login(factory.super_admin())

    response = client.post('/api/business-accounts', json={'name': 'Half', 'adminEmail': 'half@half.io'})

    assert response.status_code == 400


def test_deprecated_plan_cannot_be_assigned(client, factory, login):
    account = factory.account()
    legacy = factory.plan(status=Plan.STATUS_DEPRECATED)
    login(factory.super_admin())

    response = client.put(f'/api/business-accounts/{account.id}/plan', json={'planId': legacy.id})

    assert response.status_code == 400


def test_change_plan_reports_over_limit(client, factory, login):
    account = factory.account(plan=factory.plan(contacts=10))
    factory.companies(account, 4)
    small = factory.plan(contacts=2, crm=False)
    factory.opportunity(account)
    root = factory.super_admin()
    login(root)

    response = client.put(f'/api/business-accounts/{account.id}/plan', json={'planId': small.id})

    assert response.status_code == 200
    report = response.get_json()['report']
    assert report['overLimit'] == [{'moduleType': 'CONTACTS', 'currentCount': 5, 'itemLimit': 2}]
    assert report['unavailable'] == [{'moduleType': 'CRM', 'currentCount': 1}]

    entry = PlatformAuditLog.query.filter_by(action='account_plan_changed').one()
    assert entry.target_account_id == account.id
    assert entry.details['toPlanId'] == small.id
    assert entry.admin_user_id == root.id


def test_module_override_disables_for_one_account(client, factory, login):
    account = factory.account()
    admin = factory.admin(account)
    login(factory.super_admin())

    response = client.put(f'/api/business-accounts/{account.id}/modules/contacts', json={'isDisabled': True})
    assert response.status_code == 200
    client.post('/api/auth/logout')

    login(admin)
    response = client.get('/api/companies')
    assert response.status_code == 403
    assert response.get_json()['error'] == 'MODULE_NOT_AVAILABLE'


def test_super_admin_adds_user_to_account(client, factory, login):
    account = factory.account()
    login(factory.super_admin())

    response = client.post(f'/api/business-accounts/{account.id}/users', json={
        'name': 'Joanna', 'email': 'joanna@acme.io', 'password': 'flair-pieces-15',
        'role': Role.BUSINESS_ADMIN,
    })

    assert response.status_code == 201
    assert response.get_json()['role'] == Role.BUSINESS_ADMIN
    users = client.get(f'/api/business-accounts/{account.id}/users').get_json()
    assert [u['email'] for u in users] == ['joanna@acme.io']


def test_soft_deleted_account_blocks_login(client, factory, login, db):
    account = factory.account()
    admin = factory.admin(account)
    login(factory.super_admin())

    assert client.delete(f'/api/business-accounts/{account.id}').status_code == 200
    db.session.refresh(account)
    assert account.deleted_at is not None
    assert BusinessAccount.query.filter_by(id=account.id).count() == 1

    client.post('/api/auth/logout')
    response = client.post('/api/auth/login', json={'email': admin.email, 'password': 'correct-horse-battery'})
    assert response.status_code == 401


def test_tenant_admin_cannot_list_accounts(client, factory, login):
    login(factory.admin(factory.account()))
    assert client.get('/api/business-accounts').status_code == 403


def test_account_detail_usage(client, factory, login):
    account = factory.account(plan=factory.plan(contacts=5))
    factory.companies(account, 4)
    login(factory.super_admin())

    body = client.get(f'/api/business-accounts/{account.id}').get_json()
    usage = {u['moduleType']: u for u in body['usage']}

    assert usage[ModuleType.CONTACTS]['currentCount'] == 4
    assert usage[ModuleType.CONTACTS]['isNearLimit'] is True
    assert usage[ModuleType.CONTACTS]['isAtLimit'] is False
    assert User.query.filter_by(business_account_id=account.id).count() == 0
