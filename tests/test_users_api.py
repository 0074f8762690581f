# tests/test_users_api.py
from entitlements import ModuleType, Role


def test_login_and_session_payload(client, factory, login):
    account = factory.account()
    admin = factory.admin(account)

    body = login(admin).get_json()

    assert body['user']['email'] == admin.email
    assert body['businessAccount']['id'] == account.id
    assert set(body['permissions']) == set(ModuleType.ALL)

    me = client.get('/api/auth/user').get_json()
    assert me['user']['id'] == admin.id


def test_login_rejects_bad_password(client, factory):
    user = factory.user(factory.account())

    response = client.post('/api/auth/login', json={'email': user.email, 'password': 'wrong-password'})

    assert response.status_code == 401
    assert response.get_json()['error'] == 'INVALID_CREDENTIALS'


def test_logout_ends_session(client, factory, login):
    login(factory.user(factory.account()))

    assert client.post('/api/auth/logout').status_code == 200
    assert client.get('/api/auth/user').status_code == 401


def test_business_admin_creates_user(client, factory, login):
    account = factory.account()
    login(factory.admin(account))

    response = client.post('/api/users', json={
        'name': 'Milton Waddams',
        'email': 'milton@acme.io',
        'password': 'red-stapler-42',
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body['role'] == Role.USER
    assert body['businessAccountId'] == account.id


def test_business_admin_cannot_create_admin(client, factory, login):
    login(factory.admin(factory.account()))

    response = client.post('/api/users', json={
        'name': 'Peter Gibbons',
        'email': 'peter@acme.io',
        'password': 'red-stapler-42',
        'role': Role.BUSINESS_ADMIN,
    })

    assert response.status_code == 403
    assert response.get_json()['error'] == 'INSUFFICIENT_ROLE'


def test_user_limit_blocks_new_user(client, factory, login):
    account = factory.account(plan=factory.plan(users=2))
    login(factory.admin(account))
    factory.user(account)

    response = client.post('/api/users', json={
        'name': 'Samir', 'email': 'samir@acme.io', 'password': 'red-stapler-42',
    })

    assert response.status_code == 403
    body = response.get_json()
    assert body['error'] == 'PLAN_LIMIT_EXCEEDED'
    assert body['details']['currentCount'] == 2
    assert body['details']['limit'] == 2


def test_duplicate_email_conflicts(client, factory, login):
    account = factory.account()
    login(factory.admin(account))
    existing = factory.user(account)

    response = client.post('/api/users', json={
        'name': 'Copy', 'email': existing.email.upper(), 'password': 'red-stapler-42',
    })

    assert response.status_code == 409


def test_plain_user_cannot_manage_users(client, factory, login):
    login(factory.user(factory.account()))

    response = client.get('/api/users')

    assert response.status_code == 403
    assert response.get_json()['error'] == 'INSUFFICIENT_ROLE'


def test_member_list_for_any_member(client, factory, login):
    account = factory.account()
    admin = factory.admin(account)
    user = factory.user(account)
    factory.user(factory.account())
    login(user)

    members = client.get('/api/user/business-account/users').get_json()

    assert {m['id'] for m in members} == {admin.id, user.id}


def test_delete_user_soft_deletes_and_blocks_login(client, factory, login, db):
    account = factory.account()
    login(factory.admin(account))
    target = factory.user(account)

    assert client.delete(f'/api/users/{target.id}').status_code == 200

    db.session.refresh(target)
    assert target.deleted_at is not None
    assert target.is_active is False

    client.post('/api/auth/logout')
    response = client.post('/api/auth/login', json={'email': target.email, 'password': 'correct-horse-battery'})
    assert response.status_code == 401


def test_admin_cannot_modify_peer_admin(client, factory, login):
    account = factory.account()
    login(factory.admin(account))
    peer = factory.admin(account)

    response = client.put(f'/api/users/{peer.id}', json={'name': 'Renamed'})

    assert response.status_code == 403


def test_set_user_module_permission(client, factory, login):
    account = factory.account()
    login(factory.admin(account))
    user = factory.user(account)

    response = client.put(f'/api/users/{user.id}/permissions/contacts', json={'canDelete': False})

    assert response.status_code == 200
    body = response.get_json()
    assert body['canDelete'] is False
    assert body['canCreate'] is True
    assert body['effective']['canDelete'] is False
    assert body['effective']['canEdit'] is True


def test_permission_override_only_for_user_role(client, factory, login):
    account = factory.account()
    login(factory.admin(account))
    peer = factory.admin(account)

    response = client.put(f'/api/users/{peer.id}/permissions/CONTACTS', json={'canView': False})

    assert response.status_code == 400


# =============================================================================
# PERMISSIONS ENDPOINTS
# =============================================================================

def test_permissions_reflect_plan(client, factory, login):
    account = factory.account(plan=factory.plan(contacts=10, crm=False))
    login(factory.admin(account))
    factory.companies(account, 8)

    permissions = client.get('/api/permissions').get_json()

    assert permissions['CONTACTS']['isNearLimit'] is True
    assert permissions['CONTACTS']['canCreate'] is True
    assert permissions['CONTACTS']['currentCount'] == 8
    assert permissions['CRM']['canView'] is False

    single = client.get('/api/permissions/crm').get_json()
    assert single['moduleType'] == 'CRM'
    assert single['canView'] is False


def test_unknown_module_permission_is_not_found(client, factory, login):
    login(factory.admin(factory.account()))
    assert client.get('/api/permissions/BILLING').status_code == 404


def test_sidebar_modules(client, factory, login):
    login(factory.admin(factory.account(plan=factory.plan(crm=False))))

    modules = {m['type']: m['isEnabled'] for m in
               client.get('/api/user/business-account/modules').get_json()}

    assert modules == {'USERS': True, 'CONTACTS': True, 'CRM': False}


def test_crm_not_in_plan_is_module_not_available(client, factory, login):
    login(factory.admin(factory.account(plan=factory.plan(crm=False))))

    response = client.get('/api/opportunities')

    assert response.status_code == 403
    assert response.get_json()['error'] == 'MODULE_NOT_AVAILABLE'


def test_inactive_account_is_rejected(client, factory, login):
    login(factory.admin(factory.account(is_active=False)))

    response = client.get('/api/companies')

    assert response.status_code == 403
    assert response.get_json()['error'] == 'ACCOUNT_INACTIVE'


def test_module_catalog(client, factory, login):
    login(factory.user(factory.account()))

    catalog = {m['type']: m for m in client.get('/api/modules').get_json()}

    assert catalog['CONTACTS']['hasLimits'] is True
    assert catalog['CONTACTS']['defaultLimit'] == 100
    assert catalog['CRM']['hasLimits'] is False
