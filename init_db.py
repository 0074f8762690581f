from app import create_app
from entitlements import Role
from models import db, User
from services.plan_service import seed_default_plans, seed_module_catalog


def seed_super_admin(config):
    """Create the platform operator once. Skipped when no password is configured."""
    email = config['SUPER_ADMIN_EMAIL'].lower()
    if User.query.filter_by(email=email).first():
        print(f"Super admin {email} already exists")
        return None

    password = config.get('SUPER_ADMIN_PASSWORD')
    if not password:
        print("SUPER_ADMIN_PASSWORD not set, skipping super admin")
        return None

    admin = User(
        name=config['SUPER_ADMIN_NAME'],
        email=email,
        role=Role.SUPER_ADMIN,
        business_account_id=None,
    )
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    print(f"Created super admin {email}")
    return admin


def init_db(config_object='config.Config'):
    app = create_app(config_object)
    with app.app_context():
        # Create all tables
        db.create_all()

        modules = seed_module_catalog()
        print(f"Module catalog: {', '.join(m.type for m in modules)}")

        created = seed_default_plans()
        if created:
            print(f"Created plans: {', '.join(p.name for p in created)}")
        else:
            print("Plans already exist in database!")

        seed_super_admin(app.config)


if __name__ == '__main__':
    init_db()
