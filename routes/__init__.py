from .auth import auth_bp
from .modules import modules_bp
from .users import users_bp
from .companies import companies_bp
from .opportunities import opportunities_bp
from .activities import activities_bp
from .reports import reports_bp
from .business_accounts import business_accounts_bp
from .plans import plans_bp


def register_blueprints(app):
    app.register_blueprint(auth_bp)
    app.register_blueprint(modules_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(opportunities_bp)
    app.register_blueprint(activities_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(business_accounts_bp)
    app.register_blueprint(plans_bp)
