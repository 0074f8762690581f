import logging

from flask import Flask, jsonify
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFError, CSRFProtect
from werkzeug.exceptions import HTTPException

from models import db, User
from routes import register_blueprints
from services.exceptions import ApiError

migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        # Nothing half-applied survives a rejected request
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({'error': 'CSRF_ERROR', 'message': error.description, 'details': {}}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or 'error').upper().replace(' ', '_')
        return jsonify({'error': code, 'message': error.description, 'details': {}}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {error}")
        return jsonify({
            'error': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred',
            'details': {},
        }), 500


def create_app(config_object='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        user = db.session.get(User, int(user_id))
        if user is None or not user.can_log_in:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({
            'error': 'AUTHENTICATION_REQUIRED',
            'message': 'Please log in to continue',
            'details': {},
        }), 401

    register_error_handlers(app)
    register_blueprints(app)

    return app


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(host='0.0.0.0', port=5005, debug=True)
