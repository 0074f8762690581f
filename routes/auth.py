from datetime import datetime

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from forms import LoginForm, parse_request
from models import User, db
from services.entitlement_service import get_all_module_verdicts
from services.exceptions import InvalidCredentials

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _session_payload(user):
    account = user.business_account
    return {
        'user': user.to_dict(),
        'businessAccount': account.to_dict() if account else None,
        'permissions': {
            module_type: verdict.to_dict()
            for module_type, verdict in get_all_module_verdicts(user).items()
        },
    }


@auth_bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrfToken': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    data = parse_request(LoginForm)

    user = User.query.filter(db.func.lower(User.email) == data['email'].lower()).first()
    if not user or not user.check_password(data['password']) or not user.can_log_in:
        current_app.logger.info(f"Failed login for {data['email']}")
        raise InvalidCredentials()

    login_user(user)
    user.last_login = datetime.utcnow()
    db.session.commit()
    return jsonify(_session_payload(user))


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'You have been logged out successfully.'})


@auth_bp.route('/user')
@login_required
def get_current_user():
    return jsonify(_session_payload(current_user))
