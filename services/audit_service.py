"""
Audit Service - trail of platform admin mutations.

Plans, plan modules, account plan changes and module switches are changed by
SUPER_ADMIN users only; every such change is recorded here in the same
transaction as the change itself.
"""

from flask import current_app, has_request_context, request
from flask_login import current_user

from models import db, PlatformAuditLog


def _client_address():
    # First hop of X-Forwarded-For when behind a proxy
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()[:64]
    return request.remote_addr


def _request_metadata():
    """(actor_id, ip_address, user_agent) for the current request, all None outside one."""
    if not has_request_context():
        return None, None, None
    actor_id = current_user.id if current_user.is_authenticated else None
    user_agent = request.user_agent.string[:500] or None
    return actor_id, _client_address(), user_agent


def log_platform_action(action: str, target_account_id: int = None, details: dict = None):
    """
    Record a platform admin action. Caller commits.

    Args:
        action: Short action name, e.g. 'plan_changed'
        target_account_id: Business account affected, if any
        details: JSON-serializable context

    Returns:
        The pending PlatformAuditLog instance
    """
    actor_id, ip_address, user_agent = _request_metadata()
    entry = PlatformAuditLog(
        admin_user_id=actor_id,
        target_account_id=target_account_id,
        action=action,
        details=details or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(entry)
    current_app.logger.info(
        f"Platform action {action} by user {entry.admin_user_id} on account {target_account_id}"
    )
    return entry
