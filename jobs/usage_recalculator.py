# jobs/usage_recalculator.py
"""
Rebuilds the module_usage snapshot table from live counts.
Run via scheduler every 15-60 minutes.

Entitlement checks never read this table; it feeds admin dashboards and
doubles as the per-module create lock, so the rows must exist for every account.

Usage:
    python -m jobs.usage_recalculator
"""

import logging

from entitlements import ModuleType

logger = logging.getLogger(__name__)


def update_all_account_usage():
    """
    Update usage for all live business accounts.

    Returns:
        Number of accounts updated
    """
    from models import db, BusinessAccount

    accounts = BusinessAccount.query.filter(BusinessAccount.deleted_at.is_(None)).all()

    for account in accounts:
        update_single_account_usage(account.id)

    db.session.commit()
    logger.info(f"Updated module usage for {len(accounts)} business accounts")
    return len(accounts)


def update_single_account_usage(account_id: int) -> dict:
    """
    Update usage rows for a single account. Caller commits.

    Returns:
        {module_type: count}
    """
    from services.entitlement_service import ensure_usage_rows, refresh_usage

    ensure_usage_rows(account_id)
    return {
        module_type: refresh_usage(account_id, module_type)
        for module_type in ModuleType.ALL
    }


def run_usage_recalculation():
    """Entry point for scheduler/cron - creates app context and runs job."""
    from app import create_app

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app = create_app()
    with app.app_context():
        update_all_account_usage()


if __name__ == '__main__':
    run_usage_recalculation()
