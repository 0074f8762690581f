# services/report_service.py
"""
Report Service - CRM pipeline statistics.
All queries are account-scoped; platform admins may aggregate every account.
"""

from datetime import datetime, time

from sqlalchemy import func

from models import Activity, Company, Opportunity, User
from services.tenant_service import tenant_query_for_id


class ReportService:
    """Service for building and executing report queries."""

    def __init__(self, account_id=None):
        # None aggregates every account (platform admin only)
        self.account_id = account_id

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _query(self, model):
        if self.account_id is None:
            query = model.query
            if hasattr(model, 'deleted_at'):
                query = query.filter(model.deleted_at.is_(None))
            return query
        return tenant_query_for_id(model, self.account_id)

    def _activity_query(self):
        # Activities of deleted opportunities drop out of the reports
        return self._query(Activity).join(
            Opportunity, Activity.opportunity_id == Opportunity.id
        ).filter(Opportunity.deleted_at.is_(None))

    # =========================================================================
    # CRM STATS
    # =========================================================================

    def get_opportunities_by_status(self):
        """Opportunity counts per status, every status present."""
        results = self._query(Opportunity).with_entities(
            Opportunity.status, func.count(Opportunity.id)
        ).group_by(Opportunity.status).all()

        by_status = {status: 0 for status in Opportunity.STATUSES}
        for status, count in results:
            by_status[status] = count
        return by_status

    def get_opportunities_by_seller(self):
        """Opportunity counts per seller name."""
        results = self._query(Opportunity).join(
            User, Opportunity.seller_id == User.id
        ).with_entities(
            User.name, func.count(Opportunity.id)
        ).group_by(User.name).all()
        return {name: count for name, count in results}

    def get_activities_by_type(self):
        results = self._activity_query().with_entities(
            Activity.type, func.count(Activity.id)
        ).group_by(Activity.type).all()
        return {activity_type: count for activity_type, count in results}

    def get_activities_today(self, today=None):
        today = today or datetime.utcnow().date()
        start = datetime.combine(today, time.min)
        end = datetime.combine(today, time.max)
        return self._activity_query().filter(
            Activity.activity_date >= start,
            Activity.activity_date <= end,
        ).count()

    def get_stats(self):
        """Dashboard numbers for the reports page."""
        by_status = self.get_opportunities_by_status()
        return {
            'totalWon': by_status.get('WON', 0),
            'totalNegotiation': by_status.get('NEGOTIATION', 0),
            'totalOpportunities': sum(by_status.values()),
            'activeCompanies': self._query(Company).filter(Company.status == 'ACTIVE').count(),
            'activitiesToday': self.get_activities_today(),
            'opportunitiesByStatus': by_status,
            'opportunitiesBySeller': self.get_opportunities_by_seller(),
            'activitiesByType': self.get_activities_by_type(),
        }
