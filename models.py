# models.py
from datetime import datetime

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

from entitlements import Role, ModuleType, PlanModuleConfig

db = SQLAlchemy()


def _iso(value):
    return value.isoformat() if value else None


class Plan(db.Model):
    """A priced bundle of module inclusions, limits and CRUD flags."""
    __tablename__ = 'plans'

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_INACTIVE = 'INACTIVE'
    STATUS_DEPRECATED = 'DEPRECATED'
    STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_DEPRECATED)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    monthly_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    annual_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    trial_days = db.Column(db.Integer, nullable=False, default=14)
    is_default = db.Column(db.Boolean, nullable=False, default=False, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    modules = db.relationship('PlanModule', backref='plan', lazy=True,
                              cascade='all, delete-orphan',
                              order_by='PlanModule.module_type')
    accounts = db.relationship('BusinessAccount', backref='plan', lazy='dynamic')

    def get_module(self, module_type):
        for plan_module in self.modules:
            if plan_module.module_type == module_type:
                return plan_module
        return None

    def __repr__(self):
        return f'<Plan {self.name}>'


class PlanModule(db.Model):
    """One row per (plan, module). item_limit NULL means unbounded."""
    __tablename__ = 'plan_modules'
    __table_args__ = (
        db.UniqueConstraint('plan_id', 'module_type', name='uq_plan_module'),
    )

    id = db.Column(db.Integer, primary_key=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('plans.id', ondelete='CASCADE'), nullable=False, index=True)
    module_type = db.Column(db.String(20), nullable=False)
    is_included = db.Column(db.Boolean, nullable=False, default=True)
    item_limit = db.Column(db.Integer, nullable=True)
    can_create = db.Column(db.Boolean, nullable=False, default=True)
    can_edit = db.Column(db.Boolean, nullable=False, default=True)
    can_delete = db.Column(db.Boolean, nullable=False, default=True)

    def to_config(self) -> PlanModuleConfig:
        return PlanModuleConfig(
            module_type=self.module_type,
            is_included=self.is_included,
            item_limit=self.item_limit,
            can_create=self.can_create,
            can_edit=self.can_edit,
            can_delete=self.can_delete,
        )

    def to_dict(self):
        return {
            'moduleType': self.module_type,
            'isIncluded': self.is_included,
            'itemLimit': self.item_limit,
            'canCreate': self.can_create,
            'canEdit': self.can_edit,
            'canDelete': self.can_delete,
        }


class Module(db.Model):
    """Static catalog entry, seeded from plan_config.MODULE_CATALOG."""
    __tablename__ = 'modules'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    has_limits = db.Column(db.Boolean, nullable=False, default=False)
    default_limit = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'type': self.type,
            'name': self.name,
            'description': self.description,
            'hasLimits': self.has_limits,
            'defaultLimit': self.default_limit,
            'isActive': self.is_active,
        }


class BusinessAccount(db.Model):
    """Tenant. Soft-deleted only; never hard-deleted while it owns data."""
    __tablename__ = 'business_accounts'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    plan_id = db.Column(db.Integer, db.ForeignKey('plans.id', ondelete='RESTRICT'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = db.relationship('User', backref='business_account', lazy='dynamic')

    @property
    def is_usable(self):
        return self.is_active and self.deleted_at is None

    def soft_delete(self):
        self.is_active = False
        self.deleted_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'planId': self.plan_id,
            'planName': self.plan.name if self.plan else None,
            'isActive': self.is_active,
            'deletedAt': _iso(self.deleted_at),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<BusinessAccount {self.name}>'


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20))
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False, default=Role.USER)
    # NULL only for SUPER_ADMIN
    business_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='RESTRICT'),
                                    nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_super_admin(self):
        return self.role == Role.SUPER_ADMIN

    @property
    def can_log_in(self):
        if not self.is_active or self.deleted_at is not None:
            return False
        if self.is_super_admin:
            return True
        account = self.business_account
        return account is not None and account.deleted_at is None

    def soft_delete(self):
        self.is_active = False
        self.deleted_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'role': self.role,
            'businessAccountId': self.business_account_id,
            'isActive': self.is_active,
            'lastLogin': _iso(self.last_login),
            'createdAt': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


class ModuleUsage(db.Model):
    """
    Per tenant-module usage snapshot.
    The row doubles as the lock that serializes limited creates; the resolver
    never reads current_count from here.
    """
    __tablename__ = 'module_usage'
    __table_args__ = (
        db.UniqueConstraint('business_account_id', 'module_type', name='uq_module_usage'),
    )

    id = db.Column(db.Integer, primary_key=True)
    business_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='CASCADE'),
                                    nullable=False, index=True)
    module_type = db.Column(db.String(20), nullable=False)
    current_count = db.Column(db.Integer, nullable=False, default=0)
    last_calculated = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class AccountModuleOverride(db.Model):
    """Platform admin switch that disables a module for one tenant regardless of plan."""
    __tablename__ = 'account_module_overrides'
    __table_args__ = (
        db.UniqueConstraint('business_account_id', 'module_type', name='uq_account_module_override'),
    )

    id = db.Column(db.Integer, primary_key=True)
    business_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='CASCADE'),
                                    nullable=False, index=True)
    module_type = db.Column(db.String(20), nullable=False)
    is_disabled = db.Column(db.Boolean, nullable=False, default=True)
    disabled_by_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class UserModulePermission(db.Model):
    """Business admin restriction of what a single USER may do inside a module."""
    __tablename__ = 'user_module_permissions'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'module_type', name='uq_user_module_permission'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    module_type = db.Column(db.String(20), nullable=False)
    can_view = db.Column(db.Boolean, nullable=False, default=True)
    can_create = db.Column(db.Boolean, nullable=False, default=True)
    can_edit = db.Column(db.Boolean, nullable=False, default=True)
    can_delete = db.Column(db.Boolean, nullable=False, default=True)
    assigned_by_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    notes = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', foreign_keys=[user_id],
                           backref=db.backref('module_permissions', lazy=True, cascade='all, delete-orphan'))

    def to_dict(self):
        return {
            'userId': self.user_id,
            'moduleType': self.module_type,
            'canView': self.can_view,
            'canCreate': self.can_create,
            'canEdit': self.can_edit,
            'canDelete': self.can_delete,
            'notes': self.notes,
        }


class Company(db.Model):
    """Contact record; backing table of the CONTACTS module."""
    __tablename__ = 'companies'

    STATUSES = ('LEAD', 'ACTIVE', 'INACTIVE', 'BLOCKED')

    id = db.Column(db.Integer, primary_key=True)
    business_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='RESTRICT'),
                                    nullable=False, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='LEAD')
    contact_name = db.Column(db.String(200))
    email = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    website = db.Column(db.String(255))
    industry = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    owner = db.relationship('User', backref=db.backref('owned_companies', lazy='dynamic'))

    def soft_delete(self):
        self.deleted_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'businessAccountId': self.business_account_id,
            'ownerId': self.owner_id,
            'name': self.name,
            'status': self.status,
            'contactName': self.contact_name,
            'email': self.email,
            'phone': self.phone,
            'website': self.website,
            'industry': self.industry,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Company {self.name}>'


class Opportunity(db.Model):
    """Sales opportunity; backing table of the CRM module."""
    __tablename__ = 'opportunities'

    TYPES = ('NEW_CLIENT', 'ADDITIONAL_PROJECT')
    STATUSES = ('NEW', 'QUALIFYING', 'PROPOSAL', 'NEGOTIATION', 'WON', 'LOST', 'ON_HOLD')

    id = db.Column(db.Integer, primary_key=True)
    business_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='RESTRICT'),
                                    nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id', ondelete='RESTRICT'), nullable=False)
    seller_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(30), nullable=False, default='NEW_CLIENT')
    status = db.Column(db.String(20), nullable=False, default='NEW')
    estimated_close_date = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    company = db.relationship('Company', backref=db.backref('opportunities', lazy='dynamic'))
    seller = db.relationship('User', backref=db.backref('opportunities', lazy='dynamic'))

    def soft_delete(self):
        self.deleted_at = datetime.utcnow()

    def to_dict(self, include_activities=False):
        data = {
            'id': self.id,
            'businessAccountId': self.business_account_id,
            'companyId': self.company_id,
            'companyName': self.company.name if self.company else None,
            'sellerId': self.seller_id,
            'sellerName': self.seller.name if self.seller else None,
            'title': self.title,
            'type': self.type,
            'status': self.status,
            'estimatedCloseDate': _iso(self.estimated_close_date),
            'notes': self.notes,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if include_activities:
            data['activities'] = [a.to_dict() for a in
                                  self.activities.order_by(Activity.activity_date.desc()).all()]
        return data


class Activity(db.Model):
    """Call, meeting, agreement or note logged against an opportunity."""
    __tablename__ = 'activities'

    TYPES = ('CALL', 'MEETING', 'AGREEMENT', 'NOTE')

    id = db.Column(db.Integer, primary_key=True)
    business_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='RESTRICT'),
                                    nullable=False, index=True)
    opportunity_id = db.Column(db.Integer, db.ForeignKey('opportunities.id', ondelete='CASCADE'), nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    details = db.Column(db.Text)
    activity_date = db.Column(db.DateTime, nullable=False)
    is_task = db.Column(db.Boolean, nullable=False, default=False)
    reminder_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    opportunity = db.relationship('Opportunity', backref=db.backref('activities', lazy='dynamic'))
    author = db.relationship('User', backref=db.backref('activities', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'opportunityId': self.opportunity_id,
            'authorId': self.author_id,
            'authorName': self.author.name if self.author else None,
            'type': self.type,
            'details': self.details,
            'activityDate': _iso(self.activity_date),
            'isTask': self.is_task,
            'reminderDate': _iso(self.reminder_date),
            'createdAt': _iso(self.created_at),
        }


class PlatformAuditLog(db.Model):
    """Trail of SUPER_ADMIN mutations to plans and tenants."""
    __tablename__ = 'platform_audit_log'

    id = db.Column(db.Integer, primary_key=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    target_account_id = db.Column(db.Integer, db.ForeignKey('business_accounts.id', ondelete='SET NULL'),
                                  nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    details = db.Column(db.JSON, nullable=False, default=dict)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<PlatformAuditLog {self.action}>'


# Backing table per module, used for live resource counts
RESOURCE_MODELS = {
    ModuleType.USERS: User,
    ModuleType.CONTACTS: Company,
    ModuleType.CRM: Opportunity,
}
