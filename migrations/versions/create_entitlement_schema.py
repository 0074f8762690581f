"""create plans, business accounts, entitlement and CRM tables

Revision ID: create_entitlement_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = 'create_entitlement_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    conn = op.get_bind()
    inspector = inspect(conn)
    tables = inspector.get_table_names()

    # =========================================================================
    # PLANS AND CATALOG
    # =========================================================================
    if 'plans' not in tables:
        op.create_table(
            'plans',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(100), nullable=False, unique=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
            sa.Column('monthly_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('annual_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('trial_days', sa.Integer(), nullable=False, server_default='14'),
            sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
            *_timestamps(),
        )
        op.create_index('ix_plans_status', 'plans', ['status'])
        op.create_index('ix_plans_is_default', 'plans', ['is_default'])

    if 'plan_modules' not in tables:
        op.create_table(
            'plan_modules',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('plan_id', sa.Integer(), nullable=False),
            sa.Column('module_type', sa.String(20), nullable=False),
            sa.Column('is_included', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('item_limit', sa.Integer(), nullable=True),
            sa.Column('can_create', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('can_edit', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('can_delete', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_plan_modules_plan_id', ondelete='CASCADE'),
            sa.UniqueConstraint('plan_id', 'module_type', name='uq_plan_module'),
        )
        op.create_index('ix_plan_modules_plan_id', 'plan_modules', ['plan_id'])

    if 'modules' not in tables:
        op.create_table(
            'modules',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('type', sa.String(20), nullable=False, unique=True),
            sa.Column('name', sa.String(100), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('has_limits', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('default_limit', sa.Integer(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        )

    # =========================================================================
    # TENANTS AND USERS
    # =========================================================================
    if 'business_accounts' not in tables:
        op.create_table(
            'business_accounts',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(200), nullable=False),
            sa.Column('plan_id', sa.Integer(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_business_accounts_plan_id',
                                    ondelete='RESTRICT'),
        )
        op.create_index('ix_business_accounts_plan_id', 'business_accounts', ['plan_id'])

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(120), nullable=False),
            sa.Column('email', sa.String(120), nullable=False, unique=True),
            sa.Column('phone', sa.String(20), nullable=True),
            sa.Column('password_hash', sa.String(256), nullable=True),
            sa.Column('role', sa.String(20), nullable=False, server_default='USER'),
            sa.Column('business_account_id', sa.Integer(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            sa.Column('last_login', sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['business_account_id'], ['business_accounts.id'],
                                    name='fk_users_business_account_id', ondelete='RESTRICT'),
        )
        op.create_index('ix_users_business_account_id', 'users', ['business_account_id'])

    # =========================================================================
    # ENTITLEMENT STATE
    # =========================================================================
    if 'module_usage' not in tables:
        op.create_table(
            'module_usage',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('business_account_id', sa.Integer(), nullable=False),
            sa.Column('module_type', sa.String(20), nullable=False),
            sa.Column('current_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_calculated', sa.DateTime(), nullable=False,
                      server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['business_account_id'], ['business_accounts.id'],
                                    name='fk_module_usage_business_account_id', ondelete='CASCADE'),
            sa.UniqueConstraint('business_account_id', 'module_type', name='uq_module_usage'),
        )
        op.create_index('ix_module_usage_business_account_id', 'module_usage', ['business_account_id'])

    if 'account_module_overrides' not in tables:
        op.create_table(
            'account_module_overrides',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('business_account_id', sa.Integer(), nullable=False),
            sa.Column('module_type', sa.String(20), nullable=False),
            sa.Column('is_disabled', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('disabled_by_id', sa.Integer(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['business_account_id'], ['business_accounts.id'],
                                    name='fk_account_module_overrides_account_id', ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['disabled_by_id'], ['users.id'],
                                    name='fk_account_module_overrides_disabled_by_id', ondelete='SET NULL'),
            sa.UniqueConstraint('business_account_id', 'module_type', name='uq_account_module_override'),
        )
        op.create_index('ix_account_module_overrides_business_account_id',
                        'account_module_overrides', ['business_account_id'])

    if 'user_module_permissions' not in tables:
        op.create_table(
            'user_module_permissions',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('module_type', sa.String(20), nullable=False),
            sa.Column('can_view', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('can_create', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('can_edit', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('can_delete', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('assigned_by_id', sa.Integer(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'],
                                    name='fk_user_module_permissions_user_id', ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['assigned_by_id'], ['users.id'],
                                    name='fk_user_module_permissions_assigned_by_id', ondelete='SET NULL'),
            sa.UniqueConstraint('user_id', 'module_type', name='uq_user_module_permission'),
        )
        op.create_index('ix_user_module_permissions_user_id', 'user_module_permissions', ['user_id'])

    # =========================================================================
    # CRM DATA
    # =========================================================================
    if 'companies' not in tables:
        op.create_table(
            'companies',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('business_account_id', sa.Integer(), nullable=False),
            sa.Column('owner_id', sa.Integer(), nullable=True),
            sa.Column('name', sa.String(200), nullable=False),
            sa.Column('status', sa.String(20), nullable=False, server_default='LEAD'),
            sa.Column('contact_name', sa.String(200), nullable=True),
            sa.Column('email', sa.String(120), nullable=True),
            sa.Column('phone', sa.String(20), nullable=True),
            sa.Column('website', sa.String(255), nullable=True),
            sa.Column('industry', sa.String(120), nullable=True),
            *_timestamps(),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['business_account_id'], ['business_accounts.id'],
                                    name='fk_companies_business_account_id', ondelete='RESTRICT'),
            sa.ForeignKeyConstraint(['owner_id'], ['users.id'], name='fk_companies_owner_id', ondelete='SET NULL'),
        )
        op.create_index('ix_companies_business_account_id', 'companies', ['business_account_id'])

    if 'opportunities' not in tables:
        op.create_table(
            'opportunities',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('business_account_id', sa.Integer(), nullable=False),
            sa.Column('company_id', sa.Integer(), nullable=False),
            sa.Column('seller_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(200), nullable=False),
            sa.Column('type', sa.String(30), nullable=False, server_default='NEW_CLIENT'),
            sa.Column('status', sa.String(20), nullable=False, server_default='NEW'),
            sa.Column('estimated_close_date', sa.DateTime(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            *_timestamps(),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['business_account_id'], ['business_accounts.id'],
                                    name='fk_opportunities_business_account_id', ondelete='RESTRICT'),
            sa.ForeignKeyConstraint(['company_id'], ['companies.id'],
                                    name='fk_opportunities_company_id', ondelete='RESTRICT'),
            sa.ForeignKeyConstraint(['seller_id'], ['users.id'], name='fk_opportunities_seller_id', ondelete='RESTRICT'),
        )
        op.create_index('ix_opportunities_business_account_id', 'opportunities', ['business_account_id'])

    if 'activities' not in tables:
        op.create_table(
            'activities',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('business_account_id', sa.Integer(), nullable=False),
            sa.Column('opportunity_id', sa.Integer(), nullable=False),
            sa.Column('author_id', sa.Integer(), nullable=False),
            sa.Column('type', sa.String(20), nullable=False),
            sa.Column('details', sa.Text(), nullable=True),
            sa.Column('activity_date', sa.DateTime(), nullable=False),
            sa.Column('is_task', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('reminder_date', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['business_account_id'], ['business_accounts.id'],
                                    name='fk_activities_business_account_id', ondelete='RESTRICT'),
            sa.ForeignKeyConstraint(['opportunity_id'], ['opportunities.id'],
                                    name='fk_activities_opportunity_id', ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['author_id'], ['users.id'], name='fk_activities_author_id', ondelete='RESTRICT'),
        )
        op.create_index('ix_activities_business_account_id', 'activities', ['business_account_id'])

    # =========================================================================
    # PLATFORM AUDIT
    # =========================================================================
    if 'platform_audit_log' not in tables:
        op.create_table(
            'platform_audit_log',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('admin_user_id', sa.Integer(), nullable=True),
            sa.Column('target_account_id', sa.Integer(), nullable=True),
            sa.Column('action', sa.String(50), nullable=False),
            sa.Column('details', sa.JSON(), nullable=False),
            sa.Column('ip_address', sa.String(64), nullable=True),
            sa.Column('user_agent', sa.String(500), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.ForeignKeyConstraint(['admin_user_id'], ['users.id'],
                                    name='fk_platform_audit_log_admin_user_id', ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['target_account_id'], ['business_accounts.id'],
                                    name='fk_platform_audit_log_target_account_id', ondelete='SET NULL'),
        )
        op.create_index('ix_platform_audit_log_action', 'platform_audit_log', ['action'])


def downgrade():
    for table in ('platform_audit_log', 'activities', 'opportunities', 'companies',
                  'user_module_permissions', 'account_module_overrides', 'module_usage',
                  'users', 'business_accounts', 'modules', 'plan_modules', 'plans'):
        op.drop_table(table)
