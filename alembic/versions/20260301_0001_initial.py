"""initial onboarding and admin schema

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '20260301_0001'
down_revision = None
branch_labels = None
depends_on = None

ROLE_TYPES = ('corporativo', 'gerente', 'empleado')


def upgrade():
    op.create_table('companies',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table('profiles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('role_type', sa.Enum(*ROLE_TYPES, name='roletype'), nullable=False),
        sa.Column('company_id', sa.String(), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('department_id', sa.String(), nullable=True),
        sa.Column('status', sa.Enum('active', 'inactive', 'pending', 'suspended', name='profilestatusenum'), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('last_active', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])
    op.create_index('ix_profiles_company_id', 'profiles', ['company_id'])
    op.create_index('ix_profiles_company_role', 'profiles', ['company_id', 'role_type'])

    op.create_table('onboarding_sessions',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('status', sa.Enum('in_progress', 'completed', 'expired', 'abandoned', name='sessionstatusenum'), nullable=False),
        sa.Column('current_step', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_steps', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('form_data', sa.JSON(), nullable=False),
        sa.Column('ai_suggestions', sa.JSON(), nullable=True),
        sa.Column('ai_analysis', sa.JSON(), nullable=True),
        sa.Column('completion_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_onboarding_sessions_user_id', 'onboarding_sessions', ['user_id'])
    op.create_index('ix_onboarding_sessions_user_status', 'onboarding_sessions', ['user_id', 'status'])

    op.create_table('onboarding_progress',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('session_id', sa.String(), sa.ForeignKey('onboarding_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('step_number', sa.Integer(), nullable=False),
        sa.Column('step_name', sa.String(), nullable=False),
        sa.Column('step_data', sa.JSON(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('skipped', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ai_validation', sa.JSON(), nullable=True),
        sa.Column('completion_time', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('session_id', 'step_number', name='uq_onboarding_progress_session_step'),
    )

    op.create_table('organizations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=True),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('size', sa.String(), nullable=True),
        sa.Column('employee_count', sa.Integer(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('country', sa.String(), nullable=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('founded_year', sa.Integer(), nullable=True),
        sa.Column('okr_maturity', sa.String(), nullable=True),
        sa.Column('business_goals', sa.JSON(), nullable=True),
        sa.Column('current_challenges', sa.JSON(), nullable=True),
        sa.Column('ai_insights', sa.JSON(), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'])

    op.create_table('organization_members',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organization_id', sa.String(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='member'),
        sa.Column('department', sa.String(), nullable=True),
        sa.Column('job_title', sa.String(), nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('organization_id', 'user_id', name='uq_organization_members_org_user'),
    )
    op.create_index('ix_organization_members_user_id', 'organization_members', ['user_id'])

    op.create_table('objectives',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organization_id', sa.String(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner', sa.String(), nullable=True),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('category', sa.String(), nullable=False, server_default='business'),
        sa.Column('time_horizon', sa.String(), nullable=False, server_default='quarterly'),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_objectives_organization_id', 'objectives', ['organization_id'])

    op.create_table('key_results',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('objective_id', sa.String(), sa.ForeignKey('objectives.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metric', sa.String(), nullable=False),
        sa.Column('target', sa.String(), nullable=False),
        sa.Column('unit', sa.String(), nullable=True),
        sa.Column('baseline', sa.String(), nullable=False, server_default='0'),
        sa.Column('owner', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('tracking_frequency', sa.String(), nullable=False, server_default='weekly'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_key_results_objective_id', 'key_results', ['objective_id'])

    op.create_table('invitations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('role_type', sa.Enum(*ROLE_TYPES, name='roletype', create_type=False), nullable=False),
        sa.Column('department_id', sa.String(), nullable=True),
        sa.Column('invitation_code', sa.String(), nullable=False, unique=True),
        sa.Column('status', sa.Enum('pending', 'sent', 'accepted', 'expired', 'cancelled', name='invitationstatusenum'), nullable=False),
        sa.Column('invitation_type', sa.String(), nullable=False, server_default='standard'),
        sa.Column('batch_id', sa.String(), nullable=True),
        sa.Column('welcome_message', sa.Text(), nullable=True),
        sa.Column('auto_activate', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('invited_by', sa.String(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_invitations_email', 'invitations', ['email'])
    op.create_index('ix_invitations_company_id', 'invitations', ['company_id'])
    op.create_index('ix_invitations_batch_id', 'invitations', ['batch_id'])
    op.create_index(
        'uq_invitations_active_email_company',
        'invitations',
        ['email', 'company_id'],
        unique=True,
        sqlite_where=sa.text("status IN ('pending', 'sent')"),
        postgresql_where=sa.text("status IN ('pending', 'sent')"),
    )


def downgrade():
    op.drop_table('invitations')
    op.drop_table('key_results')
    op.drop_table('objectives')
    op.drop_table('organization_members')
    op.drop_table('organizations')
    op.drop_table('onboarding_progress')
    op.drop_table('onboarding_sessions')
    op.drop_table('profiles')
    op.drop_table('companies')
    op.execute("DROP TYPE IF EXISTS invitationstatusenum")
    op.execute("DROP TYPE IF EXISTS sessionstatusenum")
    op.execute("DROP TYPE IF EXISTS profilestatusenum")
    op.execute("DROP TYPE IF EXISTS roletype")
