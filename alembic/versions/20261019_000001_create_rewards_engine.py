"""Create volunteer rewards engine tables

Revision ID: 20261019_000001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Volunteer profiles
    op.create_table(
        'volunteer_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('identity_id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('activity_multiplier', sa.DECIMAL(6, 4), nullable=False, server_default='1.0'),
        sa.Column('referral_code', sa.String(20), nullable=False),
        sa.Column('upline_id', sa.Integer(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_multiplier_calculation_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('retired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['upline_id'], ['volunteer_profiles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identity_id', 'organization_id', name='uq_volunteer_profiles_identity_org'),
        sa.CheckConstraint('level >= 1', name='check_profile_level_positive'),
        sa.CheckConstraint('total_xp >= 0', name='check_profile_total_xp_non_negative'),
        sa.CheckConstraint('activity_multiplier >= 1.0', name='check_profile_multiplier_min'),
        sa.CheckConstraint('upline_id IS NULL OR upline_id <> id', name='check_profile_not_own_upline'),
    )
    op.create_index('ix_volunteer_profiles_identity_id', 'volunteer_profiles', ['identity_id'])
    op.create_index('ix_volunteer_profiles_organization_id', 'volunteer_profiles', ['organization_id'])
    op.create_index('ix_volunteer_profiles_referral_code', 'volunteer_profiles', ['referral_code'], unique=True)
    op.create_index('ix_volunteer_profiles_upline_id', 'volunteer_profiles', ['upline_id'])
    op.create_index('ix_volunteer_profiles_level_xp', 'volunteer_profiles', ['level', 'total_xp'])
    op.create_index('ix_volunteer_profiles_last_activity', 'volunteer_profiles', ['last_activity_at'])

    # Task templates
    op.create_table(
        'task_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(150), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(50), nullable=False, server_default='general'),
        sa.Column('xp_reward', sa.Integer(), nullable=False),
        sa.Column('level_required', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('frequency', sa.String(20), nullable=False, server_default='weekly'),
        sa.Column('deadline_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('xp_reward > 0', name='check_template_xp_positive'),
        sa.CheckConstraint('level_required > 0', name='check_template_level_positive'),
        sa.CheckConstraint('deadline_days > 0', name='check_template_deadline_positive'),
    )
    op.create_index('ix_task_templates_organization_id', 'task_templates', ['organization_id'])
    op.create_index('ix_task_templates_status', 'task_templates', ['status'])
    op.create_index('ix_task_templates_org_status', 'task_templates', ['organization_id', 'status'])

    # Task assignments
    op.create_table(
        'task_assignments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('task_template_id', sa.Integer(), nullable=False),
        sa.Column('assignee_id', sa.Integer(), nullable=False),
        sa.Column('reviewer_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submission_notes', sa.Text(), nullable=True),
        sa.Column('submission_payload', postgresql.JSONB(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('xp_awarded', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['task_template_id'], ['task_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assignee_id'], ['volunteer_profiles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "status IN ('pending', 'submitted', 'approved', 'rejected')",
            name='check_assignment_status',
        ),
        sa.CheckConstraint(
            "(status = 'pending') = (submitted_at IS NULL)",
            name='check_assignment_submitted_at',
        ),
        sa.CheckConstraint(
            "(status IN ('approved', 'rejected')) = (reviewed_at IS NOT NULL)",
            name='check_assignment_reviewed_at',
        ),
    )
    op.create_index('ix_task_assignments_task_template_id', 'task_assignments', ['task_template_id'])
    op.create_index('ix_task_assignments_assignee_id', 'task_assignments', ['assignee_id'])
    op.create_index('ix_task_assignments_status', 'task_assignments', ['status'])
    op.create_index(
        'ix_task_assignments_assignee_status_reviewed',
        'task_assignments',
        ['assignee_id', 'status', 'reviewed_at'],
    )
    # At most one open assignment per volunteer and template
    op.create_index(
        'uq_task_assignments_open',
        'task_assignments',
        ['assignee_id', 'task_template_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'submitted')"),
    )

    # Referral edges
    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('referred_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('commission_rate', sa.DECIMAL(5, 4), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['referrer_id'], ['volunteer_profiles.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['referred_id'], ['volunteer_profiles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referrer_id', 'referred_id', name='uq_referrals_pair'),
        sa.CheckConstraint('referrer_id <> referred_id', name='check_referral_not_self'),
        sa.CheckConstraint('level >= 1 AND level <= 5', name='check_referral_level_range'),
        sa.CheckConstraint(
            'commission_rate > 0 AND commission_rate < 1',
            name='check_referral_rate_range',
        ),
    )
    op.create_index('ix_referrals_referrer_id', 'referrals', ['referrer_id'])
    op.create_index('ix_referrals_referred_id', 'referrals', ['referred_id'])
    op.create_index('ix_referrals_level', 'referrals', ['level'])

    # Append-only ledger
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(40), nullable=False),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('xp_amount', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('external_reference', sa.String(128), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['profile_id'], ['volunteer_profiles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'profile_id', 'entry_type', 'external_reference',
            name='uq_ledger_profile_type_reference',
        ),
    )
    op.create_index('ix_ledger_entries_profile_id', 'ledger_entries', ['profile_id'])
    op.create_index('ix_ledger_entries_entry_type', 'ledger_entries', ['entry_type'])
    op.create_index('ix_ledger_entries_external_reference', 'ledger_entries', ['external_reference'])
    op.create_index('ix_ledger_entries_profile_created', 'ledger_entries', ['profile_id', 'created_at'])
    op.create_index('ix_ledger_entries_type_created', 'ledger_entries', ['entry_type', 'created_at'])

    # Ledger rows are never changed once written
    op.execute(
        """
        CREATE OR REPLACE FUNCTION ledger_entries_append_only()
        RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'ledger_entries is append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER ledger_entries_no_update_delete
        BEFORE UPDATE OR DELETE ON ledger_entries
        FOR EACH ROW EXECUTE FUNCTION ledger_entries_append_only();
        """
    )


def downgrade() -> None:
    op.execute('DROP TRIGGER IF EXISTS ledger_entries_no_update_delete ON ledger_entries')
    op.execute('DROP FUNCTION IF EXISTS ledger_entries_append_only()')

    op.drop_index('ix_ledger_entries_type_created', 'ledger_entries')
    op.drop_index('ix_ledger_entries_profile_created', 'ledger_entries')
    op.drop_index('ix_ledger_entries_external_reference', 'ledger_entries')
    op.drop_index('ix_ledger_entries_entry_type', 'ledger_entries')
    op.drop_index('ix_ledger_entries_profile_id', 'ledger_entries')
    op.drop_table('ledger_entries')

    op.drop_index('ix_referrals_level', 'referrals')
    op.drop_index('ix_referrals_referred_id', 'referrals')
    op.drop_index('ix_referrals_referrer_id', 'referrals')
    op.drop_table('referrals')

    op.drop_index('uq_task_assignments_open', 'task_assignments')
    op.drop_index('ix_task_assignments_assignee_status_reviewed', 'task_assignments')
    op.drop_index('ix_task_assignments_status', 'task_assignments')
    op.drop_index('ix_task_assignments_assignee_id', 'task_assignments')
    op.drop_index('ix_task_assignments_task_template_id', 'task_assignments')
    op.drop_table('task_assignments')

    op.drop_index('ix_task_templates_org_status', 'task_templates')
    op.drop_index('ix_task_templates_status', 'task_templates')
    op.drop_index('ix_task_templates_organization_id', 'task_templates')
    op.drop_table('task_templates')

    op.drop_index('ix_volunteer_profiles_last_activity', 'volunteer_profiles')
    op.drop_index('ix_volunteer_profiles_level_xp', 'volunteer_profiles')
    op.drop_index('ix_volunteer_profiles_upline_id', 'volunteer_profiles')
    op.drop_index('ix_volunteer_profiles_referral_code', 'volunteer_profiles')
    op.drop_index('ix_volunteer_profiles_organization_id', 'volunteer_profiles')
    op.drop_index('ix_volunteer_profiles_identity_id', 'volunteer_profiles')
    op.drop_table('volunteer_profiles')
