"""Initial schema for the deliverable approval workflow.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(255)),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_users_email', 'users', ['email'])

    op.create_table(
        'personal_access_tokens',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('token_hash', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('last_used_at', sa.DateTime, nullable=True),
        sa.Column('expires_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('revoked_at', sa.DateTime, nullable=True),
    )

    # Teams and their agents
    op.create_table(
        'teams',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('division', sa.String(50), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('manager_agent_id', sa.String(100), nullable=False),
        sa.Column('activation_phase', sa.Integer),
        sa.Column('status', sa.String(30)),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'team_members',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('agent_id', sa.String(100), nullable=False, index=True),
        sa.Column('agent_name', sa.String(200), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        sa.Column('status', sa.String(20), nullable=False, server_default='idle', index=True),
        sa.Column('current_task', sa.Text),
        sa.Column('reports_to', sa.String(100)),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint("role IN ('manager', 'lead', 'member')", name='valid_member_role'),
        sa.CheckConstraint("status IN ('idle', 'working', 'reviewing', 'active')", name='valid_member_status'),
    )

    op.create_table(
        'business_phases',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='SET NULL')),
        sa.Column('phase_number', sa.Integer, nullable=False),
        sa.Column('phase_name', sa.String(200), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('started_at', sa.DateTime),
        sa.Column('completed_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.UniqueConstraint('project_id', 'phase_number', name='uq_business_phase_project_number'),
    )

    # Deliverables: approved <=> ceo_approved AND user_approved
    op.create_table(
        'phase_deliverables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('phase_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('business_phases.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('assigned_team_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('teams.id', ondelete='SET NULL'), index=True),
        sa.Column('assigned_agent_id', sa.String(100)),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('deliverable_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending', index=True),
        sa.Column('generated_content', postgresql.JSONB),
        sa.Column('screenshots', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('citations', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('feedback', sa.Text),
        sa.Column('feedback_history', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('ceo_approved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('user_approved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('reviewed_by', sa.String(100)),
        sa.Column('approved_by', sa.String(100)),
        sa.Column('approved_at', sa.DateTime),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()'), index=True),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'review', 'revision_requested', 'rejected', 'approved')",
            name='valid_deliverable_status'
        ),
        sa.CheckConstraint(
            "(status = 'approved') = (ceo_approved AND user_approved)",
            name='approved_requires_both_sign_offs'
        ),
    )

    op.create_table(
        'generated_websites',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('html_content', sa.Text, nullable=False, server_default=''),
        sa.Column('status', sa.String(30), nullable=False, server_default='draft'),
        sa.Column('ceo_approved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('user_approved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('feedback_history', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'agent_activity_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('agent_id', sa.String(100), nullable=False, index=True),
        sa.Column('agent_name', sa.String(200), nullable=False),
        sa.Column('action', sa.Text, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('metadata', postgresql.JSONB),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index(
        'idx_agent_activity_logs_created_at', 'agent_activity_logs', ['created_at'],
        postgresql_ops={'created_at': 'DESC'}
    )


def downgrade() -> None:
    op.drop_index('idx_agent_activity_logs_created_at', table_name='agent_activity_logs')
    op.drop_table('agent_activity_logs')
    op.drop_table('generated_websites')
    op.drop_table('phase_deliverables')
    op.drop_table('business_phases')
    op.drop_table('team_members')
    op.drop_table('teams')
    op.drop_table('personal_access_tokens')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')
