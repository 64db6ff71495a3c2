"""Initial approval workflow tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Directory users (owned by the platform, read by the engine)
    op.create_table(
        'directory_users',
        sa.Column('uid', sa.String(128), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(100), nullable=True),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('uid')
    )
    op.create_index('ix_directory_users_email', 'directory_users', ['email'])
    op.create_index('ix_directory_users_role', 'directory_users', ['role'])

    # Approval items
    op.create_table(
        'approval_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('workflow_id', sa.String(32), nullable=False),
        sa.Column('module_type', sa.String(50), nullable=False),
        sa.Column('module_id', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('submitted_by', sa.String(128), nullable=True),
        sa.Column('submitter_name', sa.String(255), nullable=True),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('language', sa.String(5), nullable=False, server_default='en'),
        sa.Column('submitted_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_approval_items_workflow_id', 'approval_items', ['workflow_id'], unique=True)
    op.create_index('ix_approval_items_module_type', 'approval_items', ['module_type'])
    op.create_index('ix_approval_items_submitted_by', 'approval_items', ['submitted_by'])
    op.create_index('ix_approval_items_priority', 'approval_items', ['priority'])
    op.create_index('ix_approval_items_status', 'approval_items', ['status'])
    op.create_index('ix_approval_items_due_date', 'approval_items', ['due_date'])
    op.create_index('ix_approval_items_created_at', 'approval_items', ['created_at'])

    # Reviewer assignments
    op.create_table(
        'approval_assignments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('workflow_id', sa.String(32), nullable=False),
        sa.Column('assigned_to', sa.String(128), nullable=False),
        sa.Column('assigned_by', sa.String(128), nullable=True),
        sa.Column('assigned_date', sa.DateTime(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('completed_date', sa.DateTime(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('is_auto_assigned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['workflow_id'], ['approval_items.workflow_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_approval_assignments_workflow_id', 'approval_assignments', ['workflow_id'])
    op.create_index('ix_approval_assignments_assigned_to', 'approval_assignments', ['assigned_to'])
    op.create_index('ix_approval_assignments_due_date', 'approval_assignments', ['due_date'])
    op.create_index('ix_approval_assignments_status', 'approval_assignments', ['status'])

    # Audit trail (append-only)
    op.create_table(
        'approval_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('history_id', sa.String(32), nullable=False),
        sa.Column('workflow_id', sa.String(32), nullable=False),
        sa.Column('action_type', sa.String(20), nullable=False),
        sa.Column('action_by', sa.String(128), nullable=True),
        sa.Column('action_by_name', sa.String(255), nullable=True),
        sa.Column('previous_status', sa.String(20), nullable=True),
        sa.Column('new_status', sa.String(20), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('action_date', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['workflow_id'], ['approval_items.workflow_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('history_id')
    )
    op.create_index('ix_approval_history_workflow_id', 'approval_history', ['workflow_id'])
    op.create_index('ix_approval_history_action_date', 'approval_history', ['action_date'])

    # In-app notifications
    op.create_table(
        'approval_notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('workflow_id', sa.String(32), nullable=False),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='update'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('language', sa.String(5), nullable=False, server_default='en'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('related_action', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_approval_notifications_workflow_id', 'approval_notifications', ['workflow_id'])
    op.create_index('ix_approval_notifications_user_id', 'approval_notifications', ['user_id'])
    op.create_index('ix_approval_notifications_is_read', 'approval_notifications', ['is_read'])
    op.create_index('ix_approval_notifications_created_at', 'approval_notifications', ['created_at'])

    # Per-user and installation settings
    op.create_table(
        'approval_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('auto_assign_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('default_assignees', sa.JSON(), nullable=False),
        sa.Column('notification_frequency', sa.String(20), nullable=False, server_default='immediately'),
        sa.Column('email_notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('language', sa.String(5), nullable=False, server_default='en'),
        sa.Column('department_rules', sa.JSON(), nullable=False),
        sa.Column('module_type_rules', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_approval_settings_user_id', 'approval_settings', ['user_id'], unique=True)


def downgrade() -> None:
    op.drop_table('approval_settings')
    op.drop_table('approval_notifications')
    op.drop_table('approval_history')
    op.drop_table('approval_assignments')
    op.drop_table('approval_items')
    op.drop_table('directory_users')
