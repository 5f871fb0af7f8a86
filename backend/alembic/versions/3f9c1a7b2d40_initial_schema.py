"""Initial schema: users, projects, studies, tasks, task requests, notifications

Revision ID: 3f9c1a7b2d40
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f9c1a7b2d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_str = sqlmodel.sql.sqltypes.AutoString


def upgrade() -> None:
    op.create_table(
        'user_account',
        sa.Column('id', _str(), nullable=False),
        sa.Column('email', _str(), nullable=False),
        sa.Column('first_name', _str(), nullable=False, server_default=''),
        sa.Column('last_name', _str(), nullable=False, server_default=''),
        sa.Column('role', _str(), nullable=False, server_default='researcher'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_user_account_email'), 'user_account', ['email'], unique=True)

    op.create_table(
        'project',
        sa.Column('id', _str(), nullable=False),
        sa.Column('name', _str(), nullable=False),
        sa.Column('description', _str(), nullable=False, server_default=''),
        sa.Column('progress', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('created_by_id', _str(), sa.ForeignKey('user_account.id'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'study',
        sa.Column('id', _str(), nullable=False),
        sa.Column('project_id', _str(), sa.ForeignKey('project.id'), nullable=False),
        sa.Column('name', _str(), nullable=False),
        sa.Column('description', _str(), nullable=False, server_default=''),
        sa.Column('progress', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('created_by_id', _str(), sa.ForeignKey('user_account.id'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_study_project_id'), 'study', ['project_id'], unique=False)

    op.create_table(
        'task',
        sa.Column('id', _str(), nullable=False),
        sa.Column('task_type', _str(), nullable=False, server_default='research'),
        sa.Column('study_id', _str(), sa.ForeignKey('study.id'), nullable=True),
        sa.Column('project_id', _str(), sa.ForeignKey('project.id'), nullable=True),
        sa.Column('name', _str(), nullable=False),
        sa.Column('description', _str(), nullable=False, server_default=''),
        sa.Column('status', _str(), nullable=False, server_default='pending'),
        sa.Column('priority', _str(), nullable=False, server_default='medium'),
        sa.Column('assigned_to_id', _str(), sa.ForeignKey('user_account.id'), nullable=True),
        sa.Column('created_by_id', _str(), sa.ForeignKey('user_account.id'), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_by_id', _str(), sa.ForeignKey('user_account.id'), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_task_study_id'), 'task', ['study_id'], unique=False)
    op.create_index(op.f('ix_task_assigned_to_id'), 'task', ['assigned_to_id'], unique=False)

    op.create_table(
        'task_request',
        sa.Column('id', _str(), nullable=False),
        sa.Column('task_id', _str(), sa.ForeignKey('task.id'), nullable=False),
        sa.Column('requested_by_id', _str(), sa.ForeignKey('user_account.id'), nullable=False),
        sa.Column('request_type', _str(), nullable=False),
        sa.Column('requested_assigned_to_id', _str(), sa.ForeignKey('user_account.id'), nullable=True),
        sa.Column('task_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', _str(), nullable=False, server_default='pending'),
        sa.Column('reviewed_by_id', _str(), sa.ForeignKey('user_account.id'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('notes', _str(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_task_request_task_id'), 'task_request', ['task_id'], unique=False)
    op.create_index(op.f('ix_task_request_requested_by_id'), 'task_request', ['requested_by_id'], unique=False)
    op.create_index(op.f('ix_task_request_status'), 'task_request', ['status'], unique=False)

    op.create_table(
        'notification',
        sa.Column('id', _str(), nullable=False),
        sa.Column('user_id', _str(), sa.ForeignKey('user_account.id'), nullable=False),
        sa.Column('type', _str(), nullable=False, server_default='task'),
        sa.Column('title', _str(), nullable=False),
        sa.Column('message', _str(), nullable=False),
        sa.Column('room_type', _str(), nullable=True),
        sa.Column('room_id', _str(), nullable=True),
        sa.Column('task_id', _str(), nullable=True),
        sa.Column('study_id', _str(), nullable=True),
        sa.Column('project_id', _str(), nullable=True),
        sa.Column('sender_id', _str(), nullable=True),
        sa.Column('sender_name', _str(), nullable=True),
        sa.Column('action_url', _str(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_notification_user_id'), 'notification', ['user_id'], unique=False)
    op.create_index(op.f('ix_notification_read'), 'notification', ['read'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_notification_read'), table_name='notification')
    op.drop_index(op.f('ix_notification_user_id'), table_name='notification')
    op.drop_table('notification')
    op.drop_index(op.f('ix_task_request_status'), table_name='task_request')
    op.drop_index(op.f('ix_task_request_requested_by_id'), table_name='task_request')
    op.drop_index(op.f('ix_task_request_task_id'), table_name='task_request')
    op.drop_table('task_request')
    op.drop_index(op.f('ix_task_assigned_to_id'), table_name='task')
    op.drop_index(op.f('ix_task_study_id'), table_name='task')
    op.drop_table('task')
    op.drop_index(op.f('ix_study_project_id'), table_name='study')
    op.drop_table('study')
    op.drop_table('project')
    op.drop_index(op.f('ix_user_account_email'), table_name='user_account')
    op.drop_table('user_account')
