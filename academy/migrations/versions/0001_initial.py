"""users, refresh tokens, courses, enrollments

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('phone_number', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('hashed_password', sa.String(length=255), nullable=True),
        sa.Column('auth_provider', sa.String(length=16), nullable=False, server_default='password'),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('token_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('token_id', name='uq_refresh_tokens_token_id'),
        sa.UniqueConstraint('token_hash', name='uq_refresh_tokens_token_hash'),
    )
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'], unique=False)
    op.create_index('ix_refresh_tokens_expires_at', 'refresh_tokens', ['expires_at'], unique=False)

    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(length=1024), nullable=False, server_default=''),
        sa.Column('duration', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('level', sa.String(length=32), nullable=False, server_default='All Levels'),
        sa.Column('meet_link', sa.String(length=1024), nullable=True),
        sa.Column('instructor_name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('instructor_avatar', sa.String(length=1024), nullable=False, server_default=''),
        sa.Column('lessons', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('enrollment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_courses_name', 'courses', ['name'], unique=False)
    op.create_index('ix_courses_level', 'courses', ['level'], unique=False)
    op.create_index('ix_courses_enrollment_count', 'courses', ['enrollment_count'], unique=False)

    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(length=32), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=False),
        sa.Column('user_email', sa.String(length=320), nullable=False),
        sa.Column('user_phone', sa.String(length=32), nullable=False),
        sa.Column('course_name', sa.String(length=255), nullable=False),
        sa.Column('course_price', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=128), nullable=True),
        sa.Column('payment_id', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('failure_reason', sa.String(length=512), nullable=True),
        sa.Column('invoice_path', sa.String(length=512), nullable=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_enrollments_user_id', 'enrollments', ['user_id'], unique=False)
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'], unique=False)
    op.create_index('ix_enrollments_order_id', 'enrollments', ['order_id'], unique=False)
    op.create_index('ix_enrollments_payment_status', 'enrollments', ['payment_status'], unique=False)
    op.create_index('ix_enrollments_enrolled_at', 'enrollments', ['enrolled_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_enrollments_enrolled_at', table_name='enrollments')
    op.drop_index('ix_enrollments_payment_status', table_name='enrollments')
    op.drop_index('ix_enrollments_order_id', table_name='enrollments')
    op.drop_index('ix_enrollments_course_id', table_name='enrollments')
    op.drop_index('ix_enrollments_user_id', table_name='enrollments')
    op.drop_table('enrollments')

    op.drop_index('ix_courses_enrollment_count', table_name='courses')
    op.drop_index('ix_courses_level', table_name='courses')
    op.drop_index('ix_courses_name', table_name='courses')
    op.drop_table('courses')

    op.drop_index('ix_refresh_tokens_expires_at', table_name='refresh_tokens')
    op.drop_index('ix_refresh_tokens_user_id', table_name='refresh_tokens')
    op.drop_table('refresh_tokens')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
