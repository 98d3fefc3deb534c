"""courses, contexts, users, syllabi and stored files

Revision ID: 20261018_0001
Revises: 
Create Date: 2026-10-18 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('short_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('max_bytes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_courses_id', 'courses', ['id'])
    op.create_index('ix_courses_short_name', 'courses', ['short_name'])
    op.create_index('ix_courses_created_at', 'courses', ['created_at'])

    op.create_table(
        'access_contexts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('level', sa.String(length=20), nullable=False),
        sa.Column('instance_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('level', 'instance_id', name='uq_access_contexts_level_instance'),
    )
    op.create_index('ix_access_contexts_id', 'access_contexts', ['id'])
    op.create_index('ix_access_contexts_level', 'access_contexts', ['level'])
    op.create_index('ix_access_contexts_instance_id', 'access_contexts', ['instance_id'])

    op.create_table(
        'auth_users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_auth_users_id', 'auth_users', ['id'])
    op.create_index('ix_auth_users_email', 'auth_users', ['email'], unique=True)
    op.create_index('ix_auth_users_role', 'auth_users', ['role'])

    op.create_table(
        'course_enrollments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('auth_users.id'), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('course_id', 'user_id', name='uq_course_enrollments_course_user'),
    )
    op.create_index('ix_course_enrollments_id', 'course_enrollments', ['id'])
    op.create_index('ix_course_enrollments_course_id', 'course_enrollments', ['course_id'])
    op.create_index('ix_course_enrollments_user_id', 'course_enrollments', ['user_id'])
    op.create_index('ix_course_enrollments_role', 'course_enrollments', ['role'])
    op.create_index('ix_course_enrollments_active', 'course_enrollments', ['active'])

    op.create_table(
        'syllabi',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('access_type', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_preview', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_syllabi_id', 'syllabi', ['id'])
    op.create_index('ix_syllabi_course_id', 'syllabi', ['course_id'])
    op.create_index('ix_syllabi_access_type', 'syllabi', ['access_type'])
    op.create_index('ix_syllabi_created_at', 'syllabi', ['created_at'])
    op.create_index('ix_syllabi_updated_at', 'syllabi', ['updated_at'])
    op.create_index('ix_syllabi_course_access_type', 'syllabi', ['course_id', 'access_type'])

    op.create_table(
        'stored_files',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('context_id', sa.Integer(), nullable=False),
        sa.Column('component', sa.String(length=100), nullable=False),
        sa.Column('area', sa.String(length=50), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('filepath', sa.String(length=255), nullable=False, server_default='/'),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('mimetype', sa.String(length=120), nullable=False, server_default='application/octet-stream'),
        sa.Column('filesize', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('content_hash', sa.String(length=64), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            'context_id',
            'component',
            'area',
            'item_id',
            'filepath',
            'filename',
            name='uq_stored_files_path',
        ),
    )
    op.create_index('ix_stored_files_id', 'stored_files', ['id'])
    op.create_index('ix_stored_files_context_id', 'stored_files', ['context_id'])
    op.create_index('ix_stored_files_content_hash', 'stored_files', ['content_hash'])
    op.create_index('ix_stored_files_created_at', 'stored_files', ['created_at'])
    op.create_index('ix_stored_files_area', 'stored_files', ['context_id', 'component', 'area', 'item_id'])


def downgrade() -> None:
    op.drop_table('stored_files')
    op.drop_table('syllabi')
    op.drop_table('course_enrollments')
    op.drop_table('auth_users')
    op.drop_table('access_contexts')
    op.drop_table('courses')
