"""initial agrotech schema

Revision ID: 20261018_01
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

revision: str = '20261018_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('username', sa.String()),
        sa.Column('full_name', sa.String()),
        sa.Column('phone', sa.String()),
        sa.Column('address', sa.String()),
        sa.Column('occupation', sa.String()),
        sa.Column('education', sa.String()),
        sa.Column('birth_date', sa.Date()),
        sa.Column('first_access', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_table(
        'access_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('link_code', sa.String(), nullable=False, unique=True),
        sa.Column('uses_remaining', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('email', sa.String()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_table(
        'invite_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(), nullable=False, unique=True),
        sa.Column('email', sa.String()),
        sa.Column('used_at', sa.DateTime(timezone=True)),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_table(
        'soil_analysis',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_email', sa.String(), nullable=False),
        sa.Column('field_name', sa.String(), nullable=False),
        sa.Column('crop_type', sa.String(), nullable=False),
        sa.Column('ph', sa.Float()),
        sa.Column('nitrogen', sa.Float()),
        sa.Column('phosphorus', sa.Float()),
        sa.Column('potassium', sa.Float()),
        sa.Column('moisture', sa.Float()),
        sa.Column('organic_matter', sa.Float()),
        sa.Column('producer_name', sa.String()),
        sa.Column('producer_contact', sa.String()),
        sa.Column('producer_address', sa.String()),
        sa.Column('property_name', sa.String()),
        sa.Column('city', sa.String()),
        sa.Column('crop_age', sa.String()),
        sa.Column('production_type', sa.String()),
        sa.Column('spacing', sa.String()),
        sa.Column('area', sa.String()),
        sa.Column('sample_depth', sa.String()),
        sa.Column('collected_by', sa.String()),
        sa.Column('moon_phase', sa.String()),
        sa.Column('relative_humidity', sa.Float()),
        sa.Column('precipitation', sa.Float()),
        sa.Column('notes', sa.Text()),
        sa.Column('soil_analysis_pdf', sa.String()),
        sa.Column('attachments', sa.JSON()),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('admin_comments', sa.Text()),
        sa.Column('admin_file_urls', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name='ck_soil_analysis_status'
        ),
    )
    op.create_index('ix_soil_analysis_user_email', 'soil_analysis', ['user_email'])
    op.create_table(
        'logins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('client_name', sa.String()),
        sa.Column('email', sa.String()),
        sa.Column('plan', sa.String()),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint("status IN ('active', 'inactive')", name='ck_logins_status'),
    )
    op.create_index('ix_logins_email', 'logins', ['email'])
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.UUID(), primary_key=True),
        sa.Column('actor_email', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_type', sa.String()),
        sa.Column('target_id', sa.String()),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_index('ix_logins_email', table_name='logins')
    op.drop_table('logins')
    op.drop_index('ix_soil_analysis_user_email', table_name='soil_analysis')
    op.drop_table('soil_analysis')
    op.drop_table('invite_links')
    op.drop_table('access_links')
    op.drop_table('users')
