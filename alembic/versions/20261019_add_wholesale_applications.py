"""Add wholesale applications

Revision ID: 20261019_wholesale_applications
Revises: 20261019_storefront_schema
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_wholesale_applications'
down_revision = '20261019_storefront_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'wholesale_applications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('company_name', sa.String(200), nullable=False),
        sa.Column('tax_id', sa.String(50), nullable=False),
        sa.Column('business_type', sa.String(100), nullable=False),
        sa.Column('address', sa.JSON, nullable=False),
        sa.Column('phone', sa.String(30), nullable=False),
        sa.Column('website', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text, nullable=True, comment='From the applicant'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, APPROVED, REJECTED'),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewer_notes', sa.Text, nullable=True, comment='Rejection reason or approval note'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_wholesale_applications_user_id', 'wholesale_applications', ['user_id'])
    op.create_index('ix_wholesale_applications_status', 'wholesale_applications', ['status'])


def downgrade() -> None:
    op.drop_index('ix_wholesale_applications_status', table_name='wholesale_applications')
    op.drop_index('ix_wholesale_applications_user_id', table_name='wholesale_applications')
    op.drop_table('wholesale_applications')
