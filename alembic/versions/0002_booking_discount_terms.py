"""coupon terms on booking groups

Revision ID: 0002_booking_discount_terms
Revises: 0001_initial
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = '0002_booking_discount_terms'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column('booking_groups', sa.Column('discount_type', sa.String(length=20), nullable=True))
    op.add_column('booking_groups', sa.Column('discount_value', sa.Numeric(12, 2), nullable=True))
    op.add_column('booking_groups', sa.Column('max_discount', sa.Numeric(12, 2), nullable=True))

    # existing coupon bookings take the coupon's current terms
    op.execute(
        "UPDATE booking_groups SET discount_type = c.discount_type, discount_value = c.discount_value, "
        "max_discount = c.max_discount FROM coupons c WHERE booking_groups.coupon_id = c.id"
    )


def downgrade():
    op.drop_column('booking_groups', 'max_discount')
    op.drop_column('booking_groups', 'discount_value')
    op.drop_column('booking_groups', 'discount_type')
