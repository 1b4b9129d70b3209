"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="customer"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "buses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("bus_number", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("operator_user_id", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_buses_bus_number", "buses", ["bus_number"], unique=True)
    op.create_index("ix_buses_operator_user_id", "buses", ["operator_user_id"])

    op.create_table(
        "seats",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("seat_number", sa.String(length=10), nullable=False),
        sa.Column("deck", sa.String(length=10), nullable=False, server_default="LOWER"),
        sa.Column("seat_class", sa.String(length=20), nullable=False, server_default="LOWER_SEATER"),
        sa.Column("row", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("column", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("bus_id", "seat_number", name="uq_seat_bus_number"),
    )
    op.create_index("ix_seats_bus_id", "seats", ["bus_id"])

    op.create_table(
        "stops",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("stop_index", sa.Integer(), nullable=False),
        sa.Column("arrival_time", sa.String(length=5), nullable=True),
        sa.Column("departure_time", sa.String(length=5), nullable=True),
        sa.Column("lower_seater_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("lower_sleeper_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("upper_sleeper_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.UniqueConstraint("bus_id", "stop_index", name="uq_stop_bus_index"),
    )
    op.create_index("ix_stops_bus_id", "stops", ["bus_id"])

    op.create_table(
        "stop_points",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("stop_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("landmark", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("time", sa.String(length=5), nullable=True),
        sa.Column("point_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("stop_id", "type", "point_order", name="uq_stop_point_order"),
    )
    op.create_index("ix_stop_points_stop_id", "stop_points", ["stop_id"])

    op.create_table(
        "trips",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("trip_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=12), nullable=False, server_default="SCHEDULED"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("bus_id", "trip_date", name="uq_trip_bus_date"),
    )
    op.create_index("ix_trips_bus_id", "trips", ["bus_id"])
    op.create_index("ix_trips_trip_date", "trips", ["trip_date"])

    op.create_table(
        "holidays",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("bus_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("created_by", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("bus_id", "date", name="uq_holiday_bus_date"),
    )
    op.create_index("ix_holidays_bus_id", "holidays", ["bus_id"])
    op.create_index("ix_holidays_date", "holidays", ["date"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("code", sa.String(length=40), nullable=False),
        sa.Column("description", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("discount_type", sa.String(length=20), nullable=False),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_discount", sa.Numeric(12, 2), nullable=True),
        sa.Column("min_booking_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("applicable_bus_ids_csv", sa.String(length=2000), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "booking_groups",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_ref", sa.String(length=20), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("trip_id", sa.String(length=36), nullable=False),
        sa.Column("from_stop_id", sa.String(length=36), nullable=False),
        sa.Column("to_stop_id", sa.String(length=36), nullable=False),
        sa.Column("boarding_point_id", sa.String(length=36), nullable=False),
        sa.Column("dropping_point_id", sa.String(length=36), nullable=False),
        sa.Column("coupon_id", sa.String(length=36), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="NPR"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="PENDING_PAYMENT"),
        sa.Column("hold_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(length=200), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_booking_groups_booking_ref", "booking_groups", ["booking_ref"], unique=True)
    op.create_index("ix_booking_groups_user_id", "booking_groups", ["user_id"])
    op.create_index("ix_booking_groups_trip_id", "booking_groups", ["trip_id"])
    op.create_index("ix_booking_groups_coupon_id", "booking_groups", ["coupon_id"])
    op.create_index("ix_booking_groups_status", "booking_groups", ["status"])
    op.create_index("ix_booking_groups_hold_expires_at", "booking_groups", ["hold_expires_at"])

    op.create_table(
        "seat_reservations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("trip_id", sa.String(length=36), nullable=False),
        sa.Column("seat_id", sa.String(length=36), nullable=False),
        sa.Column("booking_group_id", sa.String(length=36), nullable=False),
        sa.Column("seat_class", sa.String(length=20), nullable=False),
        sa.Column("fare", sa.Numeric(12, 2), nullable=False),
        sa.Column("hold_slot", sa.Integer(), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        # NULL hold_slot rows (released claims) never collide
        sa.UniqueConstraint("trip_id", "seat_id", "hold_slot", name="uq_seat_reservation_live"),
    )
    op.create_index("ix_seat_reservations_trip_id", "seat_reservations", ["trip_id"])
    op.create_index("ix_seat_reservations_seat_id", "seat_reservations", ["seat_id"])
    op.create_index("ix_seat_reservations_booking_group_id", "seat_reservations", ["booking_group_id"])

    op.create_table(
        "passengers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_group_id", sa.String(length=36), nullable=False),
        sa.Column("seat_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("gender", sa.String(length=10), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=320), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_passengers_booking_group_id", "passengers", ["booking_group_id"])
    op.create_index("ix_passengers_seat_id", "passengers", ["seat_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_group_id", sa.String(length=36), nullable=False),
        sa.Column("live_booking_group_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("method", sa.String(length=20), nullable=False),
        sa.Column("base_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("base_currency", sa.String(length=3), nullable=False, server_default="NPR"),
        sa.Column("charged_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("charged_currency", sa.String(length=3), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(12, 6), nullable=True),
        sa.Column("gateway_order_id", sa.String(length=120), nullable=True),
        sa.Column("gateway_payment_id", sa.String(length=120), nullable=True),
        sa.Column("gateway_signature", sa.String(length=512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="INITIATED"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("live_booking_group_id", name="uq_payments_live_booking_group_id"),
    )
    op.create_index("ix_payments_booking_group_id", "payments", ["booking_group_id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_gateway_order_id", "payments", ["gateway_order_id"])
    op.create_index("ix_payments_status", "payments", ["status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_user_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("payments")
    op.drop_table("passengers")
    op.drop_table("seat_reservations")
    op.drop_table("booking_groups")
    op.drop_table("coupons")
    op.drop_table("holidays")
    op.drop_table("trips")
    op.drop_table("stop_points")
    op.drop_table("stops")
    op.drop_table("seats")
    op.drop_table("buses")
    op.drop_table("users")
