"""create rental tables

Revision ID: 0001
Revises:
Create Date: 2025-11-03 12:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("plate_number", sa.String(20), nullable=False, unique=True),
        sa.Column("brand", sa.String(255), nullable=False),
        sa.Column("model", sa.String(255), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("base_rate_per_day", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
    )

    op.create_table(
        "renters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("whatsapp", sa.String(20), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_blacklisted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "rentals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("renter_id", sa.Integer(), sa.ForeignKey("renters.id"), nullable=False),
        sa.Column("admin_id", sa.Integer(), sa.ForeignKey("admins.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("collateral", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("agreed_return_at", sa.DateTime(), nullable=False),
        sa.Column("duration_value", sa.Integer(), nullable=False),
        sa.Column("duration_unit", sa.String(20), nullable=False, server_default="day"),
        sa.Column("base_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("adjustments", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_overdue", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("overdue_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_overdue_calc", sa.DateTime(), nullable=True),
        sa.Column("extended_hours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_rentals_vehicle_id", "rentals", ["vehicle_id"])
    op.create_index("ix_rentals_renter_id", "rentals", ["renter_id"])
    op.create_index("ix_rentals_admin_id", "rentals", ["admin_id"])
    op.create_index(
        "ix_rentals_status_agreed_return", "rentals", ["status", "agreed_return_at"]
    )

    op.create_table(
        "histories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("rental_id", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=False),
        sa.Column("completion_status", sa.String(20), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("fine", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lateness_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completion_notes", sa.String(500), nullable=True),
        sa.Column("vehicle_plate", sa.String(20), nullable=False),
        sa.Column("vehicle_brand", sa.String(255), nullable=False),
        sa.Column("vehicle_model", sa.String(255), nullable=False),
        sa.Column("vehicle_year", sa.Integer(), nullable=False),
        sa.Column("renter_name", sa.String(255), nullable=False),
        sa.Column("renter_whatsapp", sa.String(20), nullable=False),
        sa.Column("admin_name", sa.String(255), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("agreed_return_at", sa.DateTime(), nullable=False),
        sa.Column("duration_value", sa.Integer(), nullable=False),
        sa.Column("duration_unit", sa.String(20), nullable=False),
        sa.Column("collateral", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("adjustments", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_histories_rental_id", "histories", ["rental_id"])
    op.create_index("ix_histories_completed_at", "histories", ["completed_at"])
    op.create_index("ix_histories_vehicle_plate", "histories", ["vehicle_plate"])
    op.create_index("ix_histories_renter_name", "histories", ["renter_name"])


def downgrade() -> None:
    op.drop_table("histories")
    op.drop_index("ix_rentals_status_agreed_return", table_name="rentals")
    op.drop_table("rentals")
    op.drop_table("renters")
    op.drop_table("vehicles")
    op.drop_table("admins")
