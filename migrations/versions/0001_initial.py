"""Initial schema: users, admins, bookings, payments, admin configuration"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("is_driver", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("driver_status", sa.String(20), nullable=True),
        sa.Column("vehicle_info", sa.JSON, nullable=True),
        sa.Column("total_trips", sa.Integer, nullable=False, server_default="0"),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("login_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("idx_users_email", "users", ["email"])
    op.create_index("idx_users_is_driver", "users", ["is_driver"])

    op.create_table(
        "admin_users",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(30), nullable=False, server_default="CUSTOMER_SERVICE"),
        sa.Column("permissions", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("admin_id", sa.String, sa.ForeignKey("admin_users.id"), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource", sa.String(100), nullable=False),
        sa.Column("resource_id", sa.String, nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_audit_logs_admin", "audit_logs", ["admin_id"])
    op.create_index("idx_audit_logs_resource", "audit_logs", ["resource"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("reference", sa.String(20), unique=True, nullable=False),
        sa.Column("user_id", sa.String, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("driver_id", sa.String, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("service_type", sa.String(20), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("return_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_hours", sa.Float, nullable=True),
        sa.Column("pickup_address", sa.String(500), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_address", sa.String(500), nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=True),
        sa.Column("dropoff_lng", sa.Float, nullable=True),
        sa.Column("base_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("surcharge_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("enhancement_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("gratuity_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("contact_phone", sa.String(20), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_bookings_user", "bookings", ["user_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_scheduled", "bookings", ["scheduled_at"])
    op.create_index("idx_bookings_created", "bookings", ["created_at"])

    op.create_table(
        "trip_enhancements",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("booking_id", sa.String, sa.ForeignKey("bookings.id"), unique=True, nullable=False),
        sa.Column("selections", sa.JSON, nullable=False),
        sa.Column("breakdown", sa.JSON, nullable=False),
        sa.Column("total_cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("booking_id", sa.String, sa.ForeignKey("bookings.id"), unique=True, nullable=False),
        sa.Column("user_id", sa.String, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(5), server_default="usd"),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("payment_method_id", sa.String(255), nullable=True),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        sa.Column("refund_id", sa.String(255), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("idempotency_key", sa.String(255), unique=True, nullable=True),
        sa.Column("reconciled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("reconciled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reconciled_by", sa.String, sa.ForeignKey("admin_users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_payments_user", "payments", ["user_id"])
    op.create_index("idx_payments_status", "payments", ["status"])
    op.create_index("idx_payments_intent", "payments", ["stripe_payment_intent_id"])

    op.create_table(
        "service_areas",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("polygon", sa.JSON, nullable=True),
        sa.Column("center", sa.JSON, nullable=True),
        sa.Column("radius_km", sa.Float, nullable=True),
        sa.Column("surcharge_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("surcharge_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("restrictions", sa.JSON, nullable=False),
        sa.Column("created_by", sa.String, sa.ForeignKey("admin_users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_service_areas_active", "service_areas", ["is_active"])

    op.create_table(
        "integrations",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("environment", sa.String(20), nullable=False, server_default="sandbox"),
        sa.Column("encrypted_config", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("last_tested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_test_status", sa.String(20), nullable=True),
        sa.Column("created_by", sa.String, sa.ForeignKey("admin_users.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_integrations_provider", "integrations", ["provider"])

    op.create_table(
        "policies",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("key", sa.String(100), unique=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("version", sa.String(20), nullable=False, server_default="1.0.0"),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("requires_acceptance", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String, sa.ForeignKey("admin_users.id"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "policy_versions",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("policy_id", sa.String, sa.ForeignKey("policies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version", sa.String(20), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("change_summary", sa.String(500), nullable=True),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String, sa.ForeignKey("admin_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("policy_id", "version", name="uq_policy_version"),
    )
    op.create_index("idx_policy_versions_policy", "policy_versions", ["policy_id"])

    op.create_table(
        "business_hours",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("day_of_week", sa.Integer, unique=True, nullable=False),
        sa.Column("open_time", sa.String(5), nullable=False, server_default="00:00"),
        sa.Column("close_time", sa.String(5), nullable=False, server_default="23:59"),
        sa.Column("is_closed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="America/Los_Angeles"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("date", sa.Date, unique=True, nullable=False),
        sa.Column("is_closed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("open_time", sa.String(5), nullable=True),
        sa.Column("close_time", sa.String(5), nullable=True),
        sa.Column("surcharge_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("created_by", sa.String, sa.ForeignKey("admin_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    for table in (
        "holidays", "business_hours", "policy_versions", "policies", "integrations",
        "service_areas", "payments", "trip_enhancements", "bookings", "audit_logs",
        "admin_users", "users",
    ):
        op.drop_table(table)
