"""Initial schema: companies, users, shipments and the shipment ledger

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)


def _updated_at():
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)


def upgrade():
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("nif", sa.String(64), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.create_index("ix_companies_slug", ["slug"], unique=True)

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("nif", sa.String(64), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(120), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("clients", schema=None) as batch_op:
        batch_op.create_index("ix_clients_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_clients_company_name", ["company_id", "name"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("verification_code", sa.String(6), nullable=True),
        sa.Column("code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        _created_at(),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_email", ["email"], unique=True)
        batch_op.create_index("ix_users_company_id", ["company_id"], unique=False)

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("refresh_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_refresh_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_refresh_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_refresh_tokens_user_revoked", ["user_id", "revoked_at"], unique=False)

    op.create_table(
        "shipments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("tracking_number", sa.String(32), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("client_nif", sa.String(64), nullable=True),
        sa.Column("client_phone", sa.String(64), nullable=True),
        sa.Column("client_address", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("hs_code", sa.String(16), nullable=True),
        sa.Column("packaging", sa.String(64), nullable=True),
        sa.Column("package_count", sa.Integer(), nullable=True),
        sa.Column("gross_weight", sa.Float(), nullable=True),
        sa.Column("net_weight", sa.Float(), nullable=True),
        sa.Column("cif_value", sa.Numeric(16, 2), nullable=True),
        sa.Column("cif_currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("exchange_rate", sa.Numeric(16, 4), nullable=True),
        sa.Column("cif_value_gnf", sa.BigInteger(), nullable=True),
        sa.Column("fob_value", sa.Numeric(16, 2), nullable=True),
        sa.Column("freight_value", sa.Numeric(16, 2), nullable=True),
        sa.Column("insurance_value", sa.Numeric(16, 2), nullable=True),
        sa.Column("bl_number", sa.String(64), nullable=True),
        sa.Column("vessel_name", sa.String(120), nullable=True),
        sa.Column("voyage_number", sa.String(64), nullable=True),
        sa.Column("port_of_loading", sa.String(120), nullable=True),
        sa.Column("port_of_discharge", sa.String(120), nullable=False, server_default="CONAKRY"),
        sa.Column("eta", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ata", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manifest_number", sa.String(64), nullable=True),
        sa.Column("manifest_year", sa.Integer(), nullable=True),
        sa.Column("supplier_name", sa.String(255), nullable=True),
        sa.Column("supplier_country", sa.String(120), nullable=True),
        sa.Column("customs_regime", sa.String(8), nullable=True),
        sa.Column("customs_office", sa.String(32), nullable=True),
        sa.Column("customs_office_name", sa.String(120), nullable=True),
        sa.Column("declarant_code", sa.String(32), nullable=True),
        sa.Column("declarant_name", sa.String(120), nullable=True),
        sa.Column("circuit", sa.String(8), nullable=True),
        sa.Column("ddi_number", sa.String(64), nullable=True),
        sa.Column("declaration_number", sa.String(64), nullable=True),
        sa.Column("liquidation_number", sa.String(64), nullable=True),
        sa.Column("quittance_number", sa.String(64), nullable=True),
        sa.Column("bae_number", sa.String(64), nullable=True),
        sa.Column("do_number", sa.String(64), nullable=True),
        sa.Column("bs_number", sa.String(64), nullable=True),
        sa.Column("duty_dd", sa.BigInteger(), nullable=True),
        sa.Column("duty_rtl", sa.BigInteger(), nullable=True),
        sa.Column("duty_tva", sa.BigInteger(), nullable=True),
        sa.Column("duty_pc", sa.BigInteger(), nullable=True),
        sa.Column("duty_ca", sa.BigInteger(), nullable=True),
        sa.Column("duty_bfu", sa.BigInteger(), nullable=True),
        sa.Column("total_duties", sa.BigInteger(), nullable=True),
        sa.Column("delivery_place", sa.String(255), nullable=True),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_driver", sa.String(120), nullable=True),
        sa.Column("delivery_phone", sa.String(64), nullable=True),
        sa.Column("delivery_truck", sa.String(64), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="PENDING"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("ledger_updated_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shipments", schema=None) as batch_op:
        batch_op.create_index("ix_shipments_tracking_number", ["tracking_number"], unique=True)
        batch_op.create_index("ix_shipments_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_shipments_client_id", ["client_id"], unique=False)
        batch_op.create_index("ix_shipments_bl_number", ["bl_number"], unique=False)
        batch_op.create_index("ix_shipments_company_status", ["company_id", "status"], unique=False)
        batch_op.create_index("ix_shipments_company_created", ["company_id", "created_at"], unique=False)

    op.create_table(
        "containers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shipment_id", sa.Integer(), nullable=False),
        sa.Column("number", sa.String(32), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="DRY_40HC"),
        sa.Column("seal_number", sa.String(64), nullable=True),
        sa.Column("gross_weight", sa.Float(), nullable=True),
        sa.Column("package_count", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(["shipment_id"], ["shipments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("containers", schema=None) as batch_op:
        batch_op.create_index("ix_containers_shipment_id", ["shipment_id"], unique=False)

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shipment_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(24), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.String(1024), nullable=False),
        sa.Column("reference", sa.String(120), nullable=True),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["shipment_id"], ["shipments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("documents", schema=None) as batch_op:
        batch_op.create_index("ix_documents_shipment_id", ["shipment_id"], unique=False)

    op.create_table(
        "timeline_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shipment_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shipment_id"], ["shipments.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("timeline_events", schema=None) as batch_op:
        batch_op.create_index("ix_timeline_events_shipment_id", ["shipment_id"], unique=False)
        batch_op.create_index("ix_timeline_events_shipment_occurred", ["shipment_id", "occurred_at"], unique=False)

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shipment_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("category", sa.String(24), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("unit_price", sa.BigInteger(), nullable=True),
        sa.Column("reference", sa.String(120), nullable=True),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint("amount >= 0", name="ck_expenses_amount_nonnegative"),
        sa.ForeignKeyConstraint(["shipment_id"], ["shipments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("expenses", schema=None) as batch_op:
        batch_op.create_index("ix_expenses_shipment_id", ["shipment_id"], unique=False)
        batch_op.create_index("ix_expenses_shipment_type_paid", ["shipment_id", "type", "paid"], unique=False)


def downgrade():
    op.drop_table("expenses")
    op.drop_table("timeline_events")
    op.drop_table("documents")
    op.drop_table("containers")
    op.drop_table("shipments")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
    op.drop_table("clients")
    op.drop_table("companies")
