"""Initial schema for organizations, identity, float workflow and orders.

- organizations, org_settings, org_activities
- users, user_preferences (global), org_memberships, org_invitations
- org_repositories, org_repository_access, org_repository_access_logs
- app_currencies (global), org_currencies, org_denominations
- org_customers, org_identifications, org_addresses
- org_cx_sessions, org_cx_session_users, org_cx_session_access_logs, org_float_stacks
- org_orders, org_breakdowns, org_float_transfers, org_currency_swaps
- org_notes

Also creates:
- set_tenant_id(uuid) to set the app.tenant_id GUC
- find_organization_id(text, text) and list_user_organizations(uuid), which
  read across organizations for webhooks, seeding and the organization switcher
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1d5e7a9b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


TENANT_DEFAULT = sa.text("NULLIF(current_setting('app.tenant_id', true), '')::uuid")
UUID_DEFAULT = sa.text("uuid_generate_v4()")
NOW = sa.text("now()")
JSONB_EMPTY = sa.text("'{}'::jsonb")
AMOUNT = sa.Numeric(28, 10)

TENANT_SCOPED_TABLES = [
    "org_settings",
    "org_activities",
    "org_memberships",
    "org_invitations",
    "org_repositories",
    "org_repository_access",
    "org_currencies",
    "org_denominations",
    "org_customers",
    "org_addresses",
    "org_identifications",
    "org_cx_sessions",
    "org_cx_session_users",
    "org_cx_session_access_logs",
    "org_repository_access_logs",
    "org_float_stacks",
    "org_orders",
    "org_breakdowns",
    "org_float_transfers",
    "org_currency_swaps",
    "org_notes",
]


def _pk() -> sa.Column:
    return sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT)


def _tenant() -> sa.Column:
    return sa.Column("tenant_id", sa.UUID(), nullable=False, server_default=TENANT_DEFAULT)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    ]


def _tenant_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["tenant_id"], ["organizations.id"], ondelete="CASCADE")


def _amount(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, AMOUNT, nullable=True)
    return sa.Column(name, AMOUNT, nullable=False, server_default=sa.text("0"))


def _in_check(column: str, values: Sequence[str], name: str) -> sa.CheckConstraint:
    quoted = ", ".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} IN ({quoted})", name=name)


def _enable_rls_with_policy(table: str) -> None:
    op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;")
    op.execute(
        f"""
        CREATE POLICY {table}_tenant_isolation ON {table}
        USING (tenant_id = NULLIF(current_setting('app.tenant_id', true), '')::uuid)
        WITH CHECK (tenant_id = NULLIF(current_setting('app.tenant_id', true), '')::uuid);
        """
    )


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp";')

    op.execute(
        """
        CREATE OR REPLACE FUNCTION set_tenant_id(p_tenant_id uuid)
        RETURNS void AS $$
        BEGIN
            PERFORM set_config('app.tenant_id', p_tenant_id::text, false);
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    # ORGANIZATIONS
    op.create_table(
        "organizations",
        _pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("external_id", sa.Text(), nullable=True, unique=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "org_settings",
        _pk(),
        _tenant(),
        sa.Column("base_currency", sa.Text(), nullable=False, server_default="CAD"),
        sa.Column("auto_print", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("receipt_header", sa.Text(), nullable=True),
        sa.Column("receipt_footer", sa.Text(), nullable=True),
        sa.Column("receipt_width_mm", sa.Integer(), nullable=False, server_default=sa.text("80")),
        sa.Column("show_logo", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        _tenant_fk(),
        sa.UniqueConstraint("tenant_id", name="uq_org_settings_tenant_id"),
    )

    op.create_table(
        "org_activities",
        _pk(),
        _tenant(),
        sa.Column("event", sa.Text(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("session_id", sa.UUID(), nullable=True),
        sa.Column("reference_id", sa.Text(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=False, server_default=JSONB_EMPTY),
        *_timestamps(),
        _tenant_fk(),
        sa.Index("ix_org_activities_tenant_created_at", "tenant_id", "created_at"),
    )

    # USERS (global)
    op.create_table(
        "users",
        _pk(),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("external_id", sa.Text(), nullable=True, unique=True),
        sa.Column("hashed_password", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "user_preferences",
        _pk(),
        sa.Column("user_id", sa.UUID(), nullable=False, unique=True),
        sa.Column("theme", sa.Text(), nullable=False, server_default="system"),
        sa.Column("language", sa.Text(), nullable=False, server_default="en"),
        sa.Column("timezone", sa.Text(), nullable=False, server_default="UTC"),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        _in_check("theme", ["light", "dark", "system"], "theme"),
    )

    op.create_table(
        "org_memberships",
        _pk(),
        _tenant(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invited_by", sa.UUID(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_org_memberships_tenant_user"),
        _in_check("role", ["owner", "admin", "member"], "role"),
        _in_check("status", ["active", "invited", "suspended", "removed"], "status"),
    )

    op.create_table(
        "org_invitations",
        _pk(),
        _tenant(),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invited_by", sa.UUID(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.Index("ix_org_invitations_tenant_email", "tenant_id", "email"),
        _in_check("role", ["owner", "admin", "member"], "role"),
        _in_check("status", ["pending", "accepted", "declined", "expired", "cancelled"], "status"),
    )

    # REPOSITORIES
    op.create_table(
        "org_repositories",
        _pk(),
        _tenant(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("type_of", sa.Text(), nullable=True),
        sa.Column("currency_type", sa.Text(), nullable=True),
        sa.Column("form", sa.Text(), nullable=True),
        sa.Column("currency_tickers", postgresql.ARRAY(sa.Text()), nullable=False, server_default=sa.text("'{}'::text[]")),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _amount("float_threshold_bottom", nullable=True),
        _amount("float_threshold_top", nullable=True),
        sa.Column("float_count_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        _tenant_fk(),
        sa.UniqueConstraint("tenant_id", "key", name="uq_org_repositories_tenant_key"),
    )

    op.create_table(
        "org_repository_access",
        _pk(),
        _tenant(),
        sa.Column("repository_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["repository_id"], ["org_repositories.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "repository_id", "user_id", name="uq_org_repository_access_tenant_repo_user"),
    )

    # CURRENCIES
    op.create_table(
        "app_currencies",
        _pk(),
        sa.Column("ticker", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("base_rate_ticker", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        _amount("rate"),
        sa.Column("rate_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("network", sa.Text(), nullable=True),
        sa.Column("contract", sa.Text(), nullable=True),
        sa.Column("chain_id", sa.Text(), nullable=True),
        sa.Column("rate_api", sa.Text(), nullable=True),
        sa.Column("rate_api_identifier", sa.Text(), nullable=True),
        sa.Column("icon", sa.Text(), nullable=True),
        *_timestamps(),
        _in_check("type", ["CRYPTOCURRENCY", "FIAT", "METAL"], "type"),
    )

    op.create_table(
        "org_currencies",
        _pk(),
        _tenant(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("ticker", sa.Text(), nullable=False),
        sa.Column("type_of", sa.Text(), nullable=False, server_default="FIAT"),
        _amount("rate"),
        sa.Column("sign", sa.Text(), nullable=True),
        sa.Column("hex_color", sa.Text(), nullable=False, server_default="#D3D3D3"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _amount("buy_margin_min"),
        _amount("buy_margin_max"),
        _amount("buy_margin_target"),
        _amount("sell_margin_min"),
        _amount("sell_margin_max"),
        _amount("sell_margin_target"),
        sa.Column("tradeable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_base_currency", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _amount("we_buy", nullable=True),
        _amount("we_sell", nullable=True),
        _amount("spread", nullable=True),
        _amount("offset", nullable=True),
        sa.Column("rate_decimal_places", sa.Integer(), nullable=False, server_default=sa.text("8")),
        sa.Column("amount_decimal_places", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("rate_api", sa.Text(), nullable=True),
        sa.Column("rate_api_identifier", sa.Text(), nullable=True),
        sa.Column("rate_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("network", sa.Text(), nullable=True),
        sa.Column("chain_id", sa.Text(), nullable=True),
        sa.Column("contract", sa.Text(), nullable=True),
        sa.Column("advertisable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        _tenant_fk(),
        sa.UniqueConstraint("tenant_id", "ticker", name="uq_org_currencies_tenant_ticker"),
        _in_check("type_of", ["CRYPTOCURRENCY", "FIAT", "METAL"], "type_of"),
    )
    # One base currency per organization
    op.create_index(
        "uq_org_currencies_tenant_base",
        "org_currencies",
        ["tenant_id"],
        unique=True,
        postgresql_where=sa.text("is_base_currency"),
    )

    op.create_table(
        "org_denominations",
        _pk(),
        _tenant(),
        sa.Column("org_currency_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("value", AMOUNT, nullable=False),
        sa.Column("accepted", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["org_currency_id"], ["org_currencies.id"], ondelete="CASCADE"),
        sa.Index("ix_org_denominations_org_currency_id", "org_currency_id"),
    )

    # CUSTOMERS
    op.create_table(
        "org_customers",
        _pk(),
        _tenant(),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("middle_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("occupation", sa.Text(), nullable=True),
        sa.Column("employer", sa.Text(), nullable=True),
        sa.Column("telephone", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("blacklisted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("blacklist_reason", sa.Text(), nullable=True),
        sa.Column("risk_score", sa.Integer(), nullable=True),
        sa.Column("duplicate", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("merged_id", sa.UUID(), nullable=True),
        sa.Column("primary_address_id", sa.UUID(), nullable=True),
        sa.Column("primary_identification_id", sa.UUID(), nullable=True),
        sa.Column("last_order_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.Index("ix_org_customers_tenant_last_name", "tenant_id", "last_name"),
    )

    op.create_table(
        "org_addresses",
        _pk(),
        _tenant(),
        sa.Column("parent_type", sa.Text(), nullable=False),
        sa.Column("parent_id", sa.UUID(), nullable=False),
        sa.Column("address_type", sa.Text(), nullable=True),
        sa.Column("line1", sa.Text(), nullable=False),
        sa.Column("line2", sa.Text(), nullable=True),
        sa.Column("line3", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("state_code", sa.Text(), nullable=True),
        sa.Column("state_name", sa.Text(), nullable=True),
        sa.Column("postal_code", sa.Text(), nullable=True),
        sa.Column("country_code", sa.Text(), nullable=True),
        sa.Column("country_name", sa.Text(), nullable=True),
        sa.Column("primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("confidential", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.Index("ix_org_addresses_parent_id", "parent_id"),
        _in_check("parent_type", ["CUSTOMER", "ORGANIZATION", "IDENTIFICATION"], "parent_type"),
    )

    op.create_table(
        "org_identifications",
        _pk(),
        _tenant(),
        sa.Column("customer_id", sa.UUID(), nullable=False),
        sa.Column("address_id", sa.UUID(), nullable=True),
        sa.Column("type_of", sa.Text(), nullable=False),
        sa.Column("reference_number", sa.Text(), nullable=False),
        sa.Column("issuing_country_code", sa.Text(), nullable=True),
        sa.Column("issuing_country_name", sa.Text(), nullable=True),
        sa.Column("issuing_state_code", sa.Text(), nullable=True),
        sa.Column("issuing_state_name", sa.Text(), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("origin_of_funds", sa.Text(), nullable=True),
        sa.Column("purpose_of_funds", sa.Text(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewer_id", sa.UUID(), nullable=True),
        sa.Column("primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["customer_id"], ["org_customers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["address_id"], ["org_addresses.id"], ondelete="SET NULL"),
        sa.Index("ix_org_identifications_customer_id", "customer_id"),
        _in_check("type_of", ["PASSPORT", "DRIVING_LICENSE", "NATIONAL_ID", "RESIDENCY_CARD"], "type_of"),
    )

    # CX SESSIONS
    op.create_table(
        "org_cx_sessions",
        _pk(),
        _tenant(),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="DORMANT"),
        sa.Column("open_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("open_start_user_id", sa.UUID(), nullable=True),
        sa.Column("open_confirm_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("open_confirm_user_id", sa.UUID(), nullable=True),
        sa.Column("close_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_start_user_id", sa.UUID(), nullable=True),
        sa.Column("close_confirm_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_confirm_user_id", sa.UUID(), nullable=True),
        sa.Column("verified_by_user_id", sa.UUID(), nullable=True),
        sa.Column("active_user_id", sa.UUID(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.Index("ix_org_cx_sessions_status", "status"),
        _in_check(
            "status",
            [
                "DORMANT",
                "FLOAT_OPEN_START",
                "FLOAT_OPEN_COMPLETE",
                "FLOAT_CLOSE_START",
                "FLOAT_CLOSE_COMPLETE",
                "CLOSED",
                "CANCELLED",
            ],
            "status",
        ),
    )

    op.create_table(
        "org_cx_session_users",
        _pk(),
        _tenant(),
        sa.Column("session_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("session_id", "user_id", name="uq_org_cx_session_users_session_user"),
        sa.Index("ix_org_cx_session_users_session_id", "session_id"),
    )

    op.create_table(
        "org_cx_session_access_logs",
        _pk(),
        _tenant(),
        sa.Column("session_id", sa.UUID(), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_owner_id", sa.UUID(), nullable=True),
        sa.Column("user_join_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_join_id", sa.UUID(), nullable=True),
        sa.Column(
            "authorized_user_ids",
            postgresql.ARRAY(sa.UUID()),
            nullable=False,
            server_default=sa.text("'{}'::uuid[]"),
        ),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
        sa.Index("ix_org_cx_session_access_logs_session_id", "session_id"),
    )

    op.create_table(
        "org_repository_access_logs",
        _pk(),
        _tenant(),
        sa.Column("session_id", sa.UUID(), nullable=False),
        sa.Column("repository_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("open_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("open_confirm_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_confirm_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("release_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["repository_id"], ["org_repositories.id"], ondelete="CASCADE"),
        sa.Index("ix_org_repository_access_logs_session_id", "session_id"),
    )

    op.create_table(
        "org_float_stacks",
        _pk(),
        _tenant(),
        sa.Column("session_id", sa.UUID(), nullable=False),
        sa.Column("repository_id", sa.UUID(), nullable=False),
        sa.Column("denomination_id", sa.UUID(), nullable=False),
        sa.Column("ticker", sa.Text(), nullable=False),
        _amount("open_count"),
        _amount("close_count"),
        _amount("midday_count"),
        _amount("last_session_count"),
        sa.Column("open_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        _amount("spent_during_session"),
        _amount("transferred_during_session"),
        _amount("denominated_value"),
        _amount("average_spot"),
        _amount("open_spot"),
        _amount("close_spot"),
        sa.Column("previous_session_float_stack_id", sa.UUID(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["repository_id"], ["org_repositories.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["denomination_id"], ["org_denominations.id"], ondelete="CASCADE"),
        sa.Index("ix_org_float_stacks_session_id", "session_id"),
        sa.Index("ix_org_float_stacks_repository_id", "repository_id"),
        sa.Index("ix_org_float_stacks_repo_denomination", "repository_id", "denomination_id"),
    )

    # ORDERS
    op.create_table(
        "org_orders",
        _pk(),
        _tenant(),
        sa.Column("inbound_sum", AMOUNT, nullable=False),
        sa.Column("inbound_ticker", sa.Text(), nullable=False),
        sa.Column("inbound_type", sa.Text(), nullable=False),
        sa.Column("outbound_sum", AMOUNT, nullable=False),
        sa.Column("outbound_ticker", sa.Text(), nullable=False),
        sa.Column("outbound_type", sa.Text(), nullable=False),
        _amount("fx_rate"),
        _amount("rate_wo_fees"),
        _amount("final_rate"),
        _amount("final_rate_without_fees"),
        _amount("margin"),
        _amount("fee"),
        _amount("network_fee"),
        sa.Column("status", sa.Text(), nullable=False, server_default="QUOTE"),
        sa.Column("session_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("customer_id", sa.UUID(), nullable=True),
        sa.Column("inbound_repository_id", sa.UUID(), nullable=True),
        sa.Column("outbound_repository_id", sa.UUID(), nullable=True),
        sa.Column("open_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("quote_source", sa.Text(), nullable=True),
        sa.Column("batched_status", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["org_customers.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["inbound_repository_id"], ["org_repositories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["outbound_repository_id"], ["org_repositories.id"], ondelete="SET NULL"),
        sa.Index("ix_org_orders_status", "status"),
        sa.Index("ix_org_orders_session_id", "session_id"),
        sa.Index("ix_org_orders_customer_id", "customer_id"),
        _in_check(
            "status",
            ["QUOTE", "ACCEPTED", "CONFIRMED", "COMPLETED", "CANCELLED", "SCHEDULED", "BLOCKED"],
            "status",
        ),
    )

    op.create_table(
        "org_breakdowns",
        _pk(),
        _tenant(),
        sa.Column("breakable_type", sa.Text(), nullable=False),
        sa.Column("breakable_id", sa.UUID(), nullable=False),
        sa.Column("denomination_id", sa.UUID(), nullable=False),
        sa.Column("float_stack_id", sa.UUID(), nullable=True),
        sa.Column("count", AMOUNT, nullable=False),
        sa.Column("direction", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="CREATED"),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["denomination_id"], ["org_denominations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["float_stack_id"], ["org_float_stacks.id"], ondelete="SET NULL"),
        sa.Index("ix_org_breakdowns_breakable_id", "breakable_id"),
        _in_check("breakable_type", ["ORDER", "FLOAT_TRANSFER", "CURRENCY_SWAP"], "breakable_type"),
        _in_check("direction", ["INBOUND", "OUTBOUND"], "direction"),
        _in_check("status", ["CREATED", "COMMITTED"], "status"),
    )

    for table in ("org_float_transfers", "org_currency_swaps"):
        extra = []
        if table == "org_currency_swaps":
            extra = [
                sa.Column("currency_id", sa.UUID(), nullable=False),
                _amount("swap_value"),
                sa.ForeignKeyConstraint(["currency_id"], ["org_currencies.id"], ondelete="CASCADE"),
            ]
        op.create_table(
            table,
            _pk(),
            _tenant(),
            sa.Column("session_id", sa.UUID(), nullable=False),
            sa.Column("user_id", sa.UUID(), nullable=True),
            sa.Column("inbound_repository_id", sa.UUID(), nullable=False),
            sa.Column("outbound_repository_id", sa.UUID(), nullable=False),
            sa.Column("inbound_ticker", sa.Text(), nullable=False),
            sa.Column("outbound_ticker", sa.Text(), nullable=False),
            sa.Column("inbound_sum", AMOUNT, nullable=False),
            sa.Column("outbound_sum", AMOUNT, nullable=False),
            sa.Column("status", sa.Text(), nullable=False, server_default="COMPLETED"),
            sa.Column("notes", sa.Text(), nullable=True),
            *extra,
            *_timestamps(),
            _tenant_fk(),
            sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["inbound_repository_id"], ["org_repositories.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["outbound_repository_id"], ["org_repositories.id"], ondelete="CASCADE"),
            sa.Index(f"ix_{table}_session_id", "session_id"),
        )

    # NOTES
    op.create_table(
        "org_notes",
        _pk(),
        _tenant(),
        sa.Column("note_type", sa.Text(), nullable=False),
        sa.Column("order_id", sa.UUID(), nullable=True),
        sa.Column("customer_id", sa.UUID(), nullable=True),
        sa.Column("session_id", sa.UUID(), nullable=True),
        sa.Column("reference_id", sa.UUID(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("resolvable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by_id", sa.UUID(), nullable=True),
        sa.Column("user_id", sa.UUID(), nullable=True),
        *_timestamps(),
        _tenant_fk(),
        sa.ForeignKeyConstraint(["order_id"], ["org_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["org_customers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["session_id"], ["org_cx_sessions.id"], ondelete="CASCADE"),
        sa.Index("ix_org_notes_order_id", "order_id"),
        sa.Index("ix_org_notes_customer_id", "customer_id"),
        sa.Index("ix_org_notes_session_id", "session_id"),
        _in_check("note_type", ["ORDER", "CUSTOMER", "SESSION", "EXPENSE", "TRANSFER", "SWAP"], "note_type"),
    )

    # Enable RLS and add policies
    op.execute("ALTER TABLE organizations ENABLE ROW LEVEL SECURITY;")
    op.execute(
        """
        CREATE POLICY organization_row_access ON organizations
        USING (id = NULLIF(current_setting('app.tenant_id', true), '')::uuid)
        WITH CHECK (id = NULLIF(current_setting('app.tenant_id', true), '')::uuid);
        """
    )
    for tbl in TENANT_SCOPED_TABLES:
        _enable_rls_with_policy(tbl)

    # Cross-organization lookups (run with the owner's rights)
    op.execute(
        """
        CREATE OR REPLACE FUNCTION find_organization_id(p_slug text, p_external_id text)
        RETURNS uuid
        LANGUAGE sql STABLE SECURITY DEFINER AS $$
            SELECT id FROM organizations
            WHERE (p_external_id IS NOT NULL AND external_id = p_external_id)
               OR (p_slug IS NOT NULL AND slug = p_slug)
            ORDER BY (external_id = p_external_id) DESC NULLS LAST
            LIMIT 1;
        $$;
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION list_user_organizations(p_user_id uuid)
        RETURNS TABLE (
            organization_id uuid,
            name text,
            slug text,
            image_url text,
            role text,
            status text
        )
        LANGUAGE sql STABLE SECURITY DEFINER AS $$
            SELECT o.id, o.name, o.slug, o.image_url, m.role, m.status
            FROM org_memberships m
            JOIN organizations o ON o.id = m.tenant_id
            WHERE m.user_id = p_user_id AND m.status = 'active'
            ORDER BY o.name;
        $$;
        """
    )


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS list_user_organizations(uuid);")
    op.execute("DROP FUNCTION IF EXISTS find_organization_id(text, text);")

    for tbl in TENANT_SCOPED_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {tbl}_tenant_isolation ON {tbl};")
        op.execute(f"ALTER TABLE {tbl} DISABLE ROW LEVEL SECURITY;")
    op.execute("DROP POLICY IF EXISTS organization_row_access ON organizations;")
    op.execute("ALTER TABLE organizations DISABLE ROW LEVEL SECURITY;")

    for tbl in [
        "org_notes",
        "org_currency_swaps",
        "org_float_transfers",
        "org_breakdowns",
        "org_orders",
        "org_float_stacks",
        "org_repository_access_logs",
        "org_cx_session_access_logs",
        "org_cx_session_users",
        "org_cx_sessions",
        "org_identifications",
        "org_addresses",
        "org_customers",
        "org_denominations",
    ]:
        op.drop_table(tbl)
    op.drop_index("uq_org_currencies_tenant_base", table_name="org_currencies")
    for tbl in [
        "org_currencies",
        "app_currencies",
        "org_repository_access",
        "org_repositories",
        "org_invitations",
        "org_memberships",
        "user_preferences",
        "users",
        "org_activities",
        "org_settings",
        "organizations",
    ]:
        op.drop_table(tbl)

    op.execute("DROP FUNCTION IF EXISTS set_tenant_id(uuid);")
