"""Initial schema — directory, orders, routing configuration and broadcast offers.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Craftsmen (internal staff)
    op.create_table(
        "craftsmen",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("company_id", sa.String(36), nullable=True),
        sa.Column("professions", JSONB, nullable=False, server_default="[]"),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("rating", sa.Float, nullable=False, server_default="0"),
    )
    op.create_index("idx_craftsmen_company", "craftsmen", ["company_id"])
    op.create_index(
        "idx_craftsmen_professions", "craftsmen", ["professions"], postgresql_using="gin"
    )

    # Partner companies
    op.create_table(
        "partners",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(200), nullable=True),
        sa.Column("professions", JSONB, nullable=False, server_default="[]"),
        sa.Column("zip_codes", JSONB, nullable=True),
        sa.Column("rating", sa.Float, nullable=False, server_default="0"),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default="false"),
    )
    op.create_index(
        "idx_partners_professions", "partners", ["professions"], postgresql_using="gin"
    )

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("damage_type", sa.String(50), nullable=False),
        sa.Column("postal_code", sa.String(10), nullable=True),
        sa.Column("customer_data", JSONB, nullable=False, server_default="{}"),
        sa.Column("state", sa.String(30), nullable=False, server_default="unassigned"),
        sa.Column(
            "assigned_internal_id", sa.String(36), sa.ForeignKey("craftsmen.id"), nullable=True
        ),
        sa.Column(
            "assigned_partner_id", sa.String(36), sa.ForeignKey("partners.id"), nullable=True
        ),
        sa.Column("assigned_by", sa.String(20), nullable=True),
        sa.Column("broadcast_expires_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "assigned_internal_id IS NULL OR assigned_partner_id IS NULL",
            name="ck_orders_single_assignee",
        ),
    )
    op.create_index("idx_orders_state", "orders", ["state"])
    op.create_index("idx_orders_broadcast_expiry", "orders", ["state", "broadcast_expires_at"])

    # Routing rules
    op.create_table(
        "routing_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("zip_prefix", sa.String(5), nullable=False),
        sa.Column("profession", sa.String(50), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default="1"),
        sa.Column("active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("preferred_assignee_id", sa.String(36), nullable=True),
        sa.Column("assignee_type", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "idx_routing_rules_lookup", "routing_rules", ["zip_prefix", "profession", "active"]
    )

    # Assignment settings
    op.create_table(
        "assignment_settings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("profession", sa.String(50), nullable=False),
        sa.Column("zip_prefix", sa.String(5), nullable=True),
        sa.Column("mode", sa.String(20), nullable=False, server_default="manual"),
        sa.Column("broadcast_partner_count", sa.Integer, nullable=False, server_default="3"),
        sa.Column(
            "fallback_behavior", sa.String(20), nullable=False, server_default="internal_only"
        ),
        sa.Column("active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("profession", "zip_prefix", name="uq_assignment_settings_key"),
    )
    op.create_index(
        "idx_assignment_settings_lookup",
        "assignment_settings",
        ["profession", "zip_prefix", "active"],
    )

    # Broadcast offers
    op.create_table(
        "broadcast_offers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.String(36),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assignee_type", sa.String(20), nullable=False),
        sa.Column("assignee_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="sent"),
        sa.Column("token", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime, nullable=True),
        sa.UniqueConstraint(
            "order_id", "assignee_type", "assignee_id", name="uq_offer_per_assignee"
        ),
    )
    op.create_index(
        "idx_broadcast_offers_order_status", "broadcast_offers", ["order_id", "status"]
    )


def downgrade() -> None:
    op.drop_table("broadcast_offers")
    op.drop_table("assignment_settings")
    op.drop_table("routing_rules")
    op.drop_table("orders")
    op.drop_table("partners")
    op.drop_table("craftsmen")
