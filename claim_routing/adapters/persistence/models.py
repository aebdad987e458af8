"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claim_routing.adapters.persistence.database import Base

# JSONB on PostgreSQL (containment queries), plain JSON elsewhere.
JSONColumn = JSON().with_variant(JSONB(), "postgresql")


class CraftsmanModel(Base):
    __tablename__ = "craftsmen"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    company_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    professions: Mapped[list[str]] = mapped_column(JSONColumn, nullable=False, default=list)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (Index("idx_craftsmen_company", "company_id"),)


class PartnerModel(Base):
    __tablename__ = "partners"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    professions: Mapped[list[str]] = mapped_column(JSONColumn, nullable=False, default=list)
    zip_codes: Mapped[list[str] | None] = mapped_column(JSONColumn, nullable=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class OrderModel(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    damage_type: Mapped[str] = mapped_column(String(50), nullable=False)
    postal_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    customer_data: Mapped[dict] = mapped_column(JSONColumn, nullable=False, default=dict)
    state: Mapped[str] = mapped_column(String(30), nullable=False, default="unassigned")
    assigned_internal_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("craftsmen.id"), nullable=True
    )
    assigned_partner_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("partners.id"), nullable=True
    )
    assigned_by: Mapped[str | None] = mapped_column(String(20), nullable=True)
    broadcast_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    offers: Mapped[list["BroadcastOfferModel"]] = relationship(back_populates="order")

    __table_args__ = (
        CheckConstraint(
            "assigned_internal_id IS NULL OR assigned_partner_id IS NULL",
            name="ck_orders_single_assignee",
        ),
        Index("idx_orders_state", "state"),
        Index("idx_orders_broadcast_expiry", "state", "broadcast_expires_at"),
    )


class RoutingRuleModel(Base):
    __tablename__ = "routing_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    zip_prefix: Mapped[str] = mapped_column(String(5), nullable=False)
    profession: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    preferred_assignee_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    assignee_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_routing_rules_lookup", "zip_prefix", "profession", "active"),
    )


class AssignmentSettingsModel(Base):
    __tablename__ = "assignment_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profession: Mapped[str] = mapped_column(String(50), nullable=False)
    zip_prefix: Mapped[str | None] = mapped_column(String(5), nullable=True)
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    broadcast_partner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    fallback_behavior: Mapped[str] = mapped_column(
        String(20), nullable=False, default="internal_only"
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("profession", "zip_prefix", name="uq_assignment_settings_key"),
        Index("idx_assignment_settings_lookup", "profession", "zip_prefix", "active"),
    )


class BroadcastOfferModel(Base):
    __tablename__ = "broadcast_offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    assignee_type: Mapped[str] = mapped_column(String(20), nullable=False)
    assignee_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="sent")
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    order: Mapped["OrderModel"] = relationship(back_populates="offers")

    __table_args__ = (
        UniqueConstraint("order_id", "assignee_type", "assignee_id", name="uq_offer_per_assignee"),
        Index("idx_broadcast_offers_order_status", "order_id", "status"),
    )
