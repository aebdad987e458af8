"""SQLAlchemy repository implementations."""

from __future__ import annotations

import functools
from collections.abc import Collection
from datetime import datetime

from sqlalchemy import and_, delete, func, not_, select, type_coerce, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import NotSupportedError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claim_routing.adapters.persistence.models import (
    AssignmentSettingsModel,
    BroadcastOfferModel,
    CraftsmanModel,
    OrderModel,
    PartnerModel,
    RoutingRuleModel,
)
from claim_routing.application.ports.directory_repo import DirectoryRepository
from claim_routing.application.ports.offer_repo import OfferRepository
from claim_routing.application.ports.order_repo import OrderRepository
from claim_routing.application.ports.routing_rule_repo import RoutingRuleRepository
from claim_routing.application.ports.settings_repo import AssignmentSettingsRepository
from claim_routing.domain.entities.assignment_settings import AssignmentSettings
from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.entities.craftsman import Craftsman
from claim_routing.domain.entities.order import Order
from claim_routing.domain.entities.partner import Partner
from claim_routing.domain.entities.routing_rule import RoutingRule
from claim_routing.domain.exceptions import CandidateQueryUnsupported, PersistenceFailure
from claim_routing.domain.value_objects.assignee import Assignee, make_assignee, to_slots
from claim_routing.domain.value_objects.enums import (
    Actor,
    CraftsmanRole,
    DispatchMode,
    FallbackBehavior,
    OfferStatus,
    OrderState,
)


def _translate_errors(fn):
    """Surface driver/ORM errors to the application layer as PersistenceFailure."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as e:
            raise PersistenceFailure(str(e)) from e

    return wrapper


# Directory rows with any other role (office staff, admins) are never assignable.
_ASSIGNABLE_ROLES = [r.value for r in CraftsmanRole]


def _slot_matches(column, value: str | None):
    return column.is_(None) if value is None else column == value


# ─── Mappers ─────────────────────────────────────────────────────────


def _order_to_domain(m: OrderModel) -> Order:
    return Order(
        id=m.id,
        damage_type=m.damage_type,
        postal_code=m.postal_code,
        customer_data=dict(m.customer_data or {}),
        state=OrderState(m.state),
        assigned_internal_id=m.assigned_internal_id,
        assigned_partner_id=m.assigned_partner_id,
        assigned_by=Actor(m.assigned_by) if m.assigned_by else None,
        broadcast_expires_at=m.broadcast_expires_at,
    )


def _craftsman_to_domain(m: CraftsmanModel) -> Craftsman:
    return Craftsman(
        id=m.id,
        name=m.name,
        role=CraftsmanRole(m.role),
        company_id=m.company_id,
        professions=set(m.professions or []),
        is_verified=m.is_verified,
        rating=m.rating,
    )


def _partner_to_domain(m: PartnerModel) -> Partner:
    return Partner(
        id=m.id,
        company_name=m.company_name,
        professions=set(m.professions or []),
        zip_codes=list(m.zip_codes) if m.zip_codes else None,
        rating=m.rating,
        is_verified=m.is_verified,
        email=m.email,
    )


def _rule_to_domain(m: RoutingRuleModel) -> RoutingRule:
    preferred = None
    if m.preferred_assignee_id and m.assignee_type:
        preferred = make_assignee(m.assignee_type, m.preferred_assignee_id)
    return RoutingRule(
        id=m.id,
        zip_prefix=m.zip_prefix,
        profession=m.profession,
        priority=m.priority,
        active=m.active,
        preferred_assignee=preferred,
        created_at=m.created_at,
    )


def _settings_to_domain(m: AssignmentSettingsModel) -> AssignmentSettings:
    return AssignmentSettings(
        id=m.id,
        profession=m.profession,
        zip_prefix=m.zip_prefix,
        mode=DispatchMode(m.mode),
        broadcast_partner_count=m.broadcast_partner_count,
        fallback_behavior=FallbackBehavior(m.fallback_behavior),
        active=m.active,
        updated_at=m.updated_at,
    )


def _offer_to_domain(m: BroadcastOfferModel) -> BroadcastOffer:
    return BroadcastOffer(
        id=m.id,
        order_id=m.order_id,
        assignee=make_assignee(m.assignee_type, m.assignee_id),
        token=m.token,
        expires_at=m.expires_at,
        status=OfferStatus(m.status),
        created_at=m.created_at,
        responded_at=m.responded_at,
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def save(self, order: Order) -> Order:
        internal_id, partner_id = to_slots(order.assignee)
        m = OrderModel(
            id=order.id,
            damage_type=order.damage_type,
            postal_code=order.postal_code,
            customer_data=order.customer_data,
            state=order.state.value,
            assigned_internal_id=internal_id,
            assigned_partner_id=partner_id,
            assigned_by=order.assigned_by.value if order.assigned_by else None,
            broadcast_expires_at=order.broadcast_expires_at,
        )
        self._s.add(m)
        await self._s.flush()
        return order

    @_translate_errors
    async def get_by_id(self, order_id: str) -> Order | None:
        # populate_existing: conditional updates bypass the identity map.
        result = await self._s.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _order_to_domain(m) if m else None

    @_translate_errors
    async def compare_and_set_assignee(
        self,
        order_id: str,
        *,
        expected_states: Collection[OrderState],
        expected_assignee: Assignee | None,
        new_assignee: Assignee | None,
        new_state: OrderState,
        actor: Actor,
    ) -> int:
        expected_internal, expected_partner = to_slots(expected_assignee)
        new_internal, new_partner = to_slots(new_assignee)
        stmt = (
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.state.in_([s.value for s in expected_states]),
                _slot_matches(OrderModel.assigned_internal_id, expected_internal),
                _slot_matches(OrderModel.assigned_partner_id, expected_partner),
            )
            .values(
                assigned_internal_id=new_internal,
                assigned_partner_id=new_partner,
                state=new_state.value,
                assigned_by=actor.value,
                broadcast_expires_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        # Savepoint: a failed attempt leaves the request transaction usable for a retry.
        async with self._s.begin_nested():
            result = await self._s.execute(stmt)
        return result.rowcount

    @_translate_errors
    async def transition_state(
        self,
        order_id: str,
        *,
        from_states: Collection[OrderState],
        to_state: OrderState,
        broadcast_expires_at: datetime | None = None,
    ) -> int:
        values: dict = {"state": to_state.value}
        if broadcast_expires_at is not None:
            values["broadcast_expires_at"] = broadcast_expires_at
        result = await self._s.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.state.in_([s.value for s in from_states]),
                OrderModel.assigned_internal_id.is_(None),
                OrderModel.assigned_partner_id.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()
        return result.rowcount

    @_translate_errors
    async def get_due_broadcasts(self, now: datetime, limit: int = 100) -> list[Order]:
        result = await self._s.execute(
            select(OrderModel)
            .where(
                OrderModel.state == OrderState.BROADCASTING.value,
                OrderModel.broadcast_expires_at <= now,
            )
            .order_by(OrderModel.broadcast_expires_at)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [_order_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def count_by_state(self) -> dict[str, int]:
        result = await self._s.execute(
            select(OrderModel.state, func.count()).group_by(OrderModel.state)
        )
        return {state: count for state, count in result.all()}


class SqlDirectoryRepository(DirectoryRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def get_craftsmen_by_ids(self, ids: Collection[str]) -> list[Craftsman]:
        result = await self._s.execute(
            select(CraftsmanModel).where(
                CraftsmanModel.id.in_(list(ids)),
                CraftsmanModel.role.in_(_ASSIGNABLE_ROLES),
            )
        )
        return [_craftsman_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def get_partners_by_ids(self, ids: Collection[str]) -> list[Partner]:
        result = await self._s.execute(
            select(PartnerModel).where(PartnerModel.id.in_(list(ids)))
        )
        return [_partner_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def find_craftsmen_with_profession(self, profession: str, limit: int) -> list[Craftsman]:
        rows = await self._contains(
            CraftsmanModel, profession, limit, CraftsmanModel.role.in_(_ASSIGNABLE_ROLES)
        )
        return [_craftsman_to_domain(m) for m in rows]

    @_translate_errors
    async def find_partners_with_profession(self, profession: str, limit: int) -> list[Partner]:
        rows = await self._contains(PartnerModel, profession, limit)
        return [_partner_to_domain(m) for m in rows]

    @_translate_errors
    async def list_craftsmen(self, limit: int) -> list[Craftsman]:
        result = await self._s.execute(
            select(CraftsmanModel)
            .where(CraftsmanModel.role.in_(_ASSIGNABLE_ROLES))
            .order_by(CraftsmanModel.id)
            .limit(limit)
        )
        return [_craftsman_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def list_partners(self, limit: int) -> list[Partner]:
        result = await self._s.execute(
            select(PartnerModel).order_by(PartnerModel.id).limit(limit)
        )
        return [_partner_to_domain(m) for m in result.scalars()]

    async def _contains(self, model, profession: str, limit: int, *criteria) -> list:
        """``professions @> '["<profession>"]'``; PostgreSQL JSONB only."""
        dialect = self._s.get_bind().dialect.name
        if dialect != "postgresql":
            raise CandidateQueryUnsupported(f"JSON containment not available on {dialect}")

        stmt = (
            select(model)
            .where(type_coerce(model.professions, JSONB).contains([profession]), *criteria)
            .order_by(model.id)
            .limit(limit)
        )
        try:
            # Savepoint so a rejected query leaves the session usable for the fallback.
            async with self._s.begin_nested():
                result = await self._s.execute(stmt)
                return list(result.scalars())
        except (ProgrammingError, NotSupportedError) as e:
            raise CandidateQueryUnsupported(str(e.orig or e)) from e


class SqlRoutingRuleRepository(RoutingRuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def find_active(self, zip_prefix: str, profession: str, limit: int) -> list[RoutingRule]:
        result = await self._s.execute(
            select(RoutingRuleModel)
            .where(
                RoutingRuleModel.active.is_(True),
                RoutingRuleModel.zip_prefix == zip_prefix,
                RoutingRuleModel.profession == profession,
            )
            .order_by(RoutingRuleModel.priority, RoutingRuleModel.id)
            .limit(limit)
        )
        return [_rule_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def get_by_id(self, rule_id: int) -> RoutingRule | None:
        m = await self._s.get(RoutingRuleModel, rule_id, populate_existing=True)
        return _rule_to_domain(m) if m else None

    @_translate_errors
    async def get_all(self) -> list[RoutingRule]:
        result = await self._s.execute(
            select(RoutingRuleModel).order_by(
                RoutingRuleModel.zip_prefix, RoutingRuleModel.priority, RoutingRuleModel.id
            )
        )
        return [_rule_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def save(self, rule: RoutingRule) -> RoutingRule:
        assignee = rule.preferred_assignee
        values = dict(
            zip_prefix=rule.zip_prefix,
            profession=rule.profession,
            priority=rule.priority,
            active=rule.active,
            preferred_assignee_id=assignee.id if assignee else None,
            assignee_type=assignee.type.value if assignee else None,
        )
        if rule.id is None:
            m = RoutingRuleModel(**values)
            self._s.add(m)
            await self._s.flush()
            await self._s.refresh(m)
            rule.id = m.id
            rule.created_at = m.created_at
        else:
            await self._s.execute(
                update(RoutingRuleModel).where(RoutingRuleModel.id == rule.id).values(**values)
            )
            await self._s.flush()
        return rule

    @_translate_errors
    async def delete(self, rule_id: int) -> bool:
        result = await self._s.execute(delete(RoutingRuleModel).where(RoutingRuleModel.id == rule_id))
        await self._s.flush()
        return result.rowcount > 0


class SqlAssignmentSettingsRepository(AssignmentSettingsRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def get_active(
        self, profession: str, zip_prefix: str | None
    ) -> AssignmentSettings | None:
        result = await self._s.execute(
            select(AssignmentSettingsModel)
            .where(
                AssignmentSettingsModel.profession == profession,
                _slot_matches(AssignmentSettingsModel.zip_prefix, zip_prefix),
                AssignmentSettingsModel.active.is_(True),
            )
            .order_by(AssignmentSettingsModel.id)
            .limit(1)
        )
        m = result.scalar_one_or_none()
        return _settings_to_domain(m) if m else None

    @_translate_errors
    async def get_by_key(
        self, profession: str, zip_prefix: str | None
    ) -> AssignmentSettings | None:
        result = await self._s.execute(
            select(AssignmentSettingsModel)
            .where(
                AssignmentSettingsModel.profession == profession,
                _slot_matches(AssignmentSettingsModel.zip_prefix, zip_prefix),
            )
            .order_by(AssignmentSettingsModel.id)
            .limit(1)
        )
        m = result.scalar_one_or_none()
        return _settings_to_domain(m) if m else None

    @_translate_errors
    async def get_by_id(self, settings_id: int) -> AssignmentSettings | None:
        m = await self._s.get(AssignmentSettingsModel, settings_id, populate_existing=True)
        return _settings_to_domain(m) if m else None

    @_translate_errors
    async def get_all(self) -> list[AssignmentSettings]:
        result = await self._s.execute(
            select(AssignmentSettingsModel).order_by(
                AssignmentSettingsModel.profession,
                AssignmentSettingsModel.zip_prefix.nulls_first(),
            )
        )
        return [_settings_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def save(self, settings: AssignmentSettings) -> AssignmentSettings:
        values = dict(
            profession=settings.profession,
            zip_prefix=settings.zip_prefix,
            mode=settings.mode.value,
            broadcast_partner_count=settings.broadcast_partner_count,
            fallback_behavior=settings.fallback_behavior.value,
            active=settings.active,
        )
        if settings.id is None:
            m = AssignmentSettingsModel(**values)
            self._s.add(m)
            await self._s.flush()
            settings.id = m.id
        else:
            await self._s.execute(
                update(AssignmentSettingsModel)
                .where(AssignmentSettingsModel.id == settings.id)
                .values(**values)
            )
            await self._s.flush()
        return settings

    @_translate_errors
    async def delete(self, settings_id: int) -> bool:
        result = await self._s.execute(
            delete(AssignmentSettingsModel).where(AssignmentSettingsModel.id == settings_id)
        )
        await self._s.flush()
        return result.rowcount > 0


class SqlOfferRepository(OfferRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    @_translate_errors
    async def create_many(self, offers: list[BroadcastOffer]) -> list[BroadcastOffer]:
        models = [
            BroadcastOfferModel(
                order_id=o.order_id,
                assignee_type=o.assignee.type.value,
                assignee_id=o.assignee.id,
                status=o.status.value,
                token=o.token,
                expires_at=o.expires_at,
            )
            for o in offers
        ]
        self._s.add_all(models)
        await self._s.flush()
        for offer, m in zip(offers, models):
            offer.id = m.id
        return offers

    @_translate_errors
    async def get_by_order(self, order_id: str) -> list[BroadcastOffer]:
        result = await self._s.execute(
            select(BroadcastOfferModel)
            .where(BroadcastOfferModel.order_id == order_id)
            .order_by(BroadcastOfferModel.id)
            .execution_options(populate_existing=True)
        )
        return [_offer_to_domain(m) for m in result.scalars()]

    @_translate_errors
    async def get_for_assignee(self, order_id: str, assignee: Assignee) -> BroadcastOffer | None:
        result = await self._s.execute(
            select(BroadcastOfferModel)
            .where(
                BroadcastOfferModel.order_id == order_id,
                BroadcastOfferModel.assignee_type == assignee.type.value,
                BroadcastOfferModel.assignee_id == assignee.id,
            )
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _offer_to_domain(m) if m else None

    @_translate_errors
    async def transition(
        self,
        order_id: str,
        assignee: Assignee,
        *,
        from_status: OfferStatus,
        to_status: OfferStatus,
        responded_at: datetime | None = None,
    ) -> int:
        values: dict = {"status": to_status.value}
        if responded_at is not None:
            values["responded_at"] = responded_at
        result = await self._s.execute(
            update(BroadcastOfferModel)
            .where(
                BroadcastOfferModel.order_id == order_id,
                BroadcastOfferModel.assignee_type == assignee.type.value,
                BroadcastOfferModel.assignee_id == assignee.id,
                BroadcastOfferModel.status == from_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._s.flush()
        return result.rowcount

    @_translate_errors
    async def expire_open(self, order_id: str, except_assignee: Assignee | None = None) -> int:
        stmt = update(BroadcastOfferModel).where(
            BroadcastOfferModel.order_id == order_id,
            BroadcastOfferModel.status == OfferStatus.SENT.value,
        )
        if except_assignee is not None:
            stmt = stmt.where(
                not_(
                    and_(
                        BroadcastOfferModel.assignee_type == except_assignee.type.value,
                        BroadcastOfferModel.assignee_id == except_assignee.id,
                    )
                )
            )
        result = await self._s.execute(
            stmt.values(status=OfferStatus.EXPIRED.value).execution_options(
                synchronize_session=False
            )
        )
        await self._s.flush()
        return result.rowcount
