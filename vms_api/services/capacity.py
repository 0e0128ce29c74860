# vms_api/services/capacity.py
"""
Bounded-counter admission shared by opportunity acceptance and resource
checkout.

Check and decrement are one conditional UPDATE, so two callers that both saw
"1 left" cannot both get it: the database applies the WHERE clause against the
row as it stands when each statement runs and the loser sees rowcount == 0.
Nothing here commits; callers own the transaction boundary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, or_, update

from vms_api.extensions import db
from vms_api.common.errors import (
    CapacityExceeded,
    NotFound,
    OpportunityNotFound,
    ResourceNotFound,
    ResourceUnavailable,
    ValidationFailed,
)
from vms_api.models.opportunity import Opportunity
from vms_api.models.resource import Resource

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolState:
    total: int | None  # None = unlimited
    available: int | None


@dataclass(frozen=True)
class Reservation:
    pool: str
    key: int
    quantity: int


class CapacityPool:
    """One bounded counter per row of `model`."""

    name = "pool"
    model = None
    not_found = NotFound

    # ---- statements (subclasses) ----
    def _reserve_stmt(self, key: int, quantity: int):
        raise NotImplementedError

    def _release_stmt(self, key: int, quantity: int):
        raise NotImplementedError

    def state(self, key: int) -> PoolState:
        raise NotImplementedError

    def _refusal(self, row, quantity: int) -> Exception:
        return CapacityExceeded(payload={"pool": self.name, "key": row.id, "requested": quantity})

    # ---- public API ----
    def try_reserve(self, key: int, quantity: int = 1) -> Reservation:
        if quantity is None or int(quantity) < 1:
            raise ValidationFailed("quantity must be a positive integer")
        quantity = int(quantity)

        res = db.session.execute(self._reserve_stmt(key, quantity))
        self._expire_cached(key)
        if res.rowcount == 1:
            log.debug("[capacity.%s] reserved %s from %s", self.name, quantity, key)
            return Reservation(self.name, key, quantity)

        row = db.session.get(self.model, key)
        if row is None:
            raise self.not_found()
        log.info("[capacity.%s] refused %s from %s", self.name, quantity, key)
        raise self._refusal(row, quantity)

    def release(self, reservation: Reservation) -> None:
        res = db.session.execute(self._release_stmt(reservation.key, reservation.quantity))
        self._expire_cached(reservation.key)
        if res.rowcount != 1:
            raise self.not_found()
        log.debug("[capacity.%s] released %s to %s", self.name, reservation.quantity, reservation.key)

    # ---- helpers ----
    def _expire_cached(self, key: int) -> None:
        # the UPDATE bypasses the ORM; drop any stale copy from the identity map
        obj = db.session.identity_map.get(db.session.identity_key(self.model, key))
        if obj is not None:
            db.session.expire(obj)


class ResourceQuantityPool(CapacityPool):
    """quantity_available counts down to 0 and back up to quantity_total."""

    name = "resource"
    model = Resource
    not_found = ResourceNotFound

    def _reserve_stmt(self, key, quantity):
        return (
            update(Resource)
            .where(
                Resource.id == key,
                Resource.quantity_available >= quantity,
                Resource.status.notin_(Resource.UNASSIGNABLE),
            )
            .values(quantity_available=Resource.quantity_available - quantity)
            .execution_options(synchronize_session=False)
        )

    def _release_stmt(self, key, quantity):
        refilled = Resource.quantity_available + quantity
        return (
            update(Resource)
            .where(Resource.id == key)
            .values(
                quantity_available=case(
                    (refilled > Resource.quantity_total, Resource.quantity_total),
                    else_=refilled,
                )
            )
            .execution_options(synchronize_session=False)
        )

    def _refusal(self, row, quantity):
        if row.status in Resource.UNASSIGNABLE:
            return ResourceUnavailable(payload={"resource_id": row.id, "status": row.status})
        return CapacityExceeded(
            "Insufficient quantity available",
            payload={"resource_id": row.id, "requested": quantity, "available": row.quantity_available},
        )

    def state(self, key):
        row = db.session.get(Resource, key)
        if row is None:
            raise ResourceNotFound()
        return PoolState(total=row.quantity_total, available=row.quantity_available)


class OpportunityAcceptancePool(CapacityPool):
    """
    accepted_count counts up to capacity. capacity == 0 means unlimited, so the
    pool never refuses.
    """

    name = "opportunity"
    model = Opportunity
    not_found = OpportunityNotFound

    def _reserve_stmt(self, key, quantity):
        return (
            update(Opportunity)
            .where(
                Opportunity.id == key,
                or_(
                    Opportunity.capacity == 0,
                    Opportunity.accepted_count + quantity <= Opportunity.capacity,
                ),
            )
            .values(accepted_count=Opportunity.accepted_count + quantity)
            .execution_options(synchronize_session=False)
        )

    def _release_stmt(self, key, quantity):
        drained = Opportunity.accepted_count - quantity
        return (
            update(Opportunity)
            .where(Opportunity.id == key)
            .values(accepted_count=case((drained < 0, 0), else_=drained))
            .execution_options(synchronize_session=False)
        )

    def _refusal(self, row, quantity):
        return CapacityExceeded(
            "Opportunity is at full capacity",
            payload={"opportunity_id": row.id, "capacity": row.capacity},
        )

    def state(self, key):
        row = db.session.get(Opportunity, key)
        if row is None:
            raise OpportunityNotFound()
        if not row.capacity:
            return PoolState(total=None, available=None)
        return PoolState(total=row.capacity, available=row.capacity - row.accepted_count)


resource_pool = ResourceQuantityPool()
acceptance_pool = OpportunityAcceptancePool()
