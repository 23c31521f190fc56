# Overview: Service-layer operations for packing; online-order fulfillment state machine.

"""
LIFECYCLE (strictly forward, one step at a time):
1. PENDING: Created together with an ONLINE sale
2. IN_PROGRESS: A packer picked the order (packer_id)
3. PACKED: Boxed and ready (packed_date)
4. SHIPPED: Handed to the carrier (shipped_date, tracking_info)

Packing never touches the inventory ledger.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import InvalidStateTransition, PackingNotFound, ValidationError
from ..models import Packing, Sale
from ..models.sales import SALE_STATUS_CANCELLED, SALE_STATUS_REFUNDED
from ..time_utils import utcnow
from ..validation import PackingMeta, parse_packing_meta
from .concurrency import lock_for_update, transaction
from .repositories import Repositories, default_repositories, require_active_user


PACKING_STATUS_PENDING = "PENDING"
PACKING_STATUS_IN_PROGRESS = "IN_PROGRESS"
PACKING_STATUS_PACKED = "PACKED"
PACKING_STATUS_SHIPPED = "SHIPPED"

PACKING_FLOW = (
    PACKING_STATUS_PENDING,
    PACKING_STATUS_IN_PROGRESS,
    PACKING_STATUS_PACKED,
    PACKING_STATUS_SHIPPED,
)

# Sales in these statuses have nothing left to ship
_CLOSED_SALE_STATUSES = {SALE_STATUS_CANCELLED, SALE_STATUS_REFUNDED}


def next_packing_status(current: str) -> str | None:
    index = PACKING_FLOW.index(current)
    if index + 1 >= len(PACKING_FLOW):
        return None
    return PACKING_FLOW[index + 1]


def create_packing_for_sale(sale: Sale) -> Packing:
    """Enqueue the single PENDING packing record of an online sale (flush only)."""
    packing = Packing(sale_id=sale.id, status=PACKING_STATUS_PENDING)
    db.session.add(packing)
    db.session.flush()
    return packing


def advance_packing(
    packing_id: int,
    next_status: str,
    meta: PackingMeta | dict | None = None,
    *,
    repos: Repositories | None = None,
) -> Packing:
    """
    Move a packing record exactly one step forward.

    Raises:
        PackingNotFound
        InvalidStateTransition: skipping a step, moving backwards, leaving
            SHIPPED, or advancing packing of a cancelled/refunded sale
        ValidationError: unknown status
        UserNotFound: packer_id does not resolve to an active user
    """
    if next_status not in PACKING_FLOW:
        raise ValidationError(
            f"status must be one of {', '.join(PACKING_FLOW)}",
            details={"field": "status"},
        )
    meta = meta if isinstance(meta, PackingMeta) else parse_packing_meta(meta)
    repos = repos or default_repositories()

    with transaction():
        packing = lock_for_update(db.session.query(Packing).filter_by(id=packing_id)).first()
        if not packing:
            raise PackingNotFound(f"Packing {packing_id} not found", details={"packing_id": packing_id})

        if next_packing_status(packing.status) != next_status:
            raise InvalidStateTransition("packing", packing.status, next_status)

        sale = packing.sale
        if sale is not None and sale.status in _CLOSED_SALE_STATUSES:
            raise InvalidStateTransition("packing", packing.status, next_status)

        now = utcnow()
        if next_status == PACKING_STATUS_IN_PROGRESS:
            if meta.packer_id is not None:
                packing.packer_id = require_active_user(repos, meta.packer_id).id
        elif next_status == PACKING_STATUS_PACKED:
            packing.packed_date = meta.packed_date or now
        elif next_status == PACKING_STATUS_SHIPPED:
            packing.shipped_date = meta.shipped_date or now
            if meta.tracking_info is not None:
                packing.tracking_info = meta.tracking_info
                if sale is not None:
                    sale.tracking_number = meta.tracking_info[:100]

        if meta.notes is not None:
            packing.notes = meta.notes
        packing.status = next_status

    return packing


def get_packing(packing_id: int) -> Packing:
    packing = db.session.get(Packing, packing_id)
    if not packing:
        raise PackingNotFound(f"Packing {packing_id} not found", details={"packing_id": packing_id})
    return packing


def list_packing(status: str | None = None) -> list[Packing]:
    query = db.session.query(Packing)
    if status:
        query = query.filter(Packing.status == status)
    return query.order_by(Packing.created_at.asc(), Packing.id.asc()).all()
