"""
Status enums and the only allowed lifecycle transitions for
orders, offers and sales.

No database writes and no side effects here: services call
``require_transition`` before they mutate anything.
"""
import enum

from grainchain.errors import StateError


class OrderStatus(str, enum.Enum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Offers share the order state machine.
OfferStatus = OrderStatus


class SaleStatus(str, enum.Enum):
    INCOMPLETE = "Incomplete"
    COMPLETE = "Complete"


ALLOWED_TRANSITIONS = {
    OrderStatus.IN_PROGRESS: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
    SaleStatus.INCOMPLETE: {SaleStatus.COMPLETE},
    SaleStatus.COMPLETE: set(),
}


def can_transition(*, from_status: enum.Enum, to_status: enum.Enum) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def require_transition(*, entity: str, entity_id, current: enum.Enum, target: enum.Enum) -> None:
    """Raise StateError unless ``current -> target`` is an allowed transition."""
    if not can_transition(from_status=current, to_status=target):
        raise StateError(
            f"{entity} {entity_id} cannot transition from "
            f"'{current.value}' to '{target.value}'",
            entity=entity,
            entity_id=entity_id,
            status=current.value,
        )
