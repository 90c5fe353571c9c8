"""
订单状态机
只负责判断状态流转是否合法，与流转请求的来源无关
"""

from typing import Dict, FrozenSet

from app.core.exceptions import InvalidStatusTransitionError
from app.models.order import OrderStatus

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

EDITABLE_STATES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[OrderStatus(current)]


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    """非法流转抛出InvalidStatusTransitionError（包含起止状态）"""
    current = OrderStatus(current)
    target = OrderStatus(target)

    if current in TERMINAL_STATES:
        raise InvalidStatusTransitionError(current, target, f"{current.value} is a final state")
    if current == target:
        raise InvalidStatusTransitionError(current, target, "order is already in this state")
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(current, target)


def is_editable(status: OrderStatus) -> bool:
    """只有待处理/已确认的订单允许修改订单项"""
    return OrderStatus(status) in EDITABLE_STATES
