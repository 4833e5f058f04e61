"""Order service exports."""

from .order_service import (  # noqa: F401
    MAX_ORDER_TOTAL,
    OrderLine,
    OrderPlacement,
    OrderService,
    RewardNotApplicableError,
    order_subtotal,
    validate_order_input,
)
from .state_machine import (  # noqa: F401
    InvalidOrderTransitionError,
    OrderNotFoundError,
    OrderStateError,
    OrderStateMachine,
)
