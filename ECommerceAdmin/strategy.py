"""Discount preview calculation.

A single pure implementation shared by the coupon, automatic discount and
buy-X-get-Y previews. The kind specific step lives in a ``DiscountStrategy``
subclass; gating, clamping and validation are common to every kind.
"""
from decimal import Decimal
from typing import Dict, Optional

from ECommerceAdmin.enums import DiscountKind
from ECommerceAdmin.exceptions import InvalidArgument
from ECommerceAdmin.logger import get_logger
from ECommerceAdmin.models import DiscountPreview, DiscountRule, Number, ONE_HUNDRED, to_decimal

logger = get_logger("strategy")

ZERO = Decimal(0)


class DiscountStrategy:

    def __init__(self, name: str):
        self.name = name

    def raw_discount(self, subtotal: Decimal, rule: DiscountRule) -> Decimal:
        raise NotImplementedError


class PercentDiscountStrategy(DiscountStrategy):

    def __init__(self, name: str = "PercentDiscount"):
        super().__init__(name=name)

    def raw_discount(self, subtotal: Decimal, rule: DiscountRule) -> Decimal:
        discount_amount = subtotal * rule.value / ONE_HUNDRED
        if rule.max_discount is not None:
            discount_amount = min(discount_amount, rule.max_discount)
        return discount_amount


class FlatDiscountStrategy(DiscountStrategy):

    def __init__(self, name: str = "FlatDiscount"):
        super().__init__(name=name)

    def raw_discount(self, subtotal: Decimal, rule: DiscountRule) -> Decimal:
        # max_discount has no meaning for a fixed amount
        return rule.value


STRATEGIES: Dict[DiscountKind, DiscountStrategy] = {
    DiscountKind.PERCENT: PercentDiscountStrategy(),
    DiscountKind.FLAT: FlatDiscountStrategy(),
}


def validate_rule(subtotal: Decimal, rule: DiscountRule) -> None:
    """Check the inputs of ``calculate_discount``.

    Raises:
        InvalidArgument: For a negative subtotal, value, cap or threshold, or a
            percentage above 100
    """
    if subtotal < ZERO:
        raise InvalidArgument(f"Subtotal cannot be negative: {subtotal}")
    if rule.value < ZERO:
        raise InvalidArgument(f"Discount value cannot be negative: {rule.value}")
    if rule.kind == DiscountKind.PERCENT and rule.value > ONE_HUNDRED:
        raise InvalidArgument("Percentage cannot exceed 100%")
    if rule.max_discount is not None and rule.max_discount < ZERO:
        raise InvalidArgument(f"Maximum discount cannot be negative: {rule.max_discount}")
    if rule.min_cart_value is not None and rule.min_cart_value < ZERO:
        raise InvalidArgument(f"Minimum cart value cannot be negative: {rule.min_cart_value}")


def calculate_discount(subtotal: Number, rule: DiscountRule) -> DiscountPreview:
    """Compute the discount a rule gives on a subtotal.

    The rule applies when there is no minimum cart value or the subtotal reaches
    it (inclusive). The discount is then clamped to the subtotal so the final
    price never goes below zero. No rounding happens here.

    Args:
        subtotal: Pre-discount cart value
        rule: Normalized discount rule

    Returns:
        DiscountPreview: Discount amount, final price and applicability

    Raises:
        InvalidArgument: If the subtotal or the rule violates its invariants
    """
    subtotal = to_decimal(subtotal)
    if subtotal is None:
        raise InvalidArgument("Subtotal is required")
    validate_rule(subtotal, rule)

    applicable = rule.min_cart_value is None or subtotal >= rule.min_cart_value
    if not applicable:
        logger.debug("Discount not applicable: subtotal %s below minimum %s", subtotal, rule.min_cart_value)
        return DiscountPreview(subtotal=subtotal, discount_amount=ZERO, final_price=subtotal, applicable=False)

    discount_amount = STRATEGIES[rule.kind].raw_discount(subtotal, rule)
    discount_amount = min(discount_amount, subtotal)
    return DiscountPreview(
        subtotal=subtotal,
        discount_amount=discount_amount,
        final_price=subtotal - discount_amount,
        applicable=True,
    )


def try_calculate_discount(
        subtotal: Optional[Number],
        kind: Optional[str],
        value: Optional[Number],
        max_discount: Optional[Number] = None,
        min_cart_value: Optional[Number] = None) -> Optional[DiscountPreview]:
    """Preview a discount from raw form values, returning ``None`` when the
    input is incomplete or invalid rather than raising mid-keystroke."""
    try:
        if subtotal in (None, "") or value in (None, "") or not kind:
            return None
        rule = DiscountRule(
            kind=kind,
            value=value,
            max_discount=max_discount,
            min_cart_value=min_cart_value,
        )
        return calculate_discount(subtotal, rule)
    except (InvalidArgument, ValueError) as e:
        logger.debug("Preview not computable yet: %s", e)
        return None
