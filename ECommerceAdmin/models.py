"""Data models for the e-commerce admin client.

This module defines the value objects used throughout the library: the normalized
discount rule every preview is computed from, the preview result itself, combo
savings, and the session context that replaces ambient browser storage.
"""

import random
import string
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from ECommerceAdmin.enums import DiscountKind, RewardType
from ECommerceAdmin.exceptions import InvalidArgument

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ONE_HUNDRED = Decimal(100)


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Convert a form or JSON number to ``Decimal`` without binary float drift.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``. Blank strings
    and ``None`` map to ``None``.

    Raises:
        InvalidArgument: If the value cannot be read as a number
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidArgument(f"Not a number: {value!r}")
        return value
    if isinstance(value, bool):
        raise InvalidArgument(f"Not a number: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    text = str(value).strip()
    if not text:
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        raise InvalidArgument(f"Not a number: {value!r}")
    if not result.is_finite():
        raise InvalidArgument(f"Not a number: {value!r}")
    return result


def format_amount(amount: Decimal) -> str:
    """Render an amount with two decimals for display."""
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def _as_wire_dict(payload: Any) -> Dict[str, Any]:
    # Schemas are dumped by alias so both sources read the same camelCase keys
    if hasattr(payload, "model_dump"):
        return payload.model_dump(by_alias=True)
    return dict(payload or {})


@dataclass(frozen=True)
class DiscountRule:
    """A discount normalized from any of the offer forms.

    Attributes:
        kind: PERCENT or FLAT
        value: Percentage (0-100) for PERCENT, currency amount for FLAT
        max_discount: Cap on the computed discount, only used for PERCENT
        min_cart_value: Subtotal below which the rule does not apply
    """
    kind: DiscountKind
    value: Decimal
    max_discount: Optional[Decimal] = None
    min_cart_value: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "kind", DiscountKind(self.kind))
        object.__setattr__(self, "value", to_decimal(self.value))
        object.__setattr__(self, "max_discount", to_decimal(self.max_discount))
        object.__setattr__(self, "min_cart_value", to_decimal(self.min_cart_value))
        if self.value is None:
            raise InvalidArgument("Discount value is required")

    @classmethod
    def from_coupon(cls, payload: Any) -> "DiscountRule":
        """Build a rule from a coupon form or a coupon returned by the backend."""
        data = _as_wire_dict(payload)
        return cls(
            kind=data.get("type") or DiscountKind.PERCENT,
            value=data.get("value"),
            max_discount=data.get("maxDiscount") or None,
            min_cart_value=data.get("minOrderAmount"),
        )

    @classmethod
    def from_auto_discount(cls, payload: Any) -> "DiscountRule":
        """Build a rule from an automatic discount."""
        data = _as_wire_dict(payload)
        return cls(
            kind=data.get("discountType") or DiscountKind.PERCENT,
            value=data.get("value"),
            min_cart_value=data.get("minCartValue"),
        )

    @classmethod
    def from_buy_x_get_y_reward(cls, reward: Any) -> "DiscountRule":
        """Build a rule from the ``get`` block of a buy-X-get-Y offer.

        A free reward is a 100% discount on the reward items.
        """
        data = _as_wire_dict(reward)
        reward_type = RewardType(data.get("discountType") or RewardType.FREE)
        if reward_type == RewardType.FREE:
            return cls(kind=DiscountKind.PERCENT, value=ONE_HUNDRED)
        return cls(kind=DiscountKind(reward_type.value), value=data.get("value"))


@dataclass(frozen=True)
class DiscountPreview:
    """Result of applying a ``DiscountRule`` to a subtotal.

    Values are exact; call ``rounded`` only when presenting them.
    """
    subtotal: Decimal
    discount_amount: Decimal
    final_price: Decimal
    applicable: bool

    def rounded(self) -> "DiscountPreview":
        return replace(
            self,
            subtotal=self.subtotal.quantize(CENT, rounding=ROUND_HALF_UP),
            discount_amount=self.discount_amount.quantize(CENT, rounding=ROUND_HALF_UP),
            final_price=self.final_price.quantize(CENT, rounding=ROUND_HALF_UP),
        )

    def as_display(self) -> Dict[str, Any]:
        return {
            "originalPrice": format_amount(self.subtotal),
            "discount": format_amount(self.discount_amount),
            "finalPrice": format_amount(self.final_price),
            "canApply": self.applicable,
        }


@dataclass(frozen=True)
class ComboSavings:
    """What a combo offer saves against buying its items separately."""
    total_price: Decimal
    combo_price: Decimal
    savings: Decimal
    savings_percent: Decimal  # one decimal place


def _base36_suffix(length: int = 9) -> str:
    alphabet = string.digits + string.ascii_lowercase
    return "".join(random.choice(alphabet) for _ in range(length))


@dataclass
class SessionContext:
    """Identity and cart session for one user of the admin client.

    Passed explicitly to the HTTP client and to the cart/address services instead
    of being read from ambient storage.

    Attributes:
        token: Bearer token sent with every request
        user: Profile returned by the backend at sign in
        user_id: Id used by cart and address endpoints
        session_id: Guest cart id, generated on first use
    """
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = field(default=None)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def ensure_session_id(self) -> str:
        if not self.session_id:
            self.session_id = f"session_{int(time.time() * 1000)}_{_base36_suffix()}"
        return self.session_id

    def identity_params(self) -> Dict[str, str]:
        params = {"sessionId": self.ensure_session_id()}
        if self.user_id:
            params["userId"] = self.user_id
        return params

    def clear(self) -> None:
        self.token = None
        self.user = None


@dataclass
class ReferenceData:
    """Lookup lists an offer form needs before it can be filled in."""
    products: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[Dict[str, Any]] = field(default_factory=list)
    brands: List[Dict[str, Any]] = field(default_factory=list)
