"""Request payload schemas for the admin REST API.

Each schema mirrors one admin form: field names are snake_case in Python and
camelCase on the wire, and the validators enforce the same rules the form checks
before submitting. Money is kept as ``Decimal`` and sent as a JSON number.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    PlainSerializer,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ECommerceAdmin.enums import (
    AddressType,
    ApplicableTo,
    DiscountKind,
    OfferStatus,
    PaymentMethodName,
    PaymentType,
    RewardType,
    TransactionStatus,
)
from ECommerceAdmin.exceptions import FormValidationError


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _zero_to_none(value: Any) -> Any:
    # A cap of 0 means no cap
    value = _blank_to_none(value)
    if isinstance(value, (int, float, Decimal)) and value == 0:
        return None
    if isinstance(value, str) and re.fullmatch(r"\s*0*(\.0*)?\s*", value):
        return None
    return value


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _slugify(value: Any) -> Any:
    if isinstance(value, str):
        return re.sub(r"[^a-z0-9]", "", value.lower())
    return value


Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
OptionalMoney = Annotated[Optional[Money], BeforeValidator(_blank_to_none)]
CapMoney = Annotated[Optional[Money], BeforeValidator(_zero_to_none)]
OptionalInt = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
OptionalDate = Annotated[Optional[date], BeforeValidator(_blank_to_none)]
Text = Annotated[str, BeforeValidator(_strip)]
Slug = Annotated[str, BeforeValidator(_slugify)]


class Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        """JSON body for the backend; unset optional fields are left out."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DatedPayload(Payload):
    start_date: OptionalDate = None
    end_date: OptionalDate = None

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v, info: ValidationInfo):
        start = info.data.get("start_date")
        if v is not None and start is not None and v < start:
            raise ValueError("End date must be after start date")
        return v


def _require(v, message: str):
    if v is None or v == "":
        raise ValueError(message)
    return v


class CouponPayload(DatedPayload):
    code: Text = ""
    type: DiscountKind = DiscountKind.PERCENT
    value: OptionalMoney = None
    min_order_amount: OptionalMoney = None
    max_discount: CapMoney = None
    usage_limit: OptionalInt = None
    usage_per_user: OptionalInt = None
    allowed_users: Optional[List[str]] = None
    allowed_categories: Optional[List[str]] = None
    allowed_products: Optional[List[str]] = None
    allowed_brands: Optional[List[str]] = None
    status: OfferStatus = OfferStatus.ACTIVE

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        _require(v, "Coupon code is required")
        if len(v) < 3:
            raise ValueError("Coupon code must be at least 3 characters")
        return v.upper()

    @field_validator("value")
    @classmethod
    def validate_value(cls, v, info: ValidationInfo):
        _require(v, "Discount value is required")
        if v <= 0:
            raise ValueError("Value must be a positive number")
        if info.data.get("type") == DiscountKind.PERCENT and v > 100:
            raise ValueError("Percentage cannot exceed 100%")
        return v

    @field_validator("min_order_amount", "max_discount")
    @classmethod
    def validate_non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("Amount cannot be negative")
        return v

    @field_validator("usage_limit")
    @classmethod
    def validate_usage_limit(cls, v):
        if v is not None and v < 1:
            raise ValueError("Usage limit must be at least 1")
        return v

    @field_validator("usage_per_user")
    @classmethod
    def validate_usage_per_user(cls, v):
        if v is not None and v < 1:
            raise ValueError("Usage per user must be at least 1")
        return v

    @field_validator("allowed_users", "allowed_categories", "allowed_products", "allowed_brands")
    @classmethod
    def drop_empty_lists(cls, v):
        return v or None


class ApplicableToPayload(Payload):
    type: ApplicableTo = ApplicableTo.ALL
    ids: List[str] = []

    @model_validator(mode="after")
    def validate_ids(self):
        if self.type == ApplicableTo.ALL:
            self.ids = []
        elif not self.ids:
            raise ValueError(f"Please select at least one {self.type.value}")
        return self


class AutoDiscountPayload(DatedPayload):
    title: Text = ""
    discount_type: DiscountKind = DiscountKind.PERCENT
    value: OptionalMoney = None
    min_cart_value: OptionalMoney = None
    applicable_to: ApplicableToPayload = ApplicableToPayload()
    priority: Annotated[int, BeforeValidator(lambda v: v or 1)] = 1
    status: OfferStatus = OfferStatus.ACTIVE

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require(v, "Title is required")

    @field_validator("value")
    @classmethod
    def validate_value(cls, v, info: ValidationInfo):
        if v is None or v <= 0:
            raise ValueError("Discount value must be greater than 0")
        if info.data.get("discount_type") == DiscountKind.PERCENT and v > 100:
            raise ValueError("Percentage cannot exceed 100%")
        return v

    @field_validator("min_cart_value")
    @classmethod
    def validate_min_cart_value(cls, v):
        if v is not None and v < 0:
            raise ValueError("Minimum cart value cannot be negative")
        return v


class BuyBlock(Payload):
    quantity: int = 1
    products: List[str] = []
    categories: List[str] = []

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError("Buy quantity must be greater than 0")
        return v

    @model_validator(mode="after")
    def validate_targets(self):
        if not self.products and not self.categories:
            raise ValueError("Select at least one product or category to buy")
        return self


class GetBlock(Payload):
    quantity: int = 1
    products: List[str] = []
    discount_type: RewardType = RewardType.FREE
    value: OptionalMoney = None

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError("Get quantity must be greater than 0")
        return v

    @field_validator("products")
    @classmethod
    def validate_products(cls, v):
        if not v:
            raise ValueError("Select at least one product to get")
        return v

    @field_validator("value")
    @classmethod
    def validate_value(cls, v, info: ValidationInfo):
        reward_type = info.data.get("discount_type")
        if reward_type == RewardType.FREE:
            return None
        if v is None or v <= 0:
            raise ValueError("Discount value must be greater than 0")
        if reward_type == RewardType.PERCENT and v > 100:
            raise ValueError("Percentage cannot exceed 100%")
        return v


class BuyXGetYPayload(DatedPayload):
    title: Text = ""
    buy: BuyBlock
    get: GetBlock
    status: OfferStatus = OfferStatus.ACTIVE

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require(v, "Title is required")


class ComboItem(Payload):
    product_id: Text = ""
    quantity: int = 1

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v):
        return _require(v, "Please select a product")

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError("Quantity must be greater than 0")
        return v


class ComboOfferPayload(DatedPayload):
    title: Text = ""
    items: List[ComboItem] = []
    combo_price: OptionalMoney = None
    status: OfferStatus = OfferStatus.ACTIVE

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require(v, "Title is required")

    @field_validator("items")
    @classmethod
    def validate_items(cls, v):
        if len(v) < 2:
            raise ValueError("Minimum 2 products required")
        product_ids = [item.product_id for item in v]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate products are not allowed")
        return v

    @field_validator("combo_price")
    @classmethod
    def validate_combo_price(cls, v):
        if v is None or v <= 0:
            raise ValueError("Combo price must be greater than 0")
        return v


# Gateway credentials each payment method needs: key -> (label, allowed values)
PAYMENT_CONFIG_FIELDS: Dict[PaymentMethodName, Dict[str, tuple]] = {
    PaymentMethodName.COD: {},
    PaymentMethodName.RAZORPAY: {
        "keyId": ("Key ID", None),
        "keySecret": ("Key Secret", None),
    },
    PaymentMethodName.STRIPE: {
        "publishableKey": ("Publishable Key", None),
        "secretKey": ("Secret Key", None),
    },
    PaymentMethodName.PAYPAL: {
        "clientId": ("Client ID", None),
        "clientSecret": ("Client Secret", None),
        "mode": ("Mode", ("sandbox", "live")),
    },
}


class PaymentMethodPayload(Payload):
    name: Optional[PaymentMethodName] = None
    type: Optional[PaymentType] = None
    status: bool = True
    config: Dict[str, str] = {}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _require(v, "Payment method name is required")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _require(v, "Payment type is required")

    @field_validator("config")
    @classmethod
    def validate_config(cls, v, info: ValidationInfo):
        fields = PAYMENT_CONFIG_FIELDS.get(info.data.get("name"), {})
        problems = []
        for key, (label, options) in fields.items():
            if not v.get(key):
                problems.append(f"{label} is required")
            elif options and v[key] not in options:
                problems.append(f"{label} must be one of {', '.join(options)}")
        if problems:
            raise ValueError("; ".join(problems))
        return v


class PaymentTransactionPayload(Payload):
    order_id: Text = ""
    user_id: Text = ""
    payment_method: Text = "razorpay"
    transaction_id: Text = ""
    amount: OptionalMoney = None
    currency: Text = "INR"
    status: TransactionStatus = TransactionStatus.INITIATED
    gateway_order_id: Optional[str] = None
    refund_reason: Optional[str] = None
    failure_reason: Optional[str] = None

    @field_validator("order_id")
    @classmethod
    def validate_order_id(cls, v):
        return _require(v, "Order is required")

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v):
        return _require(v, "User is required")

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, v):
        return _require(v, "Payment method is required")

    @field_validator("transaction_id")
    @classmethod
    def validate_transaction_id(cls, v):
        return _require(v, "Transaction ID is required")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v is None or v <= 0:
            raise ValueError("Valid amount is required")
        return v

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return _require(v, "Currency is required")


class AddressPayload(Payload):
    name: Text = ""
    phone: Text = ""
    address: Text = ""
    city: Text = ""
    state: Text = ""
    pincode: Text = ""
    country: Text = "India"
    type: AddressType = AddressType.HOME
    is_default: bool = False
    user_id: Optional[str] = None

    @field_validator("name", "address", "city", "state", "country")
    @classmethod
    def validate_required(cls, v, info: ValidationInfo):
        return _require(v, f"{info.field_name.capitalize()} is required")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        _require(v, "Phone number is required")
        if not re.fullmatch(r"[0-9]{10}", v):
            raise ValueError("Phone number must be 10 digits")
        return v

    @field_validator("pincode")
    @classmethod
    def validate_pincode(cls, v):
        _require(v, "Pincode is required")
        if not re.fullmatch(r"[0-9]{6}", v):
            raise ValueError("Pincode must be 6 digits")
        return v


class BrandPayload(Payload):
    name: Text = ""
    slug: Slug = ""
    logo: Optional[str] = None
    description: str = ""
    website: str = ""
    status: bool = True
    is_featured: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _require(v, "Brand name is required")

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v):
        return _require(v, "Slug is required")


class CategoryPayload(Payload):
    name: Text = ""
    slug: Slug = ""
    parent_id: Annotated[Optional[str], BeforeValidator(_blank_to_none)] = None
    level: int = 0
    icon: Optional[str] = None
    image: Optional[str] = None
    status: bool = True
    sort_order: int = 0
    is_featured: bool = False
    meta_title: str = ""
    meta_description: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _require(v, "Name is required")

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v):
        return _require(v, "Slug is required")


def _wire_name(part: Any) -> str:
    # Defaults are validated under the field name, input under the alias
    if isinstance(part, str) and "_" in part:
        return to_camel(part)
    return str(part)


SchemaT = TypeVar("SchemaT", bound=Payload)


def validate_form(schema: Type[SchemaT], data: Any) -> SchemaT:
    """Validate raw form data against a payload schema.

    Args:
        schema: Payload class to validate against
        data: Mapping of form values (snake_case or camelCase keys), or an
            already built payload

    Returns:
        The validated payload

    Raises:
        FormValidationError: With one message per offending field
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for error in e.errors():
            key = ".".join(_wire_name(part) for part in error["loc"]) or "form"
            message = error["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.setdefault(key, message)
        raise FormValidationError(errors)
