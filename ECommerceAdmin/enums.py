from enum import Enum


# Wire values match what the backend stores, so members compare equal to raw JSON strings

class DiscountKind(str, Enum):
    PERCENT = "percent"
    FLAT = "flat"


class RewardType(str, Enum):
    FREE = "free"
    PERCENT = "percent"
    FLAT = "flat"


class OfferStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LifecycleStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    UPCOMING = "upcoming"
    EXPIRED = "expired"


class ApplicableTo(str, Enum):
    ALL = "all"
    PRODUCT = "product"
    CATEGORY = "category"
    BRAND = "brand"


class PaymentMethodName(str, Enum):
    COD = "COD"
    RAZORPAY = "Razorpay"
    STRIPE = "Stripe"
    PAYPAL = "PayPal"


class PaymentType(str, Enum):
    CASH = "Cash"
    ONLINE = "Online"
    GATEWAY = "Gateway"


class TransactionStatus(str, Enum):
    INITIATED = "initiated"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUND = "refund"


class AddressType(str, Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"
