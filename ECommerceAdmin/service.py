"""Service layer for the admin screens.

Each service does what one list/form pair of the admin panel does: load the
collection and its reference data, validate a form, submit it, flip an entity's
status, delete it, and filter the loaded list. Discount previews all go through
the shared calculator in ``ECommerceAdmin.strategy``.
"""
import asyncio
import random
import string
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic.alias_generators import to_camel

from ECommerceAdmin.client import ApiClient, unwrap
from ECommerceAdmin.config import Config
from ECommerceAdmin.enums import AddressType, OfferStatus
from ECommerceAdmin.exceptions import ApiError, FormValidationError, InvalidArgument, NotFound
from ECommerceAdmin.listing import count_by_status, filter_items, flatten_category_tree, names_for, sort_by
from ECommerceAdmin.logger import get_logger
from ECommerceAdmin.models import (
    ComboSavings,
    DiscountPreview,
    DiscountRule,
    Number,
    ONE_HUNDRED,
    ReferenceData,
    SessionContext,
    to_decimal,
)
from ECommerceAdmin.repository import RestRepository
from ECommerceAdmin.schemas import (
    AddressPayload,
    AutoDiscountPayload,
    BrandPayload,
    BuyXGetYPayload,
    CategoryPayload,
    ComboOfferPayload,
    CouponPayload,
    Payload,
    PaymentMethodPayload,
    PaymentTransactionPayload,
    validate_form,
)
from ECommerceAdmin.strategy import calculate_discount, try_calculate_discount

logger = get_logger("service")


def _form_dict(form: Any) -> Dict[str, Any]:
    if isinstance(form, Payload):
        return form.model_dump(by_alias=True)
    return dict(form or {})


def _read(data: Dict[str, Any], name: str) -> Any:
    """Read a form field given either its snake_case or camelCase name."""
    if name in data:
        return data[name]
    return data.get(to_camel(name))


class CatalogService:
    """Products, categories and brands: the reference data every offer form uses."""

    def __init__(self, client: ApiClient):
        self.products = RestRepository(client, "/admin/products")
        self.categories = RestRepository(client, "/admin/categories")
        self.brands = RestRepository(client, "/admin/brands")

    @staticmethod
    async def _safe_list(repository: RestRepository) -> List[Dict[str, Any]]:
        # A missing lookup list leaves its picker empty; the form stays usable
        try:
            return await repository.list()
        except ApiError as e:
            logger.error("Error fetching %s: %s", repository.base_path, e.message)
            return []

    async def load_reference_data(self) -> ReferenceData:
        products, categories, brands = await asyncio.gather(
            self._safe_list(self.products),
            self._safe_list(self.categories),
            self._safe_list(self.brands),
        )
        return ReferenceData(products=products, categories=categories, brands=brands)

    async def list_products(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self.products.list(params)

    async def get_product(self, product_id: str) -> Dict[str, Any]:
        return await self.products.get(product_id)

    async def toggle_product_status(self, product_id: str, current_status: bool) -> bool:
        await self.products.update(product_id, {"status": not current_status})
        return not current_status

    async def delete_product(self, product_id: str) -> None:
        await self.products.delete(product_id)
        logger.info("Product %s deleted", product_id)

    @staticmethod
    def filter_products(products: Iterable[Dict[str, Any]],
                        search: Optional[str] = None,
                        brand_id: Optional[str] = None,
                        category_id: Optional[str] = None,
                        product_type: Optional[str] = None,
                        status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Search on title and SKU; brand, category, type and active/inactive filters."""
        filtered = filter_items(products, search=search, search_fields=("title", "sku"),
                                brandId___id=brand_id, type=product_type)
        if category_id not in (None, "all"):
            filtered = [
                p for p in filtered
                if any(
                    (cat.get("_id") if isinstance(cat, dict) else cat) == category_id
                    for cat in p.get("categoryIds") or []
                )
            ]
        if status not in (None, "all"):
            wanted = status == OfferStatus.ACTIVE
            filtered = [p for p in filtered if bool(p.get("status")) == wanted]
        return filtered

    async def list_categories(self) -> List[Dict[str, Any]]:
        return await self.categories.list()

    async def category_tree(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        flat = flatten_category_tree(await self.categories.list())
        return filter_items(flat, search=search, search_fields=("name",))

    async def get_category(self, category_id: str) -> Dict[str, Any]:
        return await self.categories.get(category_id)

    async def save_category(self, payload: Any, category_id: Optional[str] = None) -> Any:
        category = validate_form(CategoryPayload, payload)
        if category_id:
            result = await self.categories.update(category_id, category)
            logger.info("Category %s updated", category_id)
        else:
            result = await self.categories.create(category)
            logger.info("Category %s created", category.slug)
        return result

    async def toggle_category_status(self, category_id: str, current_status: bool) -> bool:
        await self.categories.update(category_id, {"status": not current_status})
        return not current_status

    async def delete_category(self, category_id: str) -> None:
        await self.categories.delete(category_id)
        logger.info("Category %s deleted", category_id)

    async def list_brands(self, active_only: bool = False) -> List[Dict[str, Any]]:
        brands = await self.brands.list()
        if active_only:
            return [b for b in brands if b.get("status")]
        return brands

    async def get_brand(self, brand_id: str) -> Dict[str, Any]:
        return await self.brands.get(brand_id)

    async def save_brand(self, payload: Any, brand_id: Optional[str] = None) -> Any:
        brand = validate_form(BrandPayload, payload)
        if brand_id:
            result = await self.brands.update(brand_id, brand)
            logger.info("Brand %s updated", brand_id)
        else:
            result = await self.brands.create(brand)
            logger.info("Brand %s created", brand.slug)
        return result

    async def toggle_brand_status(self, brand_id: str, current_status: bool) -> bool:
        await self.brands.update(brand_id, {"status": not current_status})
        return not current_status

    async def toggle_brand_featured(self, brand_id: str, current_featured: bool) -> bool:
        await self.brands.update(brand_id, {"isFeatured": not current_featured})
        return not current_featured

    async def delete_brand(self, brand_id: str) -> None:
        await self.brands.delete(brand_id)
        logger.info("Brand %s deleted", brand_id)


class OfferService:
    """Common list/form operations of the promotional offer screens.

    Subclasses name the collection, the payload schema and the fields the list
    search box looks at.
    """

    base_path: str = ""
    schema: type = Payload
    label: str = "Offer"
    search_fields: Tuple[str, ...] = ("title",)

    def __init__(self, client: ApiClient, repository: Optional[RestRepository] = None):
        self._repository = repository or RestRepository(client, self.base_path)

    async def list(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self._repository.list(params)

    async def get(self, item_id: str) -> Dict[str, Any]:
        return await self._repository.get(item_id)

    async def load_form(self, catalog: CatalogService,
                        item_id: Optional[str] = None) -> Tuple[ReferenceData, Optional[Dict[str, Any]]]:
        """Fetch the reference lists and, when editing, the existing entity."""
        if not item_id:
            return await catalog.load_reference_data(), None
        reference_data, item = await asyncio.gather(catalog.load_reference_data(), self.get(item_id))
        return reference_data, item

    async def save(self, payload: Any, item_id: Optional[str] = None) -> Any:
        """Validate the form and create the entity, or update it when ``item_id`` is set.

        Raises:
            FormValidationError: If the form does not validate; nothing is sent
        """
        offer = validate_form(self.schema, payload)
        if item_id:
            result = await self._repository.update(item_id, offer)
            logger.info("%s %s updated", self.label, item_id)
        else:
            result = await self._repository.create(offer)
            logger.info("%s created", self.label)
        return result

    async def toggle_status(self, item_id: str, current_status: str) -> OfferStatus:
        new_status = OfferStatus.INACTIVE if current_status == OfferStatus.ACTIVE else OfferStatus.ACTIVE
        await self._repository.update(item_id, {"status": new_status.value})
        logger.info("%s %s is now %s", self.label, item_id, new_status.value)
        return new_status

    async def delete(self, item_id: str) -> None:
        await self._repository.delete(item_id)
        logger.info("%s %s deleted", self.label, item_id)

    def filter(self, items: Iterable[Dict[str, Any]],
               status: Optional[str] = None,
               search: Optional[str] = None,
               now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        return filter_items(items, search=search, search_fields=self.search_fields,
                            lifecycle=status, now=now)

    def stats(self, items: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, int]:
        return count_by_status(items, now)

    def sort(self, items: Iterable[Dict[str, Any]], key: str, reverse: bool = False) -> List[Dict[str, Any]]:
        """Order the list by a dotted field; entities missing it come last."""
        return sort_by(items, key, reverse=reverse)


class CouponService(OfferService):
    base_path = "/admin/coupons"
    schema = CouponPayload
    label = "Coupon"
    search_fields = ("code",)

    @staticmethod
    def generate_code(length: int = 8) -> str:
        alphabet = string.ascii_uppercase + string.digits
        return "".join(random.choice(alphabet) for _ in range(length))

    def preview(self, form: Any, sample_price: Optional[Number] = None) -> Optional[DiscountPreview]:
        """Illustrate the coupon on a sample cart; ``None`` while the form is incomplete."""
        data = _form_dict(form)
        return try_calculate_discount(
            sample_price if sample_price is not None else Config.PREVIEW_SAMPLE_PRICE,
            _read(data, "type") or "percent",
            _read(data, "value"),
            max_discount=_read(data, "max_discount") or None,
            min_cart_value=_read(data, "min_order_amount"),
        )

    def filter(self, items: Iterable[Dict[str, Any]],
               status: Optional[str] = None,
               search: Optional[str] = None,
               now: Optional[datetime] = None,
               discount_type: Optional[str] = None) -> List[Dict[str, Any]]:
        return filter_items(items, search=search, search_fields=self.search_fields,
                            lifecycle=status, now=now, type=discount_type)


class AutoDiscountService(OfferService):
    base_path = "/admin/auto-discounts"
    schema = AutoDiscountPayload
    label = "Auto discount"

    @staticmethod
    def target_names(discount: Dict[str, Any], reference_data: ReferenceData) -> List[str]:
        """Names of the products, categories or brands a discount is limited to."""
        applicable_to = discount.get("applicableTo") or {}
        candidates = {
            "product": reference_data.products,
            "category": reference_data.categories,
            "brand": reference_data.brands,
        }.get(applicable_to.get("type"), [])
        return names_for(applicable_to.get("ids") or [], candidates)

    def preview(self, form: Any, sample_price: Optional[Number] = None) -> Optional[DiscountPreview]:
        data = _form_dict(form)
        return try_calculate_discount(
            sample_price if sample_price is not None else Config.PREVIEW_SAMPLE_PRICE,
            _read(data, "discount_type") or "percent",
            _read(data, "value"),
            min_cart_value=_read(data, "min_cart_value"),
        )

    def filter(self, items: Iterable[Dict[str, Any]],
               status: Optional[str] = None,
               search: Optional[str] = None,
               now: Optional[datetime] = None,
               discount_type: Optional[str] = None,
               applicable_to: Optional[str] = None) -> List[Dict[str, Any]]:
        return filter_items(items, search=search, search_fields=self.search_fields,
                            lifecycle=status, now=now,
                            discountType=discount_type, applicableTo__type=applicable_to)


class BuyXGetYService(OfferService):
    base_path = "/admin/buy-x-get-y"
    schema = BuyXGetYPayload
    label = "Buy X Get Y offer"

    def reward_preview(self, reward: Any, unit_price: Number) -> Optional[DiscountPreview]:
        """Discount on the reward items: ``unit_price`` times the reward quantity.

        Returns ``None`` while the reward block is incomplete or invalid.
        """
        data = _form_dict(reward)
        try:
            quantity = int(_read(data, "quantity") or 0)
            price = to_decimal(unit_price)
            if quantity <= 0 or price is None:
                return None
            rule = DiscountRule.from_buy_x_get_y_reward({
                "discountType": _read(data, "discount_type"),
                "value": _read(data, "value"),
            })
            return calculate_discount(price * quantity, rule)
        except (InvalidArgument, ValueError) as e:
            logger.debug("Reward preview not computable yet: %s", e)
            return None

    def filter(self, items: Iterable[Dict[str, Any]],
               status: Optional[str] = None,
               search: Optional[str] = None,
               now: Optional[datetime] = None,
               reward_type: Optional[str] = None) -> List[Dict[str, Any]]:
        return filter_items(items, search=search, search_fields=self.search_fields,
                            lifecycle=status, now=now, get__discountType=reward_type)


class ComboOfferService(OfferService):
    base_path = "/admin/combo-offers"
    schema = ComboOfferPayload
    label = "Combo offer"

    @staticmethod
    def savings(items: Iterable[Any], combo_price: Optional[Number],
                products: Iterable[Dict[str, Any]]) -> ComboSavings:
        """Compare the combo price with the items bought separately.

        Items without a product or with a non-positive quantity are not counted.
        """
        prices = {p.get("_id"): to_decimal(p.get("price")) or Decimal(0) for p in products}
        total = Decimal(0)
        for item in items:
            data = _form_dict(item)
            product_id = _read(data, "product_id")
            if isinstance(product_id, dict):
                product_id = product_id.get("_id")
            quantity = int(_read(data, "quantity") or 0)
            if product_id and quantity > 0:
                total += prices.get(product_id, Decimal(0)) * quantity
        combo = to_decimal(combo_price) or Decimal(0)
        savings = total - combo
        percent = Decimal(0)
        if total > 0:
            percent = (savings / total * ONE_HUNDRED).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return ComboSavings(total_price=total, combo_price=combo, savings=savings, savings_percent=percent)

    async def save(self, payload: Any, item_id: Optional[str] = None,
                   products: Optional[Iterable[Dict[str, Any]]] = None) -> Any:
        """Like ``OfferService.save``; with ``products`` it also rejects a combo
        price that does not undercut the items' total."""
        offer = validate_form(self.schema, payload)
        if products is not None:
            summary = self.savings(offer.items, offer.combo_price, products)
            if offer.combo_price >= summary.total_price:
                raise FormValidationError(
                    {"comboPrice": "Combo price should be less than total price for savings"}
                )
        return await super().save(offer, item_id)

    def filter(self, items: Iterable[Dict[str, Any]],
               status: Optional[str] = None,
               search: Optional[str] = None,
               now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        # The combo list filters on the stored status, not the date window
        return filter_items(items, search=search, search_fields=self.search_fields, status=status)


class PaymentMethodService(OfferService):
    base_path = "/admin/payment-methods"
    schema = PaymentMethodPayload
    label = "Payment method"
    search_fields = ("name", "type")

    async def toggle_status(self, item_id: str, current_status: bool) -> bool:
        await self._repository.update(item_id, {"status": not current_status})
        logger.info("Payment method %s enabled=%s", item_id, not current_status)
        return not current_status

    def filter(self, items: Iterable[Dict[str, Any]],
               status: Optional[str] = None,
               search: Optional[str] = None,
               now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        filtered = filter_items(items, search=search, search_fields=self.search_fields)
        if status not in (None, "all"):
            wanted = status == OfferStatus.ACTIVE
            filtered = [m for m in filtered if bool(m.get("status")) == wanted]
        return filtered

    def stats(self, items: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, int]:
        items = list(items)
        return {
            "total": len(items),
            "active": sum(1 for m in items if m.get("status")),
            "inactive": sum(1 for m in items if not m.get("status")),
            "configured": sum(1 for m in items if m.get("config")),
        }


class PaymentTransactionService:
    """Payment transactions: paged server-side listing, stats and refunds."""

    def __init__(self, client: ApiClient):
        self._client = client
        self._repository = RestRepository(client, "/admin/payment-transactions")

    async def list(self, page: int = 1, limit: int = 20,
                   status: Optional[str] = None,
                   payment_method: Optional[str] = None,
                   search: Optional[str] = None,
                   start_date: Optional[str] = None,
                   end_date: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        params = {
            "page": page,
            "limit": limit,
            "status": status,
            "paymentMethod": payment_method,
            "search": search,
            "startDate": start_date,
            "endDate": end_date,
        }
        response = await self._client.get(self._repository.base_path, params=params) or {}
        pagination = response.get("pagination") or {"page": page, "limit": limit, "total": 0, "pages": 0}
        return response.get("transactions") or [], pagination

    async def stats(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
        return await self._client.get(
            f"{self._repository.base_path}/stats",
            params={"startDate": start_date, "endDate": end_date},
        )

    async def get(self, transaction_id: str) -> Dict[str, Any]:
        return await self._repository.get(transaction_id)

    async def save(self, payload: Any, transaction_id: Optional[str] = None) -> Any:
        transaction = validate_form(PaymentTransactionPayload, payload)
        if transaction_id:
            return await self._repository.update(transaction_id, transaction)
        return await self._repository.create(transaction)

    async def refund(self, transaction_id: str, reason: Optional[str] = None) -> Any:
        result = await self._client.post(
            self._repository.item_path(transaction_id, "refund"),
            json={"refundReason": reason},
        )
        logger.info("Refund initiated for transaction %s", transaction_id)
        return result


class AddressService:
    """Saved addresses of the signed-in user."""

    search_fields = ("name", "address", "city", "phone")

    def __init__(self, client: ApiClient, session: SessionContext):
        self._client = client
        self._session = session
        self._repository = RestRepository(client, "/user/addresses")

    def _user_id(self) -> str:
        if not self._session.user_id:
            raise InvalidArgument("Please log in to manage addresses")
        return self._session.user_id

    async def list(self) -> List[Dict[str, Any]]:
        return await self._repository.list({"userId": self._user_id()})

    async def get(self, address_id: str) -> Dict[str, Any]:
        return await self._repository.get(address_id)

    async def save(self, payload: Any, address_id: Optional[str] = None) -> Any:
        address = validate_form(AddressPayload, payload)
        address = address.model_copy(update={"user_id": self._user_id()})
        if address_id:
            result = await self._repository.update(address_id, address)
            logger.info("Address %s updated", address_id)
        else:
            result = await self._repository.create(address)
            logger.info("Address added")
        return result

    async def set_default(self, address_id: str) -> None:
        """Make one address the default and clear the flag on the others."""
        addresses = await self.list()
        await self._repository.update(address_id, {"isDefault": True})
        for address in addresses:
            if address.get("_id") != address_id and address.get("isDefault"):
                await self._repository.update(address["_id"], {"isDefault": False})

    async def delete(self, address_id: str) -> None:
        await self._repository.delete(address_id)
        logger.info("Address %s deleted", address_id)

    def filter(self, items: Iterable[Dict[str, Any]],
               address_type: Optional[str] = None,
               search: Optional[str] = None) -> List[Dict[str, Any]]:
        return filter_items(items, search=search, search_fields=self.search_fields, type=address_type)

    @staticmethod
    def stats(items: Iterable[Dict[str, Any]]) -> Dict[str, int]:
        items = list(items)
        counts = {"total": len(items), "default": sum(1 for a in items if a.get("isDefault"))}
        for address_type in AddressType:
            counts[address_type.value] = sum(1 for a in items if a.get("type") == address_type)
        return counts


def empty_cart() -> Dict[str, Any]:
    return {"items": [], "couponCode": None, "discount": 0, "cartTotal": 0}


class CartService:
    """Shopping cart of the current session, guest or signed in."""

    def __init__(self, client: ApiClient, session: SessionContext):
        self._client = client
        self._session = session

    def _identity(self) -> Dict[str, Any]:
        return {"userId": self._session.user_id, "sessionId": self._session.ensure_session_id()}

    async def get_cart(self) -> Dict[str, Any]:
        try:
            cart = unwrap(await self._client.get("/cart", params=self._session.identity_params()))
        except NotFound:
            # No cart yet for this session
            return empty_cart()
        return cart or empty_cart()

    async def item_count(self) -> int:
        """Total quantity in the cart; 0 when the cart cannot be loaded."""
        try:
            cart = await self.get_cart()
        except ApiError as e:
            logger.warning("Cart count unavailable: %s", e.message)
            return 0
        return sum(int(item.get("quantity") or 0) for item in cart.get("items") or [])

    async def add_item(self, product_id: str, quantity: int = 1,
                       variant_id: Optional[str] = None) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidArgument("Quantity must be at least 1")
        body = {**self._identity(), "productId": product_id, "variantId": variant_id, "quantity": quantity}
        return unwrap(await self._client.post("/cart", json=body))

    async def merge_on_login(self, user_id: str) -> Dict[str, Any]:
        """Fold the guest cart of this session into the signed-in user's cart."""
        self._session.user_id = user_id
        cart = unwrap(await self._client.post(
            "/cart/merge", json={"userId": user_id, "sessionId": self._session.ensure_session_id()}
        ))
        logger.info("Guest cart %s merged into user %s", self._session.session_id, user_id)
        return cart

    async def update_quantity(self, product_id: str, quantity: int,
                              variant_id: Optional[str] = None) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidArgument("Quantity must be at least 1")
        body = {**self._identity(), "productId": product_id, "variantId": variant_id, "quantity": quantity}
        return unwrap(await self._client.put("/cart/update-quantity", json=body))

    async def remove_item(self, product_id: str, variant_id: Optional[str] = None) -> Dict[str, Any]:
        body = {**self._identity(), "productId": product_id, "variantId": variant_id}
        return unwrap(await self._client.delete("/cart/item", json=body))

    async def clear(self) -> Dict[str, Any]:
        await self._client.post("/cart/clear", json=self._identity())
        logger.info("Cart %s cleared", self._session.session_id)
        return empty_cart()

    async def apply_coupon(self, code: str) -> Dict[str, Any]:
        code = (code or "").strip()
        if not code:
            raise InvalidArgument("Please enter a coupon code")
        return unwrap(await self._client.post("/cart/apply-coupon", json={**self._identity(), "couponCode": code}))

    async def remove_coupon(self) -> Dict[str, Any]:
        return unwrap(await self._client.post("/cart/remove-coupon", json=self._identity()))

    @staticmethod
    def subtotal(cart: Optional[Dict[str, Any]]) -> Decimal:
        if not cart:
            return Decimal(0)
        return sum((
            (to_decimal(item.get("finalPrice")) or Decimal(0)) * int(item.get("quantity") or 0)
            for item in cart.get("items") or []
        ), Decimal(0))
