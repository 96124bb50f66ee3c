import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ECommerceAdmin.enums import OfferStatus
from ECommerceAdmin.exceptions import FormValidationError, InvalidArgument
from ECommerceAdmin.models import ReferenceData, SessionContext
from ECommerceAdmin.service import (
    AddressService,
    AutoDiscountService,
    BuyXGetYService,
    CartService,
    CatalogService,
    ComboOfferService,
    CouponService,
    PaymentMethodService,
    PaymentTransactionService,
)

PRODUCTS = [
    {"_id": "p1", "title": "Running Shoe", "price": 2500},
    {"_id": "p2", "title": "Sports Sock", "price": 500},
]


class TestCatalogService:
    async def test_reference_data_survives_a_failing_list(self, client, backend):
        backend.add("GET", "/admin/products", {"data": PRODUCTS})
        backend.add("GET", "/admin/categories", [{"_id": "c1", "name": "Shoes"}])
        backend.add("GET", "/admin/brands", {"message": "boom"}, status=500)
        data = await CatalogService(client).load_reference_data()
        assert data.products == PRODUCTS
        assert data.categories == [{"_id": "c1", "name": "Shoes"}]
        assert data.brands == []

    async def test_save_brand_validates_before_sending(self, client, backend):
        with pytest.raises(FormValidationError):
            await CatalogService(client).save_brand({"name": "", "slug": ""})
        assert backend.requests == []

    async def test_save_brand_posts_json(self, client, backend):
        backend.add("POST", "/admin/brands", {"data": {"_id": "b1"}})
        result = await CatalogService(client).save_brand({"name": "Nike", "slug": "Nike", "isFeatured": True})
        assert result == {"_id": "b1"}
        assert backend.body_of(backend.last) == {
            "name": "Nike", "slug": "nike", "description": "", "website": "", "status": True, "isFeatured": True,
        }

    async def test_toggle_brand_featured(self, client, backend):
        backend.add("PUT", "/admin/brands/b1", {"success": True})
        assert await CatalogService(client).toggle_brand_featured("b1", False) is True
        assert backend.body_of(backend.last) == {"isFeatured": True}

    async def test_category_tree(self, client, backend):
        backend.add("GET", "/admin/categories", [
            {"_id": "c2", "name": "Sneakers", "parentId": "c1"},
            {"_id": "c1", "name": "Shoes", "parentId": None},
        ])
        tree = await CatalogService(client).category_tree(search="sneak")
        assert [(c["name"], c["level"]) for c in tree] == [("Sneakers", 1)]

    def test_filter_products(self):
        products = [
            {"_id": "p1", "title": "Shoe", "sku": "SH-1", "status": True, "brandId": {"_id": "b1"},
             "categoryIds": [{"_id": "c1"}]},
            {"_id": "p2", "title": "Sock", "sku": "SO-1", "status": False, "brandId": {"_id": "b2"},
             "categoryIds": []},
        ]
        assert CatalogService.filter_products(products, search="so-") == [products[1]]
        assert CatalogService.filter_products(products, brand_id="b1") == [products[0]]
        assert CatalogService.filter_products(products, category_id="c1") == [products[0]]
        assert CatalogService.filter_products(products, status="inactive") == [products[1]]


class TestCouponService:
    async def test_create(self, client, backend):
        backend.add("POST", "/admin/coupons", {"data": {"_id": "c1", "code": "SAVE20"}})
        result = await CouponService(client).save({"code": "save20", "type": "percent", "value": 20})
        assert result["_id"] == "c1"
        assert backend.last.method == "POST"
        assert backend.body_of(backend.last)["code"] == "SAVE20"

    async def test_update(self, client, backend):
        backend.add("PUT", "/admin/coupons/c1", {"data": {"_id": "c1"}})
        await CouponService(client).save({"code": "SAVE20", "value": 25}, item_id="c1")
        assert backend.last.url.path == "/api/admin/coupons/c1"

    async def test_invalid_form_sends_nothing(self, client, backend):
        with pytest.raises(FormValidationError) as exc_info:
            await CouponService(client).save({"code": "X", "value": 200})
        assert set(exc_info.value.errors) == {"code", "value"}
        assert backend.requests == []

    async def test_toggle_status(self, client, backend):
        backend.add("PUT", "/admin/coupons/c1", {"success": True})
        new_status = await CouponService(client).toggle_status("c1", "active")
        assert new_status is OfferStatus.INACTIVE
        assert backend.body_of(backend.last) == {"status": "inactive"}

    async def test_delete(self, client, backend):
        backend.add("DELETE", "/admin/coupons/c1", {"success": True})
        await CouponService(client).delete("c1")
        assert backend.calls("DELETE", "/admin/coupons/c1")

    async def test_load_form_for_edit(self, client, backend):
        backend.add("GET", "/admin/products", PRODUCTS)
        backend.add("GET", "/admin/categories", [])
        backend.add("GET", "/admin/brands", [])
        backend.add("GET", "/admin/coupons/c1", {"data": {"_id": "c1", "code": "SAVE20"}})
        reference_data, coupon = await CouponService(client).load_form(CatalogService(client), "c1")
        assert reference_data.products == PRODUCTS
        assert coupon["code"] == "SAVE20"

    def test_generate_code(self):
        assert re.fullmatch(r"[A-Z0-9]{8}", CouponService.generate_code())
        assert len(CouponService.generate_code(12)) == 12

    async def test_preview_on_sample_price(self, client):
        preview = CouponService(client).preview({"type": "percent", "value": "20", "maxDiscount": "150"})
        assert preview.subtotal == Decimal("1000")
        assert preview.discount_amount == Decimal("150")

    async def test_preview_zero_cap_means_no_cap(self, client):
        preview = CouponService(client).preview({"type": "percent", "value": 20, "maxDiscount": 0})
        assert preview.discount_amount == Decimal("200")

    async def test_sort(self, client):
        coupons = [{"code": "B", "usedCount": 3}, {"code": "C"}, {"code": "A", "usedCount": 9}]
        result = CouponService(client).sort(coupons, "usedCount", reverse=True)
        assert [c["code"] for c in result] == ["A", "B", "C"]

    async def test_preview_respects_minimum_order(self, client):
        preview = CouponService(client).preview({"type": "flat", "value": 100, "min_order_amount": 2000})
        assert preview.applicable is False

    async def test_preview_incomplete_form(self, client):
        assert CouponService(client).preview({"type": "percent", "value": ""}) is None

    async def test_filter(self, client):
        now = datetime(2025, 6, 15, tzinfo=timezone.utc)
        coupons = [
            {"code": "SUMMER10", "type": "percent", "status": "active", "endDate": "2025-06-30"},
            {"code": "FLAT50", "type": "flat", "status": "active", "endDate": "2025-01-31"},
        ]
        service = CouponService(client)
        assert service.filter(coupons, status="expired", now=now) == [coupons[1]]
        assert service.filter(coupons, discount_type="percent") == [coupons[0]]
        assert service.filter(coupons, search="flat") == [coupons[1]]


class TestAutoDiscountService:
    async def test_preview_gates_on_min_cart_value(self, client):
        service = AutoDiscountService(client)
        form = {"discountType": "percent", "value": 10, "minCartValue": 1500}
        assert service.preview(form).applicable is False
        assert service.preview(form, sample_price=1500).discount_amount == Decimal("150")

    def test_target_names(self):
        reference_data = ReferenceData(
            products=PRODUCTS,
            categories=[{"_id": "c1", "name": "Shoes"}, {"_id": "c2", "name": "Socks"}],
        )
        discount = {"applicableTo": {"type": "category", "ids": ["c2"]}}
        assert AutoDiscountService.target_names(discount, reference_data) == ["Socks"]
        discount = {"applicableTo": {"type": "product", "ids": ["p1", "p2"]}}
        assert AutoDiscountService.target_names(discount, reference_data) == ["Running Shoe", "Sports Sock"]
        assert AutoDiscountService.target_names({"applicableTo": {"type": "all", "ids": []}}, reference_data) == []

    async def test_filter_by_applicable_to(self, client):
        discounts = [
            {"title": "All", "discountType": "flat", "applicableTo": {"type": "all"}},
            {"title": "Shoes", "discountType": "percent", "applicableTo": {"type": "category"}},
        ]
        result = AutoDiscountService(client).filter(discounts, applicable_to="category")
        assert result == [discounts[1]]


class TestBuyXGetYService:
    async def test_free_reward(self, client):
        preview = BuyXGetYService(client).reward_preview({"quantity": 2, "discountType": "free"}, 300)
        assert preview.subtotal == Decimal("600")
        assert preview.final_price == Decimal("0")

    async def test_percent_reward(self, client):
        preview = BuyXGetYService(client).reward_preview(
            {"quantity": 1, "discount_type": "percent", "value": "50"}, "999"
        )
        assert preview.discount_amount == Decimal("499.5")

    async def test_flat_reward_applies_once(self, client):
        preview = BuyXGetYService(client).reward_preview({"quantity": 3, "discountType": "flat", "value": 100}, 250)
        assert preview.discount_amount == Decimal("100")
        assert preview.final_price == Decimal("650")

    @pytest.mark.parametrize("reward, price", [
        ({"quantity": 0, "discountType": "free"}, 100),
        ({"quantity": 1, "discountType": "percent"}, 100),
        ({"quantity": 1, "discountType": "percent", "value": 150}, 100),
        ({"quantity": 1, "discountType": "free"}, ""),
    ])
    async def test_incomplete_reward(self, client, reward, price):
        assert BuyXGetYService(client).reward_preview(reward, price) is None

    async def test_filter_by_reward_type(self, client):
        offers = [{"title": "B2G1", "get": {"discountType": "free"}}, {"title": "B1G1 half", "get": {"discountType": "percent"}}]
        assert BuyXGetYService(client).filter(offers, reward_type="free") == [offers[0]]


class TestComboOfferService:
    def test_savings(self):
        summary = ComboOfferService.savings(
            [{"productId": "p1", "quantity": 1}, {"productId": "p2", "quantity": 2}, {"productId": "", "quantity": 1}],
            3000,
            PRODUCTS,
        )
        assert summary.total_price == Decimal("3500")
        assert summary.savings == Decimal("500")
        assert summary.savings_percent == Decimal("14.3")

    def test_savings_without_items(self):
        summary = ComboOfferService.savings([], 100, PRODUCTS)
        assert summary.savings_percent == Decimal("0")

    async def test_rejects_combo_price_without_savings(self, client, backend):
        payload = {
            "title": "Run kit",
            "items": [{"productId": "p1", "quantity": 1}, {"productId": "p2", "quantity": 1}],
            "comboPrice": 3000,
        }
        with pytest.raises(FormValidationError) as exc_info:
            await ComboOfferService(client).save(payload, products=PRODUCTS)
        assert exc_info.value.errors == {
            "comboPrice": "Combo price should be less than total price for savings",
        }
        assert backend.requests == []

    async def test_saves_discounted_combo(self, client, backend):
        backend.add("POST", "/admin/combo-offers", {"data": {"_id": "k1"}})
        payload = {
            "title": "Run kit",
            "items": [{"productId": "p1", "quantity": 1}, {"productId": "p2", "quantity": 1}],
            "comboPrice": "2799.50",
        }
        await ComboOfferService(client).save(payload, products=PRODUCTS)
        body = backend.body_of(backend.last)
        assert body["comboPrice"] == 2799.5
        assert body["items"] == [{"productId": "p1", "quantity": 1}, {"productId": "p2", "quantity": 1}]


class TestPaymentServices:
    async def test_toggle_method_status(self, client, backend):
        backend.add("PUT", "/admin/payment-methods/m1", {"success": True})
        assert await PaymentMethodService(client).toggle_status("m1", True) is False
        assert backend.body_of(backend.last) == {"status": False}

    async def test_method_stats_and_filter(self, client):
        methods = [
            {"name": "COD", "type": "Cash", "status": True, "config": {}},
            {"name": "Razorpay", "type": "Gateway", "status": False, "config": {"keyId": "k"}},
        ]
        service = PaymentMethodService(client)
        assert service.stats(methods) == {"total": 2, "active": 1, "inactive": 1, "configured": 1}
        assert service.filter(methods, status="active") == [methods[0]]
        assert service.filter(methods, search="gate") == [methods[1]]

    async def test_transactions_page(self, client, backend):
        backend.add("GET", "/admin/payment-transactions", {
            "transactions": [{"_id": "t1"}],
            "pagination": {"page": 2, "limit": 10, "total": 11, "pages": 2},
        })
        transactions, pagination = await PaymentTransactionService(client).list(
            page=2, limit=10, status="success", payment_method="razorpay"
        )
        assert transactions == [{"_id": "t1"}]
        assert pagination["total"] == 11
        assert dict(backend.last.url.params) == {
            "page": "2", "limit": "10", "status": "success", "paymentMethod": "razorpay",
        }

    async def test_transactions_default_pagination(self, client, backend):
        backend.add("GET", "/admin/payment-transactions", {})
        transactions, pagination = await PaymentTransactionService(client).list()
        assert transactions == []
        assert pagination == {"page": 1, "limit": 20, "total": 0, "pages": 0}

    async def test_refund(self, client, backend):
        backend.add("POST", "/admin/payment-transactions/t1/refund", {"success": True})
        await PaymentTransactionService(client).refund("t1", "Damaged item")
        assert backend.body_of(backend.last) == {"refundReason": "Damaged item"}

    async def test_stats(self, client, backend):
        backend.add("GET", "/admin/payment-transactions/stats", {"totalAmount": 1200})
        assert await PaymentTransactionService(client).stats(start_date="2025-01-01") == {"totalAmount": 1200}
        assert dict(backend.last.url.params) == {"startDate": "2025-01-01"}


ADDRESS_FORM = {
    "name": "Asha", "phone": "9876543210", "address": "12 MG Road", "city": "Pune",
    "state": "MH", "pincode": "411001", "type": "work",
}


class TestAddressService:
    async def test_requires_user(self, client):
        with pytest.raises(InvalidArgument):
            await AddressService(client, SessionContext()).list()

    async def test_list_scoped_to_user(self, client, backend, session):
        backend.add("GET", "/user/addresses", {"data": [{"_id": "a1"}]})
        assert await AddressService(client, session).list() == [{"_id": "a1"}]
        assert backend.last.url.params["userId"] == "user-1"

    async def test_save_adds_user(self, client, backend, session):
        backend.add("POST", "/user/addresses", {"data": {"_id": "a1"}})
        await AddressService(client, session).save(ADDRESS_FORM)
        body = backend.body_of(backend.last)
        assert body["userId"] == "user-1"
        assert body["type"] == "work"

    async def test_set_default(self, client, backend, session):
        backend.add("GET", "/user/addresses", [
            {"_id": "a1", "isDefault": True}, {"_id": "a2", "isDefault": False},
        ])
        backend.add("PUT", "/user/addresses/a2", {"success": True})
        backend.add("PUT", "/user/addresses/a1", {"success": True})
        await AddressService(client, session).set_default("a2")
        puts = [(r.url.path, backend.body_of(r)) for r in backend.requests if r.method == "PUT"]
        assert puts == [
            ("/api/user/addresses/a2", {"isDefault": True}),
            ("/api/user/addresses/a1", {"isDefault": False}),
        ]

    async def test_filter_and_stats(self, client, session):
        addresses = [
            {"name": "Home", "city": "Pune", "type": "home", "isDefault": True},
            {"name": "Office", "city": "Mumbai", "type": "work"},
        ]
        service = AddressService(client, session)
        assert service.filter(addresses, search="mum") == [addresses[1]]
        assert service.filter(addresses, address_type="home") == [addresses[0]]
        assert service.stats(addresses) == {"total": 2, "default": 1, "home": 1, "work": 1, "other": 0}


class TestCartService:
    async def test_missing_cart_is_empty(self, client, backend, session):
        cart = await CartService(client, session).get_cart()
        assert cart["items"] == []
        assert backend.last.url.params["sessionId"] == session.session_id

    async def test_update_quantity(self, client, backend, session):
        backend.add("PUT", "/cart/update-quantity", {"data": {"items": []}})
        await CartService(client, session).update_quantity("p1", 3, variant_id="v1")
        body = backend.body_of(backend.last)
        assert body["quantity"] == 3
        assert body["variantId"] == "v1"
        assert body["userId"] == "user-1"
        assert body["sessionId"].startswith("session_")

    async def test_quantity_below_one(self, client, backend, session):
        with pytest.raises(InvalidArgument):
            await CartService(client, session).update_quantity("p1", 0)
        assert backend.requests == []

    async def test_remove_item_sends_body(self, client, backend, session):
        backend.add("DELETE", "/cart/item", {"data": {"items": []}})
        await CartService(client, session).remove_item("p1")
        assert backend.body_of(backend.last)["productId"] == "p1"

    async def test_apply_coupon(self, client, backend, session):
        backend.add("POST", "/cart/apply-coupon", {"data": {"couponCode": "SAVE10", "discount": 100}})
        cart = await CartService(client, session).apply_coupon(" SAVE10 ")
        assert cart["discount"] == 100
        assert backend.body_of(backend.last)["couponCode"] == "SAVE10"

    async def test_blank_coupon(self, client, session):
        with pytest.raises(InvalidArgument, match="Please enter a coupon code"):
            await CartService(client, session).apply_coupon("  ")

    async def test_clear(self, client, backend, session):
        backend.add("POST", "/cart/clear", {"success": True})
        assert (await CartService(client, session).clear())["items"] == []

    async def test_add_item(self, client, backend, session):
        backend.add("POST", "/cart", {"data": {"items": [{"productId": "p1", "quantity": 2}]}})
        cart = await CartService(client, session).add_item("p1", quantity=2)
        assert cart["items"][0]["quantity"] == 2
        assert backend.body_of(backend.last) == {
            "userId": "user-1", "sessionId": session.session_id,
            "productId": "p1", "variantId": None, "quantity": 2,
        }

    async def test_add_item_quantity_below_one(self, client, backend, session):
        with pytest.raises(InvalidArgument):
            await CartService(client, session).add_item("p1", quantity=0)
        assert backend.requests == []

    async def test_merge_on_login(self, client, backend):
        guest = SessionContext(token="test-token", session_id="session_1_abc")
        backend.add("POST", "/cart/merge", {"data": {"items": [{"productId": "p1", "quantity": 1}]}})
        cart = await CartService(client, guest).merge_on_login("user-9")
        assert len(cart["items"]) == 1
        assert backend.body_of(backend.last) == {"userId": "user-9", "sessionId": "session_1_abc"}
        assert guest.user_id == "user-9"

    async def test_item_count(self, client, backend, session):
        backend.add("GET", "/cart", {"data": {"items": [{"quantity": 2}, {"quantity": 3}]}})
        assert await CartService(client, session).item_count() == 5

    async def test_item_count_when_cart_fails(self, client, backend, session):
        backend.add("GET", "/cart", {"message": "down"}, status=500)
        assert await CartService(client, session).item_count() == 0

    def test_subtotal(self):
        cart = {"items": [{"finalPrice": 199.9, "quantity": 2}, {"finalPrice": "50", "quantity": 1}]}
        assert CartService.subtotal(cart) == Decimal("449.8")
        assert CartService.subtotal(None) == Decimal("0")
