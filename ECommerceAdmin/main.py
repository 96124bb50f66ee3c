import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx

from ECommerceAdmin.client import ApiClient
from ECommerceAdmin.enums import DiscountKind
from ECommerceAdmin.logger import get_logger
from ECommerceAdmin.models import DiscountRule, SessionContext
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
from ECommerceAdmin.strategy import calculate_discount

logger = get_logger("main")


@dataclass
class AdminServices:
    client: ApiClient
    catalog: CatalogService
    coupons: CouponService
    auto_discounts: AutoDiscountService
    buy_x_get_y: BuyXGetYService
    combo_offers: ComboOfferService
    payment_methods: PaymentMethodService
    payment_transactions: PaymentTransactionService
    addresses: AddressService
    cart: CartService

    async def aclose(self) -> None:
        await self.client.aclose()


class ECommerceAdminFactory:

    def setup(self, session: Optional[SessionContext] = None,
              base_url: Optional[str] = None,
              transport: Optional[httpx.AsyncBaseTransport] = None) -> AdminServices:
        session = session or SessionContext()
        client = ApiClient(session=session, base_url=base_url, transport=transport)
        logger.info("Admin client ready for %s", client.base_url)
        return AdminServices(
            client=client,
            catalog=CatalogService(client),
            coupons=CouponService(client),
            auto_discounts=AutoDiscountService(client),
            buy_x_get_y=BuyXGetYService(client),
            combo_offers=ComboOfferService(client),
            payment_methods=PaymentMethodService(client),
            payment_transactions=PaymentTransactionService(client),
            addresses=AddressService(client, session),
            cart=CartService(client, session),
        )


async def run_demo() -> None:
    admin = ECommerceAdminFactory().setup(SessionContext(user_id="demo-user"))
    try:
        scenarios = [
            ("Percent", Decimal(1000), DiscountRule(DiscountKind.PERCENT, 20)),
            ("Percent with cap", Decimal(1000), DiscountRule(DiscountKind.PERCENT, 50, max_discount=300)),
            ("Flat", Decimal(1000), DiscountRule(DiscountKind.FLAT, 100)),
            ("Below minimum", Decimal(400), DiscountRule(DiscountKind.FLAT, 100, min_cart_value=500)),
            ("Flat exceeds subtotal", Decimal(50), DiscountRule(DiscountKind.FLAT, 100)),
        ]
        for label, subtotal, rule in scenarios:
            logger.info("%s: %s", label, calculate_discount(subtotal, rule).as_display())

        free_reward = admin.buy_x_get_y.reward_preview({"quantity": 1, "discountType": "free"}, 499)
        logger.info("Buy X get Y free reward: %s", free_reward.as_display())

        coupon_preview = admin.coupons.preview({"type": "percent", "value": "15", "maxDiscount": "100"})
        logger.info("Coupon preview on sample cart: %s", coupon_preview.as_display())

        products = [{"_id": "p1", "price": 600}, {"_id": "p2", "price": 400}]
        combo = admin.combo_offers.savings(
            [{"productId": "p1", "quantity": 1}, {"productId": "p2", "quantity": 1}], 850, products
        )
        logger.info("Combo saves %s (%s%%)", combo.savings, combo.savings_percent)
    finally:
        await admin.aclose()


if __name__ == "__main__":
    asyncio.run(run_demo())
