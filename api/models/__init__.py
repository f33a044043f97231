from models.shop import Shop
from models.package import Package
from models.checkout_session import CheckoutSession
from models.purchase import Purchase
from models.subscription import Subscription

__all__ = [
    "Shop", "Package", "CheckoutSession", "Purchase", "Subscription",
]
