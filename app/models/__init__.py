# app/models/__init__.py
# Import all models here so SQLAlchemy registers them into Base.metadata.

from app.models.customer import Customer  # noqa: F401

from app.models.promo_code import PromoCode  # noqa: F401
from app.models.promo_code_usage import PromoCodeUsage  # noqa: F401
from app.models.pricing_rule import PricingRule  # noqa: F401

from app.models.order import Order  # noqa: F401
from app.models.order_item import OrderItem  # noqa: F401
