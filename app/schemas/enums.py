from __future__ import annotations

from enum import Enum


class DiscountType(str, Enum):
    percentage = "percentage"
    fixed_amount = "fixed_amount"


class EnhancedType(str, Enum):
    basic = "basic"
    free_delivery = "free_delivery"
    buy_one_get_one = "buy_one_get_one"
    buy_x_get_y = "buy_x_get_y"
    category_specific = "category_specific"
    first_time_customer = "first_time_customer"
    loyalty_reward = "loyalty_reward"


class RuleType(str, Enum):
    product = "product"
    category = "category"
    global_ = "global"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"


class PromoErrorCode(str, Enum):
    CODE_NOT_FOUND = "CODE_NOT_FOUND"
    CODE_EXPIRED = "CODE_EXPIRED"
    CODE_INACTIVE = "CODE_INACTIVE"
    MINIMUM_NOT_MET = "MINIMUM_NOT_MET"
    QUANTITY_OUT_OF_RANGE = "QUANTITY_OUT_OF_RANGE"
    NOT_FIRST_TIME = "NOT_FIRST_TIME"
    NO_ELIGIBLE_ITEMS = "NO_ELIGIBLE_ITEMS"
    CUSTOMER_NOT_ELIGIBLE = "CUSTOMER_NOT_ELIGIBLE"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    ALREADY_APPLIED = "ALREADY_APPLIED"
