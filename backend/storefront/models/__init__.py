from .auth import User, SessionToken
from .catalog import Product, ProductWeightOption
from .addresses import Address
from .carts import Cart, CartItem, SelectedCoupon
from .coupons import Coupon, CouponUserUsage
from .rewards import RewardConfig, RewardAccount, RewardTransaction
from .orders import Order, OrderItem, OrderLog

__all__ = [
    'User', 'SessionToken',
    'Product', 'ProductWeightOption',
    'Address',
    'Cart', 'CartItem', 'SelectedCoupon',
    'Coupon', 'CouponUserUsage',
    'RewardConfig', 'RewardAccount', 'RewardTransaction',
    'Order', 'OrderItem', 'OrderLog',
]
