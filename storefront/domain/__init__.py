"""
Domain Layer - Storefront Entities

Pydantic models for the entities the storefront client caches and syncs.
"""
from storefront.domain.product import Product, ProductVariant, ProductReview
from storefront.domain.order import Order, OrderCreate, OrderStatus, CartItem
from storefront.domain.review import Review, ReviewCreate, ReviewPage
from storefront.domain.session import AuthSession

__all__ = [
    'Product', 'ProductVariant', 'ProductReview',
    'Order', 'OrderCreate', 'OrderStatus', 'CartItem',
    'Review', 'ReviewCreate', 'ReviewPage',
    'AuthSession',
]
