"""
Storefront sync - client-side data layer for the Kottravai storefront
"""

__version__ = "1.0.0"
