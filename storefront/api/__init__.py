"""Wrappers for the store API endpoints the storefront uses."""

from storefront.api.auth import AuthApi, AuthSession
from storefront.api.checkout import CheckoutApi, OrderReceipt
from storefront.api.manage import ManageApi
from storefront.api.products import ProductsApi

__all__ = ["AuthApi", "AuthSession", "CheckoutApi", "ManageApi", "OrderReceipt", "ProductsApi"]
