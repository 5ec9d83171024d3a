from dataclasses import dataclass

from fastapi import Request

from shared.api_client import BaseApiClient
from storefront.api import AuthApi, AuthSession, CheckoutApi, ManageApi, ProductsApi
from storefront.cart_repository import CartStore
from storefront.checkout_flow import CheckoutFlow


@dataclass
class Storefront:
    """Everything a request handler needs, built once in the app lifespan."""

    api_client: BaseApiClient
    session: AuthSession
    cart: CartStore
    checkout: CheckoutFlow
    checkout_api: CheckoutApi
    products_api: ProductsApi
    auth_api: AuthApi
    manage_api: ManageApi


def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront
