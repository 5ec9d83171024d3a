"""Public catalogue endpoints."""

from typing import Any, Optional

from shared.api_client import BaseApiClient


class ProductsApi:
    def __init__(self, client: BaseApiClient):
        self.client = client

    def fetch_products(self, page: int = 1, limit: int = 12, filter: Optional[str] = None) -> Any:
        return self.client.get("products", params={"page": page, "limit": limit, "filter": filter})

    def fetch_single_product(self, product_id: str) -> Any:
        return self.client.get(f"products/{product_id}")
