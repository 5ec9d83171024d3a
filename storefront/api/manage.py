"""Back-office endpoints: inventory, dashboard, reports, orders and audit logs."""

from typing import Any, Dict, List, Optional, Tuple

from shared.api_client import BaseApiClient

# (filename, content, content type) as accepted by httpx multipart uploads
FilePart = Tuple[str, bytes, str]

MAX_PRODUCT_IMAGES = 3


class ManageApi:
    def __init__(self, client: BaseApiClient):
        self.client = client

    # Inventory

    def get_inventory(self, page: int = 1, limit: int = 10, filter: Optional[str] = None) -> Any:
        return self.client.get("manage/inventory", params={"page": page, "limit": limit, "filter": filter})

    def create_product(self, details: Dict[str, Any]) -> Any:
        return self.client.post("manage/products", json=details)

    def update_product(self, product_id: str, details: Dict[str, Any]) -> Any:
        return self.client.patch(f"manage/products/{product_id}", json=details)

    def upload_product_images(self, product_id: str, images: List[FilePart]) -> Any:
        """Sent as image1..image3; extra images are ignored."""
        files = [(f"image{i}", image) for i, image in enumerate(images[:MAX_PRODUCT_IMAGES], start=1)]
        return self.client.post(f"manage/products/{product_id}/images", files=files)

    def delete_product(self, product_id: str) -> Any:
        return self.client.delete(f"manage/products/{product_id}")

    def permanent_delete_product(self, product_id: str) -> Any:
        return self.client.delete(f"manage/products/{product_id}/permanent")

    def import_products(self, file: FilePart) -> Any:
        return self.client.post("manage/products/import", files={"file": file})

    def export_products(self) -> bytes:
        return self.client.get("manage/products/export", raw=True)

    # Dashboard and reports

    def get_dashboard(self) -> Any:
        return self.client.get("manage/dashboard")

    def get_sales_report(self, start: str, end: str, format: str = "csv") -> bytes:
        return self.client.get("manage/reports/sales", params={"start": start, "end": end, "format": format}, raw=True)

    def get_payments_report(self, start: str, end: str, format: str = "csv") -> bytes:
        return self.client.get(
            "manage/reports/payments", params={"start": start, "end": end, "format": format}, raw=True
        )

    def get_overdue_report(self, format: str = "csv") -> bytes:
        return self.client.get("manage/reports/overdue", params={"format": format}, raw=True)

    # Orders

    def get_orders(self, page: int = 1, limit: int = 10, user_id: Optional[str] = None) -> Any:
        return self.client.get("manage/orders", params={"page": page, "limit": limit, "userId": user_id})

    def update_order_status(self, order_id: str, new_status: str) -> Any:
        return self.client.patch(f"manage/orders/{order_id}", json={"NewStatus": new_status})

    # Audit and settings

    def get_audit_logs(self, page: int = 1, limit: int = 10, filter: Optional[str] = None) -> Any:
        return self.client.get("AuditLogs", params={"page": page, "limit": limit, "filter": filter})

    def get_store_settings(self) -> Any:
        return self.client.get("StoreSettings")
