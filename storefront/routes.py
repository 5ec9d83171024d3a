import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Response, UploadFile, status

from storefront.api.manage import MAX_PRODUCT_IMAGES, FilePart
from storefront.cart_repository import CartLine
from storefront.checkout import DELIVERY_FEES
from storefront.dependencies import Storefront, get_storefront
from storefront.schemas import (
    CartItemRequest,
    CartResponse,
    CHECKOUT_ACTION_ADAPTER,
    CheckoutResponse,
    LoginRequest,
    PaymentSuccessRequest,
    SessionResponse,
    UpdateQuantityRequest,
)

logger = logging.getLogger(__name__)

cart_router = APIRouter(prefix="/cart", tags=["cart"])
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])
catalogue_router = APIRouter(tags=["catalogue"])
account_router = APIRouter(tags=["account"])
manage_router = APIRouter(prefix="/manage", tags=["manage"])


def _cart_response(store: Storefront) -> CartResponse:
    return CartResponse(**store.cart.summary())


def _checkout_response(store: Storefront) -> CheckoutResponse:
    flow = store.checkout
    return CheckoutResponse.build(flow.state, flow.pricing, DELIVERY_FEES, flow.redirect_to)


# ============================================================================
# CART
# ============================================================================

@cart_router.get("", response_model=CartResponse)
async def get_cart(store: Storefront = Depends(get_storefront)) -> CartResponse:
    """Get the cart with line totals."""
    return _cart_response(store)


@cart_router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_item(item: CartItemRequest, store: Storefront = Depends(get_storefront)) -> CartResponse:
    """Add item to cart. Quantities merge when the product is already there."""
    store.cart.add_item(CartLine(**item.model_dump()))
    return _cart_response(store)


@cart_router.put("/items/{product_id}", response_model=CartResponse)
async def update_item_quantity(
    product_id: str, request: UpdateQuantityRequest, store: Storefront = Depends(get_storefront)
) -> CartResponse:
    """Set an item's quantity. Zero or less removes the item."""
    updated = store.cart.update_quantity(product_id, request.quantity)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item {product_id} not found in cart",
        )
    return _cart_response(store)


@cart_router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_item(product_id: str, store: Storefront = Depends(get_storefront)) -> CartResponse:
    """Remove item from cart."""
    if not store.cart.remove_item(product_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item {product_id} not found in cart",
        )
    return _cart_response(store)


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(store: Storefront = Depends(get_storefront)) -> CartResponse:
    store.cart.clear_cart()
    return _cart_response(store)


# ============================================================================
# CHECKOUT
# ============================================================================

@checkout_router.get("", response_model=CheckoutResponse)
async def get_checkout(store: Storefront = Depends(get_storefront)) -> CheckoutResponse:
    """Current checkout state with live pricing."""
    return _checkout_response(store)


@checkout_router.post("/reset", response_model=CheckoutResponse)
async def reset_checkout(store: Storefront = Depends(get_storefront)) -> CheckoutResponse:
    """Start a new checkout session with default choices."""
    store.checkout.reset()
    return _checkout_response(store)


@checkout_router.post("/actions", response_model=CheckoutResponse)
async def apply_action(
    payload: Dict[str, Any] = Body(...), store: Storefront = Depends(get_storefront)
) -> CheckoutResponse:
    """Apply one field edit (delivery, payment type, term, terms agreement, billing field)."""
    action = CHECKOUT_ACTION_ADAPTER.validate_python(payload)
    store.checkout.dispatch(action)
    return _checkout_response(store)


@checkout_router.post("/submit", response_model=CheckoutResponse)
async def submit_checkout(store: Storefront = Depends(get_storefront)) -> CheckoutResponse:
    """
    Submit the order.

    Local validation failures return 422. Store API failures return 200 with the
    session in the Failed phase and the message in "error".
    """
    store.checkout.submit()
    return _checkout_response(store)


@checkout_router.post("/payment/success", response_model=CheckoutResponse)
async def payment_success(
    request: PaymentSuccessRequest, store: Storefront = Depends(get_storefront)
) -> CheckoutResponse:
    """Payment widget success callback."""
    store.checkout.payment_succeeded(request.reference)
    return _checkout_response(store)


@checkout_router.post("/payment/close", response_model=CheckoutResponse)
async def payment_close(store: Storefront = Depends(get_storefront)) -> CheckoutResponse:
    """Payment widget close callback."""
    store.checkout.payment_closed()
    return _checkout_response(store)


# ============================================================================
# CATALOGUE AND ORDERS
# ============================================================================

@catalogue_router.get("/products")
async def list_products(
    page: int = 1, limit: int = 12, filter: Optional[str] = None, store: Storefront = Depends(get_storefront)
) -> Any:
    return store.products_api.fetch_products(page, limit, filter)


@catalogue_router.get("/products/{product_id}")
async def get_product(product_id: str, store: Storefront = Depends(get_storefront)) -> Any:
    return store.products_api.fetch_single_product(product_id)


@account_router.get("/orders")
async def list_orders(page: int = 1, limit: int = 10, store: Storefront = Depends(get_storefront)) -> Any:
    _require_login(store)
    return store.checkout_api.get_orders(page, limit)


@account_router.get("/orders/{order_id}")
async def get_order(order_id: str, store: Storefront = Depends(get_storefront)) -> Any:
    _require_login(store)
    return store.checkout_api.get_order_details(order_id)


@account_router.post("/orders/{order_id}/cancel")
async def cancel_order(order_id: str, store: Storefront = Depends(get_storefront)) -> Any:
    _require_login(store)
    return store.checkout_api.cancel_order(order_id)


# ============================================================================
# AUTH
# ============================================================================

def _require_login(store: Storefront) -> None:
    # Convenience redirect only, the store API rejects unauthenticated calls itself
    if not store.session.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please log in.")


def _session_response(store: Storefront) -> SessionResponse:
    session = store.session
    return SessionResponse(
        is_authenticated=session.is_authenticated,
        user_id=session.user_id,
        role=session.role,
        email=session.email,
    )


@account_router.post("/auth/login", response_model=SessionResponse)
async def login(request: LoginRequest, store: Storefront = Depends(get_storefront)) -> SessionResponse:
    store.auth_api.login(request.model_dump())
    return _session_response(store)


@account_router.post("/auth/logout", response_model=SessionResponse)
async def logout(store: Storefront = Depends(get_storefront)) -> SessionResponse:
    store.auth_api.logout()
    return _session_response(store)


@account_router.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(user: Dict[str, Any] = Body(...), store: Storefront = Depends(get_storefront)) -> Any:
    return store.auth_api.register(user)


@account_router.get("/auth/session", response_model=SessionResponse)
async def get_session(store: Storefront = Depends(get_storefront)) -> SessionResponse:
    return _session_response(store)


@account_router.get("/account/profile")
async def get_profile(store: Storefront = Depends(get_storefront)) -> Any:
    _require_login(store)
    return store.auth_api.get_profile()


@account_router.patch("/account/profile")
async def update_profile(details: Dict[str, Any] = Body(...), store: Storefront = Depends(get_storefront)) -> Any:
    _require_login(store)
    return store.auth_api.update_profile(details)


# ============================================================================
# BACK OFFICE
# ============================================================================

REPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _require_admin(store: Storefront) -> None:
    _require_login(store)
    if not store.session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")


@manage_router.get("/dashboard")
async def dashboard(store: Storefront = Depends(get_storefront)) -> Any:
    _require_admin(store)
    return store.manage_api.get_dashboard()


@manage_router.get("/inventory")
async def inventory(
    page: int = 1, limit: int = 10, filter: Optional[str] = None, store: Storefront = Depends(get_storefront)
) -> Any:
    _require_admin(store)
    return store.manage_api.get_inventory(page, limit, filter)


@manage_router.get("/orders")
async def manage_orders(
    page: int = 1, limit: int = 10, user_id: Optional[str] = None, store: Storefront = Depends(get_storefront)
) -> Any:
    _require_admin(store)
    return store.manage_api.get_orders(page, limit, user_id)


@manage_router.patch("/orders/{order_id}")
async def update_order_status(
    order_id: str, new_status: str = Body(..., embed=True), store: Storefront = Depends(get_storefront)
) -> Any:
    _require_admin(store)
    return store.manage_api.update_order_status(order_id, new_status)


@manage_router.get("/reports/{kind}")
async def download_report(
    kind: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    format: str = "csv",
    store: Storefront = Depends(get_storefront),
) -> Response:
    _require_admin(store)
    if kind == "sales":
        content = store.manage_api.get_sales_report(start, end, format)
    elif kind == "payments":
        content = store.manage_api.get_payments_report(start, end, format)
    elif kind == "overdue":
        content = store.manage_api.get_overdue_report(format)
    else:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown report {kind}")

    return Response(
        content=content,
        media_type=REPORT_MEDIA_TYPES.get(format, "application/octet-stream"),
        headers={"Content-Disposition": f'attachment; filename="{kind}-report.{format}"'},
    )


@manage_router.get("/audit-logs")
async def audit_logs(
    page: int = 1, limit: int = 10, filter: Optional[str] = None, store: Storefront = Depends(get_storefront)
) -> Any:
    _require_admin(store)
    return store.manage_api.get_audit_logs(page, limit, filter)


@manage_router.get("/settings")
async def store_settings(store: Storefront = Depends(get_storefront)) -> Any:
    """Read-only: the store API exposes no settings update."""
    _require_admin(store)
    return store.manage_api.get_store_settings()


# Products

async def _file_part(upload: UploadFile) -> FilePart:
    return (upload.filename or "upload", await upload.read(), upload.content_type or "application/octet-stream")


@manage_router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(details: Dict[str, Any] = Body(...), store: Storefront = Depends(get_storefront)) -> Any:
    _require_admin(store)
    return store.manage_api.create_product(details)


@manage_router.get("/products/export")
async def export_products(store: Storefront = Depends(get_storefront)) -> Response:
    _require_admin(store)
    return Response(
        content=store.manage_api.export_products(),
        media_type=REPORT_MEDIA_TYPES["csv"],
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


@manage_router.post("/products/import")
async def import_products(file: UploadFile = File(...), store: Storefront = Depends(get_storefront)) -> Any:
    _require_admin(store)
    return store.manage_api.import_products(await _file_part(file))


@manage_router.patch("/products/{product_id}")
async def update_product(
    product_id: str, details: Dict[str, Any] = Body(...), store: Storefront = Depends(get_storefront)
) -> Any:
    _require_admin(store)
    return store.manage_api.update_product(product_id, details)


@manage_router.post("/products/{product_id}/images")
async def upload_product_images(
    product_id: str, images: List[UploadFile] = File(...), store: Storefront = Depends(get_storefront)
) -> Any:
    _require_admin(store)
    if len(images) > MAX_PRODUCT_IMAGES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"At most {MAX_PRODUCT_IMAGES} images per product.",
        )
    parts = [await _file_part(image) for image in images]
    return store.manage_api.upload_product_images(product_id, parts)


@manage_router.delete("/products/{product_id}")
async def delete_product(product_id: str, store: Storefront = Depends(get_storefront)) -> Any:
    """Soft delete; the product can be restored in the store API."""
    _require_admin(store)
    return store.manage_api.delete_product(product_id)


@manage_router.delete("/products/{product_id}/permanent")
async def permanent_delete_product(product_id: str, store: Storefront = Depends(get_storefront)) -> Any:
    _require_admin(store)
    return store.manage_api.permanent_delete_product(product_id)
