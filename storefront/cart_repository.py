"""
Cart Repository Module

This module owns the customer's shopping cart for the storefront service and
keeps a durable copy of it in client-local storage.

Key Features:
    - One line per product: adding an existing product merges quantities
    - Totals derived from the current lines on every read, never cached
    - Full collection persisted on every mutation (best effort)
    - Pluggable storage: Redis, a local JSON file, or memory

Architecture:
    - CartLine: Pydantic model for one product's presence in the cart
    - CartStorage: load()/save() seam the store persists through
    - RedisCartStorage / JsonFileCartStorage / InMemoryCartStorage: storage backends
    - CartStore: the in-memory source of truth

Data Format (stored value):
    '[
        {"productId": 12, "name": "Oslo 3 Seater", "unitPrice": 8999.0, "image": "/img/oslo.jpg", "quantity": 1},
        {"productId": 31, "name": "Bedside Pedestal", "unitPrice": 1299.0, "image": null, "quantity": 2}
    ]'

Failure Semantics:
    - Missing, unparseable or pathologically nested stored value: the cart starts empty
    - Write failure: logged, the in-memory cart stays authoritative for the session

Example Usage:
    ```python
    store = CartStore(JsonFileCartStorage("~/.lewis/cart.json"))
    store.add_item(CartLine(product_id=12, name="Oslo 3 Seater", unit_price=8999.0, quantity=1))
    store.update_quantity(12, 2)
    store.total   # 17998.0
    store.clear_cart()
    ```
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import redis
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

ProductId = Union[int, str]

DEFAULT_CART_KEY = "lewis:cart"


class CartLine(BaseModel):
    """Cart line model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: ProductId
    name: str = ""
    unit_price: float = Field(ge=0)
    image: Optional[str] = None
    quantity: int = Field(gt=0)

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def same_product(a: ProductId, b: ProductId) -> bool:
    # Path parameters arrive as strings while stored ids may be ints
    return str(a) == str(b)


def parse_lines(raw: Any) -> List[CartLine]:
    """Validate a decoded storage value into cart lines. Duplicate product ids are merged."""
    if not isinstance(raw, list):
        raise ValueError(f"Stored cart must be a JSON array, got {type(raw).__name__}")

    lines: List[CartLine] = []
    for entry in raw:
        line = CartLine.model_validate(entry)
        existing = next((l for l in lines if same_product(l.product_id, line.product_id)), None)
        if existing:
            existing.quantity += line.quantity
        else:
            lines.append(line)
    return lines


def dump_lines(lines: List[CartLine]) -> str:
    return json.dumps([line.to_storage() for line in lines])


class CartStorage(Protocol):
    """Durable storage for the whole cart collection."""

    def load(self) -> List[CartLine]:
        ...

    def save(self, lines: List[CartLine]) -> None:
        ...


class InMemoryCartStorage:
    """Keeps the serialized cart in memory. Survives CartStore rebuilds, not process restarts."""

    def __init__(self, initial: Optional[str] = None):
        self.value = initial

    def load(self) -> List[CartLine]:
        if self.value is None:
            return []
        return parse_lines(json.loads(self.value))

    def save(self, lines: List[CartLine]) -> None:
        self.value = dump_lines(lines)


class JsonFileCartStorage:
    """Stores the cart as a JSON array in a local file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> List[CartLine]:
        if not self.path.exists():
            return []
        return parse_lines(json.loads(self.path.read_text(encoding="utf-8")))

    def save(self, lines: List[CartLine]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(dump_lines(lines), encoding="utf-8")
        os.replace(tmp_path, self.path)


class RedisCartStorage:
    """Stores the cart as a JSON array under a fixed Redis key."""

    def __init__(self, redis_client: redis.Redis, key: str = DEFAULT_CART_KEY, ttl: Optional[int] = None):
        self.redis = redis_client
        self.key = key
        # Optional expiry for abandoned carts, refreshed on every write
        self.ttl = ttl

    def load(self) -> List[CartLine]:
        cart_json = self.redis.get(self.key)
        if cart_json is None:
            return []
        return parse_lines(json.loads(cart_json))

    def save(self, lines: List[CartLine]) -> None:
        if not lines:
            self.redis.delete(self.key)
            return
        self.redis.set(self.key, dump_lines(lines), ex=self.ttl)


class CartStore:
    """Single source of truth for the cart contents."""

    def __init__(self, storage: CartStorage):
        self.storage = storage
        self._lines: List[CartLine] = self._rehydrate()

    def _rehydrate(self) -> List[CartLine]:
        try:
            lines = self.storage.load()
        except (OSError, RecursionError, ValueError, ValidationError, redis.RedisError) as e:
            logger.warning(f"Stored cart could not be read, starting empty: {e}")
            return []
        logger.info(f"Rehydrated cart with {len(lines)} line(s)")
        return lines

    def _persist(self) -> None:
        try:
            self.storage.save(self._lines)
        except (OSError, TypeError, ValueError, redis.RedisError) as e:
            logger.warning(f"Failed to persist cart, keeping in-memory state: {e}")

    def _find(self, product_id: ProductId) -> Optional[CartLine]:
        return next((l for l in self._lines if same_product(l.product_id, product_id)), None)

    @property
    def items(self) -> List[CartLine]:
        """Copies of the current lines in insertion order."""
        return [line.model_copy() for line in self._lines]

    @property
    def total(self) -> float:
        return sum(line.quantity * line.unit_price for line in self._lines)

    @property
    def item_count(self) -> int:
        return len(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def add_item(self, line: CartLine) -> None:
        """Add a line to the cart. Increment quantity if the product is already there."""
        existing = self._find(line.product_id)
        if existing:
            existing.quantity = existing.quantity + line.quantity
            logger.info(f"Increased product {line.product_id} quantity to {existing.quantity}")
        else:
            self._lines.append(line.model_copy())
            logger.info(f"Added product {line.product_id} to cart")
        self._persist()

    def remove_item(self, product_id: ProductId) -> bool:
        """Remove a product from the cart. Returns True if a line was removed."""
        existing = self._find(product_id)
        if existing is None:
            logger.debug(f"Product {product_id} not in cart")
            return False

        self._lines = [l for l in self._lines if l is not existing]
        self._persist()
        logger.info(f"Removed product {product_id} from cart")
        return True

    def update_quantity(self, product_id: ProductId, quantity: int) -> bool:
        """Set a line's quantity exactly. Non-positive quantities remove the line. Returns True if the cart changed."""
        if quantity <= 0:
            return self.remove_item(product_id)

        existing = self._find(product_id)
        if existing is None:
            logger.debug(f"Product {product_id} not in cart")
            return False

        existing.quantity = quantity
        self._persist()
        logger.info(f"Updated product {product_id} quantity to {quantity}")
        return True

    def clear_cart(self) -> None:
        self._lines = []
        self._persist()
        logger.info("Cleared cart")

    def summary(self) -> Dict[str, Any]:
        """Cart contents with line totals, the shape the cart view renders."""
        items = [
            {**line.model_dump(mode="json"), "line_total": line.line_total}
            for line in self._lines
        ]
        return {
            "items": items,
            "total_amount": self.total,
            "item_count": self.item_count,
        }
