"""
Client-side shopping cart.

CartStore keeps one line per product, persists the list under a fixed
storage key and tells subscribers about every change. At checkout the cart
is sent to the validation endpoint and replaced by the server's lines.
"""
import json
import os
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError

import config
from errors import (
    InputSanitizationFailure,
    InvalidCartFormat,
    PersistenceCorruption,
    RateLimitExceeded,
    TransportFailure,
)
from logger import get_logger
from sanitize import clean_id, clean_name, clean_uri, parse_int
from schemas import CartEvent, CartLineItem, CartValidationResponse

logger = get_logger("cart")

Listener = Callable[[CartEvent], None]
NoticeListener = Callable[[str], None]


def format_price(pence: int) -> str:
    return f"{config.CURRENCY_SYMBOL}{pence / 100:.2f}"


def retry_after_seconds(value: Optional[str], now: Optional[datetime] = None) -> float:
    """Read a Retry-After header given as delta-seconds or an HTTP-date; 0 when unreadable."""
    if not value:
        return 0.0
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Unreadable Retry-After header: {value!r}")
        return 0.0
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class LocalStorage:
    """
    Small key/value store persisted as one JSON file, the way a browser's
    localStorage keeps string values per key. Without a path it lives in memory.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()
        if path:
            self._data = self._read_file()

    def _read_file(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Local storage at {self.path} is unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Local storage at {self.path} is not an object, starting empty")
            return {}
        return data

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            if self.path:
                tmp = f"{self.path}.tmp"
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(self._data, f)
                os.replace(tmp, self.path)


class CartValidationClient:
    """POSTs the cart to /api/validate-cart on a running storefront."""

    def __init__(self, base_url: str, session=None, timeout: float = 10.0):
        self.url = f"{base_url.rstrip('/')}/api/validate-cart"
        self.session = session or requests.Session()
        self.timeout = timeout

    def validate(self, items: List[dict]) -> CartValidationResponse:
        try:
            resp = self.session.post(self.url, json={"items": items}, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportFailure(f"Validation request failed: {e}") from e

        if resp.status_code == 429:
            retry_after = retry_after_seconds(resp.headers.get("Retry-After"))
            raise RateLimitExceeded("checkout", retry_after)

        try:
            body = resp.json()
        except ValueError as e:
            raise TransportFailure(f"Validation failed: {resp.status_code}") from e

        # a 400 with an error envelope is a business answer (e.g. out of stock)
        if resp.status_code in (200, 400) and isinstance(body, dict) and "success" in body:
            try:
                return CartValidationResponse(**body)
            except ValidationError as e:
                raise TransportFailure("Malformed validation response") from e
        raise TransportFailure(f"Validation failed: {resp.status_code}")


class CartStore:
    def __init__(self, storage: Optional[LocalStorage] = None, storage_key: str = config.CART_STORAGE_KEY,
                 clock: Callable[[], float] = time.time):
        self.storage = storage if storage is not None else LocalStorage()
        self.storage_key = storage_key
        self._clock = clock
        self._listeners: List[Listener] = []
        self._notice_listeners: List[NoticeListener] = []
        self.items: List[CartLineItem] = self._load()

    # ---------------- Persistence ----------------

    @staticmethod
    def parse_stored(raw: str) -> List[CartLineItem]:
        """Decode a stored cart; unreadable lines are dropped, an unreadable list raises."""
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise PersistenceCorruption("Stored cart is not valid JSON") from e
        if not isinstance(data, list):
            raise PersistenceCorruption(f"Stored cart is a {type(data).__name__}, not a list")

        items = []
        for entry in data:
            try:
                items.append(CartLineItem(**entry))
            except (TypeError, ValidationError):
                logger.warning(f"Dropping unreadable cart line: {entry!r}")
        return items

    def _load(self) -> List[CartLineItem]:
        raw = self.storage.get_item(self.storage_key)
        if not raw:
            return []
        try:
            return self.parse_stored(raw)
        except PersistenceCorruption as e:
            logger.warning(f"{e}, starting with an empty cart")
            return []

    def _save(self) -> None:
        self.storage.set_item(self.storage_key, json.dumps([i.model_dump() for i in self.items]))

    # ---------------- Subscriptions ----------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register for change events; returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def subscribe_notices(self, listener: NoticeListener) -> Callable[[], None]:
        self._notice_listeners.append(listener)

        def unsubscribe():
            if listener in self._notice_listeners:
                self._notice_listeners.remove(listener)
        return unsubscribe

    def snapshot(self) -> CartEvent:
        return CartEvent(
            items=[i.model_copy() for i in self.items],
            total=self.get_total(),
            count=self.get_total_items(),
            formatted_total=self.get_formatted_total(),
        )

    def _dispatch(self) -> None:
        event = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Cart listener failed")

    def _notify(self, message: str) -> None:
        for listener in list(self._notice_listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Notice listener failed")

    def _commit(self) -> None:
        self._save()
        self._dispatch()

    # ---------------- Mutations ----------------

    @staticmethod
    def sanitize_product_input(product: Any) -> dict:
        if isinstance(product, BaseModel):
            product = product.model_dump()
        if not isinstance(product, dict):
            raise InputSanitizationFailure(f"Expected a product mapping, got {type(product).__name__}")

        image = product.get("image")
        if not image and product.get("images"):
            image = product["images"][0]

        sanitized = {
            "id": clean_id(product.get("id")),
            "name": clean_name(product.get("name")),
            "price": parse_int(product.get("price")) or 0,
            "image": clean_uri(image),
            "collection": clean_id(product.get("collection")),
        }
        if not sanitized["id"] or not sanitized["name"] or sanitized["price"] <= 0:
            raise InputSanitizationFailure("Product needs an id, a name and a positive price")
        return sanitized

    def find(self, product_id: str) -> Optional[CartLineItem]:
        return next((i for i in self.items if i.id == product_id), None)

    def add_item(self, product: Any) -> Optional[CartLineItem]:
        try:
            sanitized = self.sanitize_product_input(product)
        except InputSanitizationFailure as e:
            logger.error(f"Invalid product data: {e}")
            return None

        existing = self.find(sanitized["id"])
        if existing:
            if existing.quantity >= config.MAX_LINE_QUANTITY:
                self._notify("Maximum quantity reached for this item")
                return existing
            existing.quantity += 1
            line = existing
        else:
            line = CartLineItem(**sanitized, quantity=1, added_at=int(self._clock() * 1000))
            self.items.append(line)

        self._save()
        self._notify(f"{sanitized['name']} added to cart")
        self._dispatch()
        return line

    def remove_item(self, product_id: str) -> None:
        self.items = [i for i in self.items if i.id != product_id]
        self._commit()

    def update_quantity(self, product_id: str, quantity: Any) -> None:
        item = self.find(product_id)
        if item is None:
            return

        new_quantity = max(0, parse_int(quantity) or 0)
        if new_quantity == 0:
            self.remove_item(product_id)
        else:
            item.quantity = new_quantity
            self._commit()

    def clear(self) -> None:
        self.items = []
        self._commit()

    # ---------------- Totals ----------------

    def get_total(self) -> int:
        return sum(i.price * i.quantity for i in self.items)

    def get_total_items(self) -> int:
        return sum(i.quantity for i in self.items)

    def get_formatted_total(self) -> str:
        return format_price(self.get_total())

    # ---------------- Checkout ----------------

    def checkout(self, client) -> Optional[CartValidationResponse]:
        """
        Validate the cart with the server and adopt its lines and prices.

        `client` is anything with validate(items) -> CartValidationResponse,
        a CartValidationClient or an in-process CartValidator. On any failure
        the local cart is left as it was.
        """
        if not self.items:
            self._notify("Your cart is empty")
            return None

        try:
            result = client.validate([i.model_dump() for i in self.items])
        except RateLimitExceeded:
            logger.warning("Checkout throttled by the server")
            self._notify("Too many checkout attempts. Please wait a moment and try again.")
            return None
        except (TransportFailure, InvalidCartFormat) as e:
            logger.error(f"Checkout validation error: {e}")
            self._notify("Checkout failed. Please try again.")
            return None

        if not result.success:
            self._notify(f"Checkout failed: {result.error}")
            return result

        now_ms = int(self._clock() * 1000)
        previous = {i.id: i.added_at for i in self.items}
        self.items = [
            CartLineItem(**line.model_dump(), added_at=previous.get(line.id, now_ms))
            for line in result.items or []
        ]
        self._commit()

        logger.info(f"Validated checkout: {len(self.items)} lines, {self.get_formatted_total()}")
        self._notify(f"Checkout: {self.get_formatted_total()}")
        return result
