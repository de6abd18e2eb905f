"""
Server-side cart validation.

The client's cart is only trusted for ids and quantities. Prices, names and
images are always taken from the catalog, and the whole batch fails if any
product cannot be supplied in the requested quantity.
"""
from typing import Any, List, Optional

import config
from catalog import Catalog
from errors import InvalidCartFormat, RateLimitExceeded, ValidationFailure
from logger import get_logger
from rate_limit import RateLimiter
from sanitize import clamp, clean_id, parse_int
from schemas import CartValidationResponse, ValidatedCartLine

logger = get_logger("validator")


class CartValidator:
    def __init__(self, catalog: Catalog, rate_limiter: Optional[RateLimiter] = None):
        self.catalog = catalog
        self.rate_limiter = rate_limiter or RateLimiter()

    def _check_rate_limit(self, client_id: str) -> None:
        allowed, retry_after = self.rate_limiter.check(client_id)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_id}")
            raise RateLimitExceeded(client_id, retry_after)

    def _validate_line(self, item: Any) -> Optional[ValidatedCartLine]:
        if not isinstance(item, dict):
            return None
        product_id = clean_id(item.get("id"))
        if not product_id:
            return None
        quantity = clamp(parse_int(item.get("quantity")) or 1, 1, config.MAX_LINE_QUANTITY)

        product = self.catalog.get(product_id)
        if product is None:
            logger.info(f"Dropping unknown product id {product_id!r}")
            return None

        if not product.in_stock or product.stock_quantity < quantity:
            raise ValidationFailure(product.name)

        return ValidatedCartLine(
            id=product.id,
            name=product.name,
            price=product.price,
            quantity=quantity,
            image=product.images[0] if product.images else "",
            collection=product.collection,
        )

    def validate(self, items: Any, client_id: str = "unknown") -> CartValidationResponse:
        """
        Recompute a client cart against the catalog.

        Raises RateLimitExceeded or InvalidCartFormat; a stock shortfall is
        returned as an unsuccessful response naming the product.
        """
        self._check_rate_limit(client_id)

        if not isinstance(items, list):
            raise InvalidCartFormat("Invalid cart items format")

        validated: List[ValidatedCartLine] = []
        total = 0
        for item in items:
            try:
                line = self._validate_line(item)
            except ValidationFailure as e:
                logger.info(f"Cart rejected for {client_id}: {e}")
                return CartValidationResponse(success=False, error=str(e))
            if line is None:
                continue
            validated.append(line)
            total += line.price * line.quantity

        return CartValidationResponse(success=True, items=validated, total=total)
