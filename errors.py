"""
Error types shared by the catalog, search, cart and validation code.
"""


class StoreError(Exception):
    """Base error for the storefront."""
    pass


class InputSanitizationFailure(StoreError):
    """Product or cart-item input is malformed or unsafe."""
    pass


class InvalidCartFormat(StoreError):
    """Cart payload is not a list of items."""
    pass


class RateLimitExceeded(StoreError):
    """Caller made too many requests in the current window."""

    def __init__(self, key: str, retry_after: float = 0.0):
        super().__init__(f"rate limit exceeded for {key}")
        self.key = key
        self.retry_after = retry_after


class ValidationFailure(StoreError):
    """A product is out of stock or short for the requested quantity."""

    def __init__(self, product_name: str):
        super().__init__(f'Product "{product_name}" is not available in requested quantity')
        self.product_name = product_name


class TransportFailure(StoreError):
    """Network or server error while talking to the storefront API."""
    pass


class PersistenceCorruption(StoreError):
    """Locally stored cart data could not be read."""
    pass


class CatalogError(StoreError):
    """Catalog data could not be loaded."""
    pass
