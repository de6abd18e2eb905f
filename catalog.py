"""
Catalog loading: flattens grouped product data and builds search text.
"""
import json
from typing import Dict, Iterable, List, Optional

import requests
from pydantic import ValidationError

import config
from database import db, get_documents
from errors import CatalogError, TransportFailure
from logger import get_logger
from schemas import Product, SearchableProduct

logger = get_logger("catalog")


def create_search_text(product: Product) -> str:
    fields = [
        product.name,
        product.description,
        product.detailed_description,
        product.collection,
        *product.tags,
        product.specifications.get("material"),
        product.specifications.get("stone"),
        product.seo.title,
        product.seo.description,
    ]
    return " ".join(f for f in fields if f).lower()


def make_searchable(product: Product) -> SearchableProduct:
    return SearchableProduct(**product.model_dump(), search_text=create_search_text(product))


def flatten(grouped: Dict[str, List[dict]]) -> List[dict]:
    """Turn {collection: [product, ...]} into a flat list tagged with the collection key."""
    flat = []
    for collection_id, products in grouped.items():
        for p in products:
            flat.append({**p, "collection": collection_id})
    return flat


class Catalog:
    """Immutable set of searchable products, in catalog order."""

    def __init__(self, products: Iterable[SearchableProduct], source: str = "memory"):
        self.products: List[SearchableProduct] = list(products)
        self.source = source
        self._by_id = {}
        for p in self.products:
            self._by_id.setdefault(p.id, p)

    def __len__(self):
        return len(self.products)

    def __iter__(self):
        return iter(self.products)

    def get(self, product_id: str) -> Optional[SearchableProduct]:
        return self._by_id.get(product_id)

    def snapshot(self) -> List[dict]:
        return [p.public_dict() for p in self.products]

    @classmethod
    def from_records(cls, records: Iterable[dict], source: str = "memory") -> "Catalog":
        products = []
        for raw in records:
            raw = dict(raw)
            if "_id" in raw:
                raw.setdefault("id", str(raw["_id"]))
                raw.pop("_id")
            try:
                products.append(make_searchable(Product(**raw)))
            except ValidationError as e:
                logger.warning(f"Skipping invalid product {raw.get('id')!r}: {e.error_count()} errors")
        return cls(products, source=source)

    @classmethod
    def from_grouped(cls, grouped: Dict[str, List[dict]], source: str = "memory") -> "Catalog":
        return cls.from_records(flatten(grouped), source=source)


def _load_from_database() -> Optional[Catalog]:
    if db is None:
        return None
    docs = get_documents("product")
    if not docs:
        return None
    return Catalog.from_records(docs, source="mongodb")


def _load_from_file(path: str) -> Catalog:
    try:
        with open(path, "r", encoding="utf-8") as f:
            grouped = json.load(f)
    except (OSError, ValueError) as e:
        raise CatalogError(f"Could not read catalog file {path}: {e}") from e
    if not isinstance(grouped, dict):
        raise CatalogError(f"Catalog file {path} must map collection keys to product lists")
    return Catalog.from_grouped(grouped, source="file")


def load_catalog(path: Optional[str] = None) -> Catalog:
    """Load the catalog from MongoDB when populated, else from the bundled JSON."""
    catalog = None
    if path is None:
        try:
            catalog = _load_from_database()
        except Exception as e:
            logger.warning(f"Database catalog unavailable, using bundled data: {e}")
    if catalog is None:
        catalog = _load_from_file(path or config.CATALOG_PATH)
    logger.info(f"Loaded {len(catalog)} products from {catalog.source}")
    return catalog


def fetch_catalog(base_url: str, session=None, timeout: float = 10.0) -> Catalog:
    """Fetch the flattened product snapshot served by GET /api/products."""
    http = session or requests
    url = f"{base_url.rstrip('/')}/api/products"
    try:
        resp = http.get(url, timeout=timeout)
        resp.raise_for_status()
        records = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise TransportFailure(f"Could not fetch catalog from {url}: {e}") from e
    if not isinstance(records, list):
        raise TransportFailure(f"Unexpected catalog payload from {url}")
    return Catalog.from_records(records, source=url)
