import os
import threading
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

import config
from catalog import Catalog, load_catalog
from database import db
from errors import CatalogError, InvalidCartFormat, RateLimitExceeded
from logger import get_logger
from rate_limit import RateLimiter, build_rate_limiter
from search import run_search
from validator import CartValidator

logger = get_logger("api")

app = FastAPI(title="Parisa London Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_catalog: Optional[Catalog] = None
_rate_limiter: Optional[RateLimiter] = None
# sync dependencies run in the threadpool, so first requests can race
_init_lock = threading.Lock()


def get_catalog() -> Catalog:
    global _catalog
    if _catalog is None:
        with _init_lock:
            if _catalog is None:
                _catalog = load_catalog()
    return _catalog


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        with _init_lock:
            if _rate_limiter is None:
                _rate_limiter = build_rate_limiter()
    return _rate_limiter


def get_validator(
    catalog: Catalog = Depends(get_catalog),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> CartValidator:
    return CartValidator(catalog, rate_limiter)


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, **extra)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    logger.error(f"Catalog unavailable: {exc}")
    return JSONResponse(status_code=500, content={"error": "Failed to load products"})


@app.get("/")
def read_root():
    return {"message": "Parisa London API ready"}


@app.get("/api/products")
def list_products(catalog: Catalog = Depends(get_catalog)):
    return JSONResponse(content=catalog.snapshot(), headers={"Cache-Control": "max-age=3600"})


@app.get("/api/products/{product_id}")
def get_product(product_id: str, catalog: Catalog = Depends(get_catalog)):
    product = catalog.get(product_id)
    if product is None:
        return JSONResponse(status_code=404, content={"error": "Product not found"})
    return product.public_dict()


@app.get("/api/search")
def search_products(q: str = "", catalog: Catalog = Depends(get_catalog)):
    results = run_search(q, catalog)
    return {
        "query": q.strip().lower(),
        "count": len(results),
        "results": [p.public_dict() for p in results],
    }


@app.post("/api/validate-cart")
async def validate_cart(request: Request, validator: CartValidator = Depends(get_validator)):
    client_id = request.client.host if request.client and request.client.host else "unknown"
    try:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        items = payload.get("items") if isinstance(payload, dict) else None

        # the limiter may take a lock or make a Redis round-trip
        result = await run_in_threadpool(validator.validate, items, client_id)
    except RateLimitExceeded as e:
        return error_response(
            429,
            "Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(max(1, int(e.retry_after)))},
        )
    except InvalidCartFormat:
        return error_response(400, "Invalid cart items format")
    except Exception:
        logger.exception("Cart validation error")
        return error_response(500, "Internal server error")

    if not result.success:
        return error_response(400, result.error)

    return JSONResponse(
        content=result.model_dump(exclude_none=True),
        headers={"Cache-Control": "no-store, max-age=0"},
    )


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "catalog": "❌ Not Loaded",
        "catalog_source": None,
        "products": 0,
        "database": "❌ Not Available",
        "rate_limit_store": None,
    }

    try:
        catalog = get_catalog()
        response["catalog"] = "✅ Loaded"
        response["catalog_source"] = catalog.source
        response["products"] = len(catalog)
    except CatalogError as e:
        response["catalog"] = f"❌ Error: {str(e)[:50]}"

    if db is not None:
        try:
            db.list_collection_names()
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["rate_limit_store"] = type(get_rate_limiter().store).__name__
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
