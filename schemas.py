"""
Schemas for the Parisa London storefront

Product models mirror the records in the catalog (MongoDB collection
"product" or the bundled data/products.json). Cart models describe what the
client stores locally and what the server hands back after validation.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SEO(BaseModel):
    title: str = Field("", description="Page title")
    description: str = Field("", description="Meta description")
    keywords: List[str] = Field(default_factory=list, description="Meta keywords")


class Product(BaseModel):
    """
    Products collection schema
    Collection: "product"
    """
    id: str = Field(..., description="Stable product id, e.g. 'kal-ring-001'")
    name: str = Field(..., description="Product name")
    slug: str = Field("", description="URL slug")
    price: int = Field(..., ge=0, description="Price in pence")
    sale_price: Optional[int] = Field(None, ge=0, description="Sale price in pence")
    images: List[str] = Field(default_factory=list, description="Image URIs, first is the main image")
    description: str = Field("", description="Short description")
    detailed_description: str = Field("", description="Long description")
    collection: str = Field("", description="Collection key, e.g. 'kaleidoscope'")
    tags: List[str] = Field(default_factory=list, description="Search tags")
    specifications: Dict[str, str] = Field(default_factory=dict, description="Attribute name to value, e.g. material, stone")
    in_stock: bool = Field(True, description="Availability flag")
    stock_quantity: int = Field(0, ge=0, description="Units in stock, server side only")
    featured: bool = Field(False, description="Featured on home page")
    new_arrival: bool = Field(False, description="Shown in new arrivals")
    seo: SEO = Field(default_factory=SEO)

    def public_dict(self) -> dict:
        return self.model_dump(exclude={"stock_quantity"})


class SearchableProduct(Product):
    search_text: str = Field("", description="Lowercase text the search ranker matches against")

    def public_dict(self) -> dict:
        return self.model_dump(exclude={"stock_quantity", "search_text"})


class CartLineItem(BaseModel):
    id: str
    name: str
    price: int = Field(..., ge=0, description="Price snapshot in pence, not trusted at checkout")
    quantity: int = Field(1, ge=1)
    image: str = ""
    collection: str = ""
    added_at: int = Field(0, description="Epoch milliseconds when the line was created")


class ValidatedCartLine(BaseModel):
    id: str
    name: str
    price: int = Field(..., ge=0, description="Catalog price in pence")
    quantity: int = Field(..., ge=1, le=10)
    image: str = ""
    collection: str = ""


class CartValidationResponse(BaseModel):
    success: bool
    items: Optional[List[ValidatedCartLine]] = None
    total: Optional[int] = None
    error: Optional[str] = None


class CartEvent(BaseModel):
    items: List[CartLineItem]
    total: int
    count: int
    formatted_total: str
