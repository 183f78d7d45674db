from fastapi import APIRouter, Query, status
from uuid import UUID
from typing import Optional, List

from invoice_marshal.dependencies.dbDependecies import db_dependency
from invoice_marshal.dependencies.userDependencies import user_dependency
from invoice_marshal.modules.products.service import ProductService
from invoice_marshal.modules.products.schemas import (
    ProductCreate, ProductUpdate, ProductOut, StockUpdate,
    VariationCreate, VariationUpdate, VariationOut, LowStockResponse
)

product_router = APIRouter()


@product_router.get("", response_model=List[ProductOut])
def list_products(
    db: db_dependency,
    current_user: user_dependency,
    search: Optional[str] = Query(None, description="Buscar por nombre o SKU")
):
    """List products ordered by name."""
    return ProductService(db).list_products(current_user.id, search=search)


@product_router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: db_dependency, current_user: user_dependency):
    """Create a new product or service."""
    return ProductService(db).create_product(data, current_user.id)


@product_router.get("/low-stock", response_model=LowStockResponse)
def low_stock_products(db: db_dependency, current_user: user_dependency):
    """Products tracking stock at or below their minimum level."""
    return ProductService(db).get_low_stock_products(current_user.id)


@product_router.patch("/variations/{variation_id}", response_model=VariationOut)
def update_variation(variation_id: UUID, data: VariationUpdate, db: db_dependency, current_user: user_dependency):
    return ProductService(db).update_variation(variation_id, data, current_user.id)


@product_router.delete("/variations/{variation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_variation(variation_id: UUID, db: db_dependency, current_user: user_dependency):
    ProductService(db).delete_variation(variation_id, current_user.id)


@product_router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: UUID, db: db_dependency, current_user: user_dependency):
    """Get product by ID."""
    return ProductService(db).get_product(product_id, current_user.id)


@product_router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: UUID, data: ProductUpdate, db: db_dependency, current_user: user_dependency):
    """Update product."""
    return ProductService(db).update_product(product_id, data, current_user.id)


@product_router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: UUID, db: db_dependency, current_user: user_dependency):
    """Delete product and its variations."""
    ProductService(db).delete_product(product_id, current_user.id)


@product_router.put("/{product_id}/stock", response_model=ProductOut)
def update_stock(product_id: UUID, data: StockUpdate, db: db_dependency, current_user: user_dependency):
    """Set the stock of a product, or of one of its variations."""
    return ProductService(db).update_stock(product_id, data, current_user.id)


@product_router.post("/{product_id}/variations", response_model=VariationOut, status_code=status.HTTP_201_CREATED)
def add_variation(product_id: UUID, data: VariationCreate, db: db_dependency, current_user: user_dependency):
    return ProductService(db).add_variation(product_id, data, current_user.id)
