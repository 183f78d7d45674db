from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from uuid import UUID
from typing import Optional, List
import logging

from invoice_marshal.common.exceptions import ProductNotFound, VariationNotFound
from invoice_marshal.modules.products.models import Product, ProductVariation
from invoice_marshal.modules.products.crud import ProductCrud
from invoice_marshal.modules.products.schemas import (
    ProductCreate, ProductUpdate, StockUpdate, VariationCreate, VariationUpdate,
    LowStockProduct, LowStockResponse
)
from invoice_marshal.modules.inventory.service import StockLedger

logger = logging.getLogger(__name__)


class ProductService:
    """Catálogo de productos y servicios del usuario"""

    def __init__(self, db: Session):
        self.db = db
        self.crud = ProductCrud(db)

    def list_products(self, owner_id: UUID, search: Optional[str] = None) -> List[Product]:
        return self.crud.list_products(owner_id, search=search)

    def get_product(self, product_id: UUID, owner_id: UUID) -> Product:
        product = self.crud.find_product(product_id, owner_id)
        if not product:
            raise ProductNotFound()
        return product

    def create_product(self, product_data: ProductCreate, owner_id: UUID) -> Product:
        """Crear producto con sus variaciones iniciales"""
        try:
            data = product_data.model_dump(exclude={"variations"})
            data["currency"] = product_data.currency.value
            product = Product(**data, user_id=owner_id)
            for variation_data in product_data.variations:
                product.variations.append(ProductVariation(**variation_data.model_dump()))

            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)
            logger.info(f"Product created: {product.id} ({product.name})")
            return product
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating product: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creating product"
            )

    def update_product(self, product_id: UUID, product_data: ProductUpdate, owner_id: UUID) -> Product:
        product = self.get_product(product_id, owner_id)
        try:
            for field, value in product_data.model_dump(exclude_unset=True).items():
                if field == "currency" and value is not None:
                    value = value.value
                setattr(product, field, value)
            self.db.commit()
            self.db.refresh(product)
            return product
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating product {product_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating product"
            )

    def delete_product(self, product_id: UUID, owner_id: UUID) -> None:
        """
        Eliminar producto. Los items de factura que lo referencian conservan
        su descripción y precio, pero pierden el vínculo.
        """
        product = self.get_product(product_id, owner_id)
        try:
            self.db.delete(product)
            self.db.commit()
            logger.info(f"Product deleted: {product_id}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting product {product_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error deleting product"
            )

    def update_stock(self, product_id: UUID, stock_data: StockUpdate, owner_id: UUID) -> Product:
        """Ajustar inventario del producto o de una variación"""
        product = self.get_product(product_id, owner_id)
        try:
            StockLedger(self.db).set_quantity(product, stock_data.variation_id, stock_data.stock_qty)
            self.db.commit()
            self.db.refresh(product)
            return product
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating stock for product {product_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating stock"
            )

    def get_low_stock_products(self, owner_id: UUID) -> LowStockResponse:
        """Productos con inventario en o por debajo del mínimo"""
        products = self.crud.list_low_stock(owner_id)
        items = [LowStockProduct.model_validate(product) for product in products]
        return LowStockResponse(products=items, total_count=len(items))

    # Variaciones

    def add_variation(self, product_id: UUID, variation_data: VariationCreate, owner_id: UUID) -> ProductVariation:
        product = self.get_product(product_id, owner_id)
        try:
            variation = ProductVariation(product_id=product.id, **variation_data.model_dump())
            self.db.add(variation)
            self.db.commit()
            self.db.refresh(variation)
            return variation
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error adding variation to product {product_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creating variation"
            )

    def update_variation(self, variation_id: UUID, variation_data: VariationUpdate, owner_id: UUID) -> ProductVariation:
        variation = self.crud.find_variation(variation_id, owner_id)
        if not variation:
            raise VariationNotFound()
        try:
            for field, value in variation_data.model_dump(exclude_unset=True).items():
                setattr(variation, field, value)
            self.db.commit()
            self.db.refresh(variation)
            return variation
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating variation {variation_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error updating variation"
            )

    def delete_variation(self, variation_id: UUID, owner_id: UUID) -> None:
        variation = self.crud.find_variation(variation_id, owner_id)
        if not variation:
            raise VariationNotFound()
        try:
            self.db.delete(variation)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting variation {variation_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error deleting variation"
            )
