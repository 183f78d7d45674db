"""
Operaciones de base de datos para el catálogo de productos.

Todas las consultas están scoped por user_id (propietario).
"""

from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
from uuid import UUID

from invoice_marshal.modules.products.models import Product, ProductVariation


class ProductCrud:
    """Operaciones CRUD para productos y variaciones"""

    def __init__(self, db: Session):
        self.db = db

    def find_product(self, product_id: UUID, owner_id: UUID) -> Optional[Product]:
        """Obtener producto del propietario junto con sus variaciones"""
        return self.db.query(Product).options(
            selectinload(Product.variations)
        ).filter(
            Product.id == product_id,
            Product.user_id == owner_id
        ).first()

    def list_products(self, owner_id: UUID, search: Optional[str] = None) -> List[Product]:
        query = self.db.query(Product).options(
            selectinload(Product.variations)
        ).filter(Product.user_id == owner_id)

        if search:
            search_term = f"%{search}%"
            query = query.filter(Product.name.ilike(search_term) | Product.sku.ilike(search_term))

        return query.order_by(Product.name).all()

    def list_low_stock(self, owner_id: UUID) -> List[Product]:
        return self.db.query(Product).filter(
            Product.user_id == owner_id,
            Product.track_stock.is_(True),
            Product.stock_qty <= Product.min_stock_level
        ).order_by(Product.stock_qty, Product.name).all()

    def find_variation(self, variation_id: UUID, owner_id: UUID) -> Optional[ProductVariation]:
        """Obtener variación cuyo producto pertenece al propietario"""
        return self.db.query(ProductVariation).join(Product).filter(
            ProductVariation.id == variation_id,
            Product.user_id == owner_id
        ).first()
