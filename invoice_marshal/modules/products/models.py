from invoice_marshal.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, Enum, Text, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from invoice_marshal.common.mixins import OwnerMixin, TimestampMixin
import enum


class ProductType(str, enum.Enum):
    SERVICE = "SERVICE"
    PRODUCT = "PRODUCT"


class Product(Base, OwnerMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String(50), nullable=True)
    type = Column(Enum(ProductType), nullable=False, default=ProductType.SERVICE)
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    # Inventario
    track_stock = Column(Boolean, nullable=False, default=False)
    stock_qty = Column(Integer, nullable=False, default=0)
    min_stock_level = Column(Integer, nullable=False, default=0)
    reorder_point = Column(Integer, nullable=False, default=0)

    # Relationships
    variations = relationship(
        "ProductVariation",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariation.name"
    )

    @property
    def is_low_stock(self) -> bool:
        return bool(self.track_stock) and self.stock_qty <= self.min_stock_level


class ProductVariation(Base, TimestampMixin):
    __tablename__ = "product_variations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)   # p.ej. "Size"
    value = Column(String(50), nullable=False)  # p.ej. "L"
    price_adjust = Column(Numeric(12, 2), nullable=False, default=0)
    stock_qty = Column(Integer, nullable=False, default=0)

    # Relationships
    product = relationship("Product", back_populates="variations")

    @property
    def price(self):
        return self.product.base_price + self.price_adjust
