from invoice_marshal.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum, Date, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import date
from decimal import Decimal
from uuid import uuid4
from invoice_marshal.common.mixins import OwnerMixin, TimestampMixin
import enum


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"                 # Sin pagos, dentro del plazo
    PARTIALLY_PAID = "PARTIALLY_PAID"   # Con pagos, saldo pendiente
    PAID = "PAID"                       # Pagada (por pagos o manualmente)
    OVERDUE = "OVERDUE"                 # Sin pagos, plazo vencido
    EMAILED = "EMAILED"                 # Enviada al cliente por correo


# Estados calculados por compute_status; PAID manual y EMAILED se conservan
DERIVED_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE, InvoiceStatus.PARTIALLY_PAID)


class Invoice(Base, OwnerMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Invoice data
    invoice_number = Column(Integer, nullable=False)  # Asignado por el usuario
    invoice_name = Column(String(200), nullable=False)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING, index=True)
    currency = Column(String(3), nullable=False, default="USD")

    # Dates
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date_offset_days = Column(Integer, nullable=False, default=0)

    # Parties
    from_name = Column(String(200), nullable=False)
    from_email = Column(String(200), nullable=False)
    from_address = Column(Text, nullable=False)
    client_name = Column(String(200), nullable=False)
    client_email = Column(String(200), nullable=False)
    client_address = Column(Text, nullable=False)

    note = Column(Text, nullable=True)

    # Totals
    total = Column(Numeric(12, 2), nullable=False, default=0)
    total_paid = Column(Numeric(12, 2), nullable=False, default=0)

    # Relationships
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position"
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by=lambda: Payment.payment_date.desc()
    )

    @property
    def balance_due(self) -> Decimal:
        """Saldo pendiente, nunca negativo"""
        return max(Decimal(self.total) - Decimal(self.total_paid), Decimal("0"))


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    # Referencias débiles al catálogo
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    # Sin FK: si la variación se elimina el item conserva su id y no se devuelve stock al producto
    variation_id = Column(Uuid(as_uuid=True), nullable=True)

    description = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False)
    rate = Column(Numeric(12, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.rate)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(50), nullable=True)  # cash, transfer, card...
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
