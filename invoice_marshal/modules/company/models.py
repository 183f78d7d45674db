from invoice_marshal.database.database import Base
from invoice_marshal.common.mixins import TimestampMixin
from sqlalchemy import Column, String, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid

class Company(Base, TimestampMixin):
    __tablename__ = "companies"

    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=False)
    address = Column(String, nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String, nullable=True)
    logo = Column(String, nullable=True)
    tax_id = Column(String(50), nullable=True)

    user = relationship("User", back_populates="company")
