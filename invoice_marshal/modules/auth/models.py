from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from invoice_marshal.database.database import Base
from invoice_marshal.common.mixins import TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Onboarding
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    address = Column(String, nullable=True)

    # Relationships
    company = relationship("Company", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def is_onboarded(self) -> bool:
        return bool(self.first_name and self.last_name and self.address)

    @property
    def full_name(self):
        return " ".join(part for part in (self.first_name, self.last_name) if part)
