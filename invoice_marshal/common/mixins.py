"""
Common mixins for owned models
"""
from sqlalchemy import Column, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func


class OwnerMixin:
    """Mixin for models owned by a single user; every query must filter by user_id"""

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
