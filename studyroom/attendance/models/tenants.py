from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from studyroom.core.database import Base


class Tenant(Base):
    """Isolated account space. Nothing is shared across tenants."""

    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}')>"
