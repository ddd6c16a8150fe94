from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from studyroom.core.database import Base


class Student(Base):
    """Student profile. Owned by the account management side; read-only here."""

    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )

    name = Column(String(100), nullable=False)
    status = Column(String(20), default="active", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_students_tenant", "tenant_id"),)

    def __repr__(self):
        return f"<Student(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}')>"
