from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
)
from sqlalchemy.sql import func
from studyroom.core.config import CHECK_LINK_BASE_URL
from studyroom.core.database import Base


class AttendanceCheckLink(Base):
    """Scope token binding a PIN kiosk to a tenant and seat layout"""

    __tablename__ = "attendance_check_links"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    link_token = Column(String(64), nullable=False, unique=True, index=True)
    seat_layout_id = Column(Integer, nullable=False)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def link_url(self) -> str:
        return f"{CHECK_LINK_BASE_URL}/attendance-check/{self.link_token}"

    def __repr__(self):
        return f"<AttendanceCheckLink(id={self.id}, seat_layout_id={self.seat_layout_id}, active={self.is_active})>"
