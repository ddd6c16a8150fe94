from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from studyroom.core.database import Base


class PinCredential(Base):
    """Per-student PIN.

    ``actual_pin`` keeps the cleartext PIN so administrators can display and
    reissue it. This is an accepted trust decision for kiosk PINs; only
    ``pin_hash`` is used for verification.
    """

    __tablename__ = "pin_credentials"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )

    pin_hash = Column(String(255), nullable=False)
    actual_pin = Column(String(6), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    failed_attempts = Column(Integer, default=0, nullable=False)

    last_failed_at = Column(DateTime(timezone=True), nullable=True)
    last_changed_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    change_history = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "student_id", name="uq_pin_credentials_student"),
    )

    def __repr__(self):
        return (
            f"<PinCredential(id={self.id}, student_id={self.student_id}, "
            f"locked={self.is_locked}, failed={self.failed_attempts})>"
        )
