"""Assessment model — one control assessment per system."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from posture.models.base import Base
from posture.models.enums import ComplianceStatus


class Assessment(Base):
    """The status of a single CSF control on a single system.

    This is the only row users mutate directly; every cached score above it
    is derived from these.
    """

    __tablename__ = "compliance_assessments"
    __table_args__ = (UniqueConstraint("system_id", "control_id", name="uq_assessment_system_control"),)

    system_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("systems.id", ondelete="CASCADE"), nullable=False, index=True
    )
    control_id: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[ComplianceStatus] = mapped_column(
        Enum(ComplianceStatus, native_enum=False, length=30),
        nullable=False,
        default=ComplianceStatus.NOT_ASSESSED,
    )
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    assessor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assessed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Assessment {self.control_id} system={self.system_id[:8]} {self.status.value}>"
