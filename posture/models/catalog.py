"""Control catalog and product baselines."""

from __future__ import annotations

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from posture.models.base import Base
from posture.models.enums import CategoryLevel


class CsfControl(Base):
    """A NIST CSF 2.0 subcategory, e.g. ``PR.AA-01`` under function ``PR``."""

    __tablename__ = "csf_controls"

    control_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    function_code: Mapped[str] = mapped_column(String(2), nullable=False)
    category_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CsfControl {self.control_id}>"


class BaselineEntry(Base):
    """Whether a control applies to a product, and how much it matters."""

    __tablename__ = "csf_baselines"
    __table_args__ = (UniqueConstraint("product_id", "control_id", name="uq_baseline_product_control"),)

    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    control_id: Mapped[str] = mapped_column(String(20), nullable=False)
    applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    category_level: Mapped[CategoryLevel] = mapped_column(
        Enum(CategoryLevel, native_enum=False, length=20),
        nullable=False,
        default=CategoryLevel.SHOULD_HAVE,
    )
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BaselineEntry {self.control_id} product={self.product_id[:8]}>"
