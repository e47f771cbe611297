"""Organisational hierarchy — Capability Centre → Framework → Product → System."""

from __future__ import annotations

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posture.models.base import Base, ComplianceSnapshotMixin


class CapabilityCentre(ComplianceSnapshotMixin, Base):
    """Top-level organisational grouping, e.g. a business region."""

    __tablename__ = "capability_centres"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    frameworks: Mapped[list[Framework]] = relationship(
        back_populates="capability_centre", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<CapabilityCentre {self.name}>"


class Framework(ComplianceSnapshotMixin, Base):
    """A business unit's product portfolio within a capability centre."""

    __tablename__ = "frameworks"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    capability_centre_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("capability_centres.id", ondelete="CASCADE"), nullable=False, index=True
    )

    capability_centre: Mapped[CapabilityCentre] = relationship(back_populates="frameworks")
    products: Mapped[list[Product]] = relationship(back_populates="framework")

    def __repr__(self) -> str:
        return f"<Framework {self.name}>"


class Product(ComplianceSnapshotMixin, Base):
    """A product owning systems and a control baseline.

    ``framework_id`` is nullable: products not yet placed in a framework sit
    in the "Unassigned" bucket and their rollup stops at product level.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Free text; unrecognised values weigh as MEDIUM in the rollup
    criticality: Mapped[str | None] = mapped_column(String(20), nullable=True, default="MEDIUM")
    framework_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("frameworks.id", ondelete="SET NULL"), nullable=True, index=True
    )

    framework: Mapped[Framework | None] = relationship(back_populates="products")
    systems: Mapped[list[System]] = relationship(
        back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product {self.name}>"


class System(ComplianceSnapshotMixin, Base):
    """Leaf of the hierarchy — the thing that actually gets assessed."""

    __tablename__ = "systems"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    criticality: Mapped[str | None] = mapped_column(String(20), nullable=True, default="MEDIUM")
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    product: Mapped[Product] = relationship(back_populates="systems")

    def __repr__(self) -> str:
        return f"<System {self.name}>"
