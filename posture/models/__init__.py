"""Database models for Posture."""

from posture.models.base import Base
from posture.models.hierarchy import CapabilityCentre, Framework, Product, System
from posture.models.assessment import Assessment
from posture.models.catalog import BaselineEntry, CsfControl
from posture.models.enums import CategoryLevel, ComplianceStatus, Criticality, EntityType

__all__ = [
    "Base",
    "CapabilityCentre",
    "Framework",
    "Product",
    "System",
    "Assessment",
    "BaselineEntry",
    "CsfControl",
    "CategoryLevel",
    "ComplianceStatus",
    "Criticality",
    "EntityType",
]
