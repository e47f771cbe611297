"""Closed vocabularies shared by the models, services and API schemas."""

from __future__ import annotations

from enum import Enum


class ComplianceStatus(str, Enum):
    """Canonical assessment status. Aliases are normalised before storage."""

    COMPLIANT = "COMPLIANT"
    PARTIALLY_COMPLIANT = "PARTIALLY_COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    NOT_ASSESSED = "NOT_ASSESSED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class CategoryLevel(str, Enum):
    """Importance of a control within a product baseline."""

    MUST_HAVE = "MUST_HAVE"
    SHOULD_HAVE = "SHOULD_HAVE"


class Criticality(str, Enum):
    """Risk rating of a system or product."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class EntityType(str, Enum):
    """Hierarchy level. Values double as the public ``scopeType`` vocabulary."""

    CAPABILITY_CENTRE = "cc"
    FRAMEWORK = "framework"
    PRODUCT = "product"
    SYSTEM = "system"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    EntityType.CAPABILITY_CENTRE: "Capability Centre",
    EntityType.FRAMEWORK: "Framework",
    EntityType.PRODUCT: "Product",
    EntityType.SYSTEM: "System",
}
