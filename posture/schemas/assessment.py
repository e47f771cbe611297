"""Schemas for the assessment mutation endpoints.

Status values arriving here may use any of the legacy spellings; they are
normalised to ``ComplianceStatus`` before anything is stored or scored.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field, field_validator

from posture.models.enums import ComplianceStatus
from posture.schemas.base import CamelModel

STATUS_ALIASES: dict[str, ComplianceStatus] = {
    "PARTIAL": ComplianceStatus.PARTIALLY_COMPLIANT,
    "Implemented": ComplianceStatus.COMPLIANT,
    "Partially Implemented": ComplianceStatus.PARTIALLY_COMPLIANT,
    "Not Implemented": ComplianceStatus.NON_COMPLIANT,
    "Not Assessed": ComplianceStatus.NOT_ASSESSED,
    "Not Applicable": ComplianceStatus.NOT_APPLICABLE,
}


def normalize_status(value: object) -> ComplianceStatus:
    """Map a canonical or legacy status spelling to ``ComplianceStatus``.

    Raises:
        ValueError: The value is not a known status.
    """
    if isinstance(value, ComplianceStatus):
        return value
    if isinstance(value, str):
        if value in STATUS_ALIASES:
            return STATUS_ALIASES[value]
        try:
            return ComplianceStatus(value)
        except ValueError:
            pass
    raise ValueError(f"Unknown compliance status: {value!r}")


class AssessmentCreate(CamelModel):
    """Request to record a control assessment on a system."""

    system_id: str = Field(..., min_length=1)
    control_id: str = Field(..., min_length=1, max_length=20)
    status: ComplianceStatus
    details: str | None = None
    assessor: str | None = None
    assessed_date: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> ComplianceStatus:
        return normalize_status(value)


class AssessmentChanges(CamelModel):
    """Mutable assessment fields. Omitted fields are left alone."""

    status: ComplianceStatus | None = None
    details: str | None = None
    assessor: str | None = None
    assessed_date: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> ComplianceStatus | None:
        if value is None:
            return None
        return normalize_status(value)


class AssessmentUpdate(AssessmentChanges):
    """Partial update of an assessment, optionally moving it to another control."""

    control_id: str | None = Field(default=None, min_length=1, max_length=20)


class BulkAssessmentItem(AssessmentChanges):
    """One entry of a bulk update, addressed by assessment id."""

    id: str = Field(..., min_length=1)


class BulkAssessmentUpdate(CamelModel):
    """Request to update many assessments at once."""

    assessments: list[BulkAssessmentItem] = Field(..., min_length=1)


class AssessmentResponse(CamelModel):
    """A stored assessment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    system_id: str
    control_id: str
    status: ComplianceStatus
    details: str | None = None
    assessor: str | None = None
    assessed_date: datetime | None = None
    updated_at: datetime | None = None


class BulkAssessmentResponse(CamelModel):
    """Result of a bulk update."""

    message: str
    updated: int
    assessments: list[AssessmentResponse]
