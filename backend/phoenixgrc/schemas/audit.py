"""Pydantic schemas for frameworks, assessments and scoring."""
from datetime import date, datetime

from pydantic import BaseModel, Field, HttpUrl

from phoenixgrc.models.audit import ControlStatus
from phoenixgrc.models.c2m2 import PracticeStatus


# ═══════════════════ Frameworks / controls ═══════════════════

class FrameworkOut(BaseModel):
    id: int
    name: str
    model_config = {"from_attributes": True}


class ControlOut(BaseModel):
    id: int
    framework_id: int
    control_id: str
    description: str | None = None
    family: str | None = None
    model_config = {"from_attributes": True}


# ═══════════════════ Assessments ═══════════════════

class AssessmentUpsert(BaseModel):
    audit_control_id: int
    status: ControlStatus
    evidence_url: HttpUrl | None = None
    score: int | None = Field(None, ge=0, le=100)
    assessment_date: date | None = None
    comments: str | None = None
    c2m2_assessment_date: date | None = None
    c2m2_comments: str | None = None
    c2m2_practice_evaluations: dict[int, PracticeStatus] | None = None


class PracticeEvaluationOut(BaseModel):
    practice_id: int
    status: PracticeStatus
    model_config = {"from_attributes": True}


class AssessmentOut(BaseModel):
    id: int
    organization_id: int
    audit_control_id: int
    status: ControlStatus
    score: int | None = None
    evidence_url: str | None = None
    assessment_date: date | None = None
    comments: str | None = None
    c2m2_assessment_date: date | None = None
    c2m2_comments: str | None = None
    c2m2_practice_evaluations: list[PracticeEvaluationOut] = []
    c2m2_mil: int | None = None
    created_at: datetime
    updated_at: datetime


class ControlWithAssessmentOut(ControlOut):
    assessment: AssessmentOut | None = None


# ═══════════════════ Scores ═══════════════════

class ComplianceScoreOut(BaseModel):
    framework_id: int
    framework_name: str
    organization_id: int
    compliance_score: float
    total_controls: int
    evaluated_controls: int
    conformant_controls: int
    partially_conformant_controls: int
    non_conformant_controls: int
    not_applicable_controls: int


class MILDistribution(BaseModel):
    mil0: int = 0
    mil1: int = 0
    mil2: int = 0
    mil3: int = 0


class FunctionMaturityOut(BaseModel):
    function: str
    achieved_mil: int
    evaluated_controls: int
    total_controls: int
    distribution: MILDistribution


class MaturitySummaryOut(BaseModel):
    framework_id: int
    framework_name: str
    organization_id: int
    functions: list[FunctionMaturityOut]
