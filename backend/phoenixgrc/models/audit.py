"""
Audit framework models: frameworks, controls and per-organization assessments.

Frameworks and controls are reference data. An organization holds at most one
assessment per control; resubmitting updates the row in place.
"""
import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, str_enum


class ControlStatus(str, enum.Enum):
    CONFORMANT = "conformant"
    PARTIALLY_CONFORMANT = "partially_conformant"
    NON_CONFORMANT = "non_conformant"
    NOT_APPLICABLE = "not_applicable"


DEFAULT_SCORES: dict[ControlStatus, int] = {
    ControlStatus.CONFORMANT: 100,
    ControlStatus.PARTIALLY_CONFORMANT: 50,
    ControlStatus.NON_CONFORMANT: 0,
    ControlStatus.NOT_APPLICABLE: 0,
}


def default_score(status: ControlStatus) -> int:
    return DEFAULT_SCORES[ControlStatus(status)]


class AuditFramework(Base):
    __tablename__ = "audit_frameworks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    controls: Mapped[list["AuditControl"]] = relationship(
        back_populates="framework", cascade="all, delete-orphan",
    )


class AuditControl(Base):
    __tablename__ = "audit_controls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    framework_id: Mapped[int] = mapped_column(
        ForeignKey("audit_frameworks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    control_id: Mapped[str] = mapped_column(String(50), nullable=False)  # e.g. PR.AC-1
    description: Mapped[str | None] = mapped_column(Text)
    family: Mapped[str | None] = mapped_column(String(100))  # e.g. "Identify (ID.AM)"
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    framework: Mapped["AuditFramework"] = relationship(back_populates="controls")


class AuditAssessment(Base):
    __tablename__ = "audit_assessments"
    __table_args__ = (
        UniqueConstraint("organization_id", "audit_control_id", name="uq_audit_assessment_org_control"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    audit_control_id: Mapped[int] = mapped_column(
        ForeignKey("audit_controls.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status: Mapped[ControlStatus] = mapped_column(str_enum(ControlStatus, 30), nullable=False)
    score: Mapped[int | None] = mapped_column(Integer)
    evidence_url: Mapped[str | None] = mapped_column(String(500))
    assessment_date: Mapped[date | None] = mapped_column(Date)
    comments: Mapped[str | None] = mapped_column(Text)

    # C2M2 maturity extension
    c2m2_assessment_date: Mapped[date | None] = mapped_column(Date)
    c2m2_comments: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    practice_evaluations: Mapped[list["C2M2PracticeEvaluation"]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan",
    )
