"""
C2M2 (Cybersecurity Capability Maturity Model) reference data and
per-assessment practice evaluations.
"""
import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, str_enum


class PracticeStatus(str, enum.Enum):
    NOT_IMPLEMENTED = "not_implemented"
    PARTIALLY_IMPLEMENTED = "partially_implemented"
    FULLY_IMPLEMENTED = "fully_implemented"


class C2M2Domain(Base):
    __tablename__ = "c2m2_domains"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)  # e.g. Risk Management
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)  # e.g. RISK
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    practices: Mapped[list["C2M2Practice"]] = relationship(
        back_populates="domain", cascade="all, delete-orphan",
    )


class C2M2Practice(Base):
    __tablename__ = "c2m2_practices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    domain_id: Mapped[int] = mapped_column(
        ForeignKey("c2m2_domains.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)  # e.g. RISK-1a
    description: Mapped[str] = mapped_column(Text, nullable=False)
    target_mil: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..3
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    domain: Mapped["C2M2Domain"] = relationship(back_populates="practices")


class C2M2PracticeEvaluation(Base):
    __tablename__ = "c2m2_practice_evaluations"
    __table_args__ = (
        UniqueConstraint("audit_assessment_id", "practice_id", name="uq_c2m2_eval_assessment_practice"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    audit_assessment_id: Mapped[int] = mapped_column(
        ForeignKey("audit_assessments.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    practice_id: Mapped[int] = mapped_column(
        ForeignKey("c2m2_practices.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status: Mapped[PracticeStatus] = mapped_column(str_enum(PracticeStatus, 50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assessment: Mapped["AuditAssessment"] = relationship(back_populates="practice_evaluations")
    practice: Mapped["C2M2Practice"] = relationship()
