import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, str_enum


class RiskCategory(str, enum.Enum):
    TECHNOLOGICAL = "technological"
    OPERATIONAL = "operational"
    LEGAL = "legal"


class RiskImpact(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskProbability(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    MITIGATED = "mitigated"
    ACCEPTED = "accepted"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"
    UNDEFINED = "undefined"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


_SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}

# rows: probability 1..4, columns: impact 1..4
_RISK_MATRIX: tuple[tuple[RiskLevel, ...], ...] = (
    (RiskLevel.LOW, RiskLevel.LOW, RiskLevel.MODERATE, RiskLevel.HIGH),
    (RiskLevel.LOW, RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.HIGH),
    (RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.HIGH, RiskLevel.EXTREME),
    (RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.EXTREME, RiskLevel.EXTREME),
)


def compute_risk_level(impact: RiskImpact | None, probability: RiskProbability | None) -> RiskLevel:
    """Look up the 4x4 probability x impact matrix."""
    if impact is None or probability is None:
        return RiskLevel.UNDEFINED
    i = _SEVERITY_RANK[RiskImpact(impact).value]
    p = _SEVERITY_RANK[RiskProbability(probability).value]
    return _RISK_MATRIX[p - 1][i - 1]


class Risk(Base):
    __tablename__ = "risks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[RiskCategory | None] = mapped_column(str_enum(RiskCategory, 50))
    impact: Mapped[RiskImpact | None] = mapped_column(str_enum(RiskImpact, 20))
    probability: Mapped[RiskProbability | None] = mapped_column(str_enum(RiskProbability, 20))
    risk_level: Mapped[RiskLevel] = mapped_column(
        str_enum(RiskLevel, 20), default=RiskLevel.UNDEFINED, nullable=False,
    )
    status: Mapped[RiskStatus] = mapped_column(
        str_enum(RiskStatus, 20), default=RiskStatus.OPEN, nullable=False, index=True,
    )
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def recompute_level(self) -> None:
        self.risk_level = compute_risk_level(self.impact, self.probability)


class RiskStakeholder(Base):
    __tablename__ = "risk_stakeholders"

    risk_id: Mapped[int] = mapped_column(ForeignKey("risks.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ApprovalWorkflow(Base):
    """Risk-acceptance request. ``pending`` is the only non-terminal status."""

    __tablename__ = "approval_workflows"
    __table_args__ = (
        # One pending request per risk, enforced by the database
        Index(
            "uq_approval_workflows_pending_risk",
            "risk_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    risk_id: Mapped[int] = mapped_column(ForeignKey("risks.id", ondelete="CASCADE"), nullable=False)
    requester_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    status: Mapped[ApprovalStatus] = mapped_column(
        str_enum(ApprovalStatus, 20), default=ApprovalStatus.PENDING, nullable=False,
    )
    comments: Mapped[str | None] = mapped_column(Text)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
