from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from phoenixgrc.models.risk import (
    RiskCategory, RiskImpact, RiskLevel, RiskProbability, RiskStatus,
)


def _reject_accepted(value: RiskStatus | None) -> RiskStatus | None:
    if value == RiskStatus.ACCEPTED:
        raise ValueError("status 'accepted' can only be reached through an approved acceptance workflow")
    return value


# ═══════════════════ Risk ═══════════════════

class RiskOut(BaseModel):
    id: int
    organization_id: int
    title: str
    description: str | None = None
    category: RiskCategory | None = None
    impact: RiskImpact | None = None
    probability: RiskProbability | None = None
    risk_level: RiskLevel
    status: RiskStatus
    owner_id: int | None = None
    owner_name: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RiskCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: str | None = None
    category: RiskCategory | None = None
    impact: RiskImpact | None = None
    probability: RiskProbability | None = None
    status: RiskStatus = RiskStatus.OPEN
    owner_id: int | None = None

    @field_validator("status")
    @classmethod
    def _status_not_accepted(cls, v):
        return _reject_accepted(v)


class RiskUpdate(BaseModel):
    title: str | None = Field(None, min_length=3, max_length=255)
    description: str | None = None
    category: RiskCategory | None = None
    impact: RiskImpact | None = None
    probability: RiskProbability | None = None
    status: RiskStatus | None = None
    owner_id: int | None = None

    @field_validator("status")
    @classmethod
    def _status_not_accepted(cls, v):
        return _reject_accepted(v)


# ═══════════════════ Stakeholders ═══════════════════

class StakeholderAdd(BaseModel):
    user_id: int


class StakeholderOut(BaseModel):
    user_id: int
    name: str
    email: str
    created_at: datetime
