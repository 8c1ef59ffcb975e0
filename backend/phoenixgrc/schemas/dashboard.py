from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from phoenixgrc.models.risk import RiskImpact, RiskProbability


class RiskMatrixCell(BaseModel):
    probability: RiskProbability
    impact: RiskImpact
    count: int


class FrameworkComplianceItem(BaseModel):
    framework_id: int
    framework_name: str
    score: float


class ActivityItem(BaseModel):
    type: Literal["risk", "acceptance_request"]
    title: str
    timestamp: datetime
    link: str
