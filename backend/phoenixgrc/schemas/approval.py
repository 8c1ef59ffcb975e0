from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from phoenixgrc.models.risk import ApprovalStatus

# Values older clients still send
_DECISION_ALIASES = {"aprovado": "approved", "rejeitado": "rejected"}


class ApprovalWorkflowOut(BaseModel):
    id: int
    risk_id: int
    requester_id: int | None = None
    approver_id: int | None = None
    status: ApprovalStatus
    comments: str | None = None
    decided_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class DecisionPayload(BaseModel):
    decision: Literal["approved", "rejected"]
    comments: str | None = Field(None, max_length=5000)

    @field_validator("decision", mode="before")
    @classmethod
    def _normalize_decision(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return _DECISION_ALIASES.get(v, v)
        return v

    @property
    def status(self) -> ApprovalStatus:
        return ApprovalStatus(self.decision)
