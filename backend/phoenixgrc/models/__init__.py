from .base import Base
from .organization import Organization
from .user import User, UserRole
from .risk import (
    ApprovalStatus,
    ApprovalWorkflow,
    Risk,
    RiskCategory,
    RiskImpact,
    RiskLevel,
    RiskProbability,
    RiskStakeholder,
    RiskStatus,
)
from .audit import AuditAssessment, AuditControl, AuditFramework, ControlStatus
from .c2m2 import C2M2Domain, C2M2Practice, C2M2PracticeEvaluation, PracticeStatus
from .webhook import WebhookConfiguration, WebhookEventType

__all__ = [
    "Base",
    "Organization",
    "User", "UserRole",
    "Risk", "RiskStakeholder", "ApprovalWorkflow",
    "RiskCategory", "RiskImpact", "RiskProbability", "RiskStatus", "RiskLevel", "ApprovalStatus",
    "AuditFramework", "AuditControl", "AuditAssessment", "ControlStatus",
    "C2M2Domain", "C2M2Practice", "C2M2PracticeEvaluation", "PracticeStatus",
    "WebhookConfiguration", "WebhookEventType",
]
