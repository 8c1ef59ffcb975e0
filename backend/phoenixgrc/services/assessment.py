"""
Assessment store: one assessment per (organization, control).

Submissions are idempotent upserts: the assessment row is written with the
dialect's native ``INSERT ... ON CONFLICT`` (``ON DUPLICATE KEY`` on MySQL),
and its C2M2 practice evaluations are upserted in the same transaction.
"""
import logging
from collections.abc import Mapping
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from phoenixgrc.auth import CallerContext
from phoenixgrc.errors import GRCError, InvalidInput, NotFound
from phoenixgrc.models.audit import AuditAssessment, AuditControl, default_score
from phoenixgrc.models.c2m2 import C2M2Practice, C2M2PracticeEvaluation
from phoenixgrc.schemas.audit import AssessmentUpsert
from phoenixgrc.services.compliance_score import load_org_framework
from phoenixgrc.services.maturity import control_mil, evaluation_statuses

logger = logging.getLogger(__name__)

_ASSESSMENT_KEY = ("organization_id", "audit_control_id")
_EVALUATION_KEY = ("audit_assessment_id", "practice_id")


def _upsert(s: AsyncSession, model, rows: list[dict], key: tuple[str, ...]):
    """Build an insert-or-update statement for the session's dialect."""
    dialect = s.get_bind().dialect.name
    update_cols = [c for c in rows[0] if c not in key and c != "created_at"]

    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(rows)
        return stmt.on_conflict_do_update(
            index_elements=list(key), set_={c: stmt.excluded[c] for c in update_cols},
        )
    if dialect == "sqlite":
        stmt = sqlite.insert(model).values(rows)
        return stmt.on_conflict_do_update(
            index_elements=list(key), set_={c: stmt.excluded[c] for c in update_cols},
        )
    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(model).values(rows)
        return stmt.on_duplicate_key_update({c: stmt.inserted[c] for c in update_cols})
    raise GRCError(f"Upsert not supported on dialect '{dialect}'")


def _assessment_query():
    return select(AuditAssessment).options(
        selectinload(AuditAssessment.practice_evaluations)
    ).execution_options(populate_existing=True)


def assessment_out(a: AuditAssessment, catalog: Mapping[int, int]) -> dict:
    """Response body; ``catalog`` maps practice id to target MIL."""
    evaluations = list(a.practice_evaluations)
    return {
        "id": a.id,
        "organization_id": a.organization_id,
        "audit_control_id": a.audit_control_id,
        "status": a.status,
        "score": a.score,
        "evidence_url": a.evidence_url,
        "assessment_date": a.assessment_date,
        "comments": a.comments,
        "c2m2_assessment_date": a.c2m2_assessment_date,
        "c2m2_comments": a.c2m2_comments,
        "c2m2_practice_evaluations": [
            {"practice_id": ev.practice_id, "status": ev.status}
            for ev in sorted(evaluations, key=lambda ev: ev.practice_id)
        ],
        "c2m2_mil": control_mil(evaluation_statuses(a), catalog),
        "created_at": a.created_at,
        "updated_at": a.updated_at,
    }


# ═══ UPSERT ═══

async def upsert_assessment(s: AsyncSession, caller: CallerContext, body: AssessmentUpsert) -> AuditAssessment:
    control = await s.get(AuditControl, body.audit_control_id)
    if control is None:
        raise NotFound("Audit control not found")

    evaluations = body.c2m2_practice_evaluations or {}
    if evaluations:
        known = set((await s.execute(
            select(C2M2Practice.id).where(C2M2Practice.id.in_(list(evaluations)))
        )).scalars().all())
        unknown = sorted(set(evaluations) - known)
        if unknown:
            raise InvalidInput(f"Unknown C2M2 practice ids: {unknown}")

    now = datetime.utcnow()
    row = {
        "organization_id": caller.organization_id,
        "audit_control_id": control.id,
        "status": body.status,
        "score": body.score if body.score is not None else default_score(body.status),
        "evidence_url": str(body.evidence_url) if body.evidence_url else None,
        "assessment_date": body.assessment_date or date.today(),
        "comments": body.comments,
        "c2m2_assessment_date": body.c2m2_assessment_date,
        "c2m2_comments": body.c2m2_comments,
        "created_at": now,
        "updated_at": now,
    }
    await s.execute(_upsert(s, AuditAssessment, [row], _ASSESSMENT_KEY))

    assessment_id = (await s.execute(
        select(AuditAssessment.id).where(
            AuditAssessment.organization_id == caller.organization_id,
            AuditAssessment.audit_control_id == control.id,
        )
    )).scalar_one()

    if evaluations:
        eval_rows = [
            {
                "audit_assessment_id": assessment_id,
                "practice_id": practice_id,
                "status": status,
                "created_at": now,
                "updated_at": now,
            }
            for practice_id, status in sorted(evaluations.items())
        ]
        await s.execute(_upsert(s, C2M2PracticeEvaluation, eval_rows, _EVALUATION_KEY))

    await s.commit()
    logger.info(
        "Assessment %s upserted for org %s control %s (%d practice evaluations)",
        assessment_id, caller.organization_id, control.id, len(evaluations),
    )
    return (await s.execute(_assessment_query().where(AuditAssessment.id == assessment_id))).scalar_one()


# ═══ READ ═══

async def get_for_control(s: AsyncSession, caller: CallerContext, control_id: int) -> AuditAssessment:
    a = (await s.execute(
        _assessment_query().where(
            AuditAssessment.organization_id == caller.organization_id,
            AuditAssessment.audit_control_id == control_id,
        )
    )).scalar_one_or_none()
    if a is None:
        raise NotFound("No assessment for this control")
    return a


async def list_for_framework(
    s: AsyncSession,
    caller: CallerContext,
    organization_id: int,
    framework_id: int,
    page: int,
    page_size: int,
) -> tuple[list[AuditAssessment], int]:
    await load_org_framework(s, organization_id, framework_id, caller)

    scope = (
        AuditControl.framework_id == framework_id,
        AuditAssessment.organization_id == organization_id,
    )
    total = (await s.execute(
        select(func.count())
        .select_from(AuditAssessment)
        .join(AuditControl, AuditAssessment.audit_control_id == AuditControl.id)
        .where(*scope)
    )).scalar_one()
    q = (
        _assessment_query()
        .join(AuditControl, AuditAssessment.audit_control_id == AuditControl.id)
        .where(*scope)
        .order_by(AuditAssessment.assessment_date.desc(), AuditAssessment.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list((await s.execute(q)).scalars().all()), total


async def assessments_by_control(s: AsyncSession, organization_id: int, control_ids: list[int]) -> dict[int, AuditAssessment]:
    if not control_ids:
        return {}
    rows = (await s.execute(
        _assessment_query().where(
            AuditAssessment.organization_id == organization_id,
            AuditAssessment.audit_control_id.in_(control_ids),
        )
    )).scalars().all()
    return {a.audit_control_id: a for a in rows}


# ═══ EVIDENCE ═══

async def clear_evidence(s: AsyncSession, caller: CallerContext, assessment_id: int) -> str:
    a = await s.get(AuditAssessment, assessment_id)
    if a is None or a.organization_id != caller.organization_id:
        raise NotFound("Assessment not found")
    if not a.evidence_url:
        return "No evidence to delete"

    if not a.evidence_url.startswith(("http://", "https://")):
        # stored object; the file store is managed outside this service
        logger.warning("Evidence object %s of assessment %s left in storage", a.evidence_url, a.id)
    a.evidence_url = None
    await s.commit()
    logger.info("Evidence cleared from assessment %s by user %s", a.id, caller.user_id)
    return "Evidence deleted"
