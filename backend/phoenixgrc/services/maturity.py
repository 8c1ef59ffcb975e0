"""
C2M2 maturity summary per NIST CSF function.

Control MIL
    A control is evaluated when its assessment carries at least one practice
    evaluation. Its MIL is the highest L in 1..3 such that, for every level
    1..L, every C2M2 practice targeting that level has been evaluated as fully
    implemented. A practice left unevaluated counts as not met. Levels are
    cumulative, so a gap at MIL1 caps the control at MIL0, and a level with no
    practices in the catalog ends the climb.

Function MIL
    The most frequent control MIL among the function's evaluated controls,
    ties going to the higher level; 0 when nothing is evaluated.
"""
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from phoenixgrc.auth import CallerContext
from phoenixgrc.models.audit import AuditAssessment, AuditControl
from phoenixgrc.models.c2m2 import C2M2Practice, PracticeStatus
from phoenixgrc.services.compliance_score import load_org_framework

NIST_FUNCTIONS = ("Identify", "Protect", "Detect", "Respond", "Recover", "Govern")
MIL_LEVELS = (1, 2, 3)


def function_of(family: str | None) -> str | None:
    """'Identify (ID.AM)' -> 'Identify'."""
    if not family:
        return None
    return family.split(" (", 1)[0].strip() or None


async def practice_catalog(s: AsyncSession) -> dict[int, int]:
    """practice id -> target MIL for every C2M2 practice."""
    rows = (await s.execute(select(C2M2Practice.id, C2M2Practice.target_mil))).all()
    return {practice_id: target_mil for practice_id, target_mil in rows}


def control_mil(evaluations: Mapping[int, PracticeStatus], catalog: Mapping[int, int]) -> int | None:
    """MIL for one control from its ``{practice_id: status}`` evaluations; None if unevaluated."""
    if not evaluations:
        return None

    by_level: dict[int, list[int]] = defaultdict(list)
    for practice_id, target_mil in catalog.items():
        by_level[int(target_mil)].append(practice_id)

    achieved = 0
    for level in MIL_LEVELS:
        practices = by_level.get(level)
        if not practices:
            break
        if any(evaluations.get(pid) != PracticeStatus.FULLY_IMPLEMENTED for pid in practices):
            break
        achieved = level
    return achieved


def evaluation_statuses(a: AuditAssessment) -> dict[int, PracticeStatus]:
    return {ev.practice_id: PracticeStatus(ev.status) for ev in a.practice_evaluations}


def summarize_function(name: str, control_mils: list[int | None]) -> dict:
    evaluated = [m for m in control_mils if m is not None]
    histogram = Counter(evaluated)
    if evaluated:
        achieved = max(histogram, key=lambda level: (histogram[level], level))
    else:
        achieved = 0
    return {
        "function": name,
        "achieved_mil": achieved,
        "evaluated_controls": len(evaluated),
        "total_controls": len(control_mils),
        "distribution": {f"mil{level}": histogram.get(level, 0) for level in range(4)},
    }


def summarize(controls: Iterable[tuple[str | None, int | None]]) -> list[dict]:
    """``(family, control_mil)`` pairs -> one summary per NIST function, fixed order."""
    grouped: dict[str, list[int | None]] = {name: [] for name in NIST_FUNCTIONS}
    for family, mil in controls:
        fn = function_of(family)
        if fn in grouped:
            grouped[fn].append(mil)
    return [summarize_function(name, grouped[name]) for name in NIST_FUNCTIONS]


async def maturity_summary(
    s: AsyncSession, organization_id: int, framework_id: int, caller: CallerContext,
) -> dict:
    framework = await load_org_framework(s, organization_id, framework_id, caller)

    controls = (await s.execute(
        select(AuditControl.id, AuditControl.family).where(AuditControl.framework_id == framework_id)
    )).all()
    assessments = (await s.execute(
        select(AuditAssessment)
        .join(AuditControl, AuditAssessment.audit_control_id == AuditControl.id)
        .where(
            AuditControl.framework_id == framework_id,
            AuditAssessment.organization_id == organization_id,
        )
        .options(selectinload(AuditAssessment.practice_evaluations))
    )).scalars().all()
    catalog = await practice_catalog(s)

    mil_by_control = {
        a.audit_control_id: control_mil(evaluation_statuses(a), catalog)
        for a in assessments
    }
    functions = summarize((family, mil_by_control.get(control_pk)) for control_pk, family in controls)
    return {
        "framework_id": framework.id,
        "framework_name": framework.name,
        "organization_id": organization_id,
        "functions": functions,
    }
