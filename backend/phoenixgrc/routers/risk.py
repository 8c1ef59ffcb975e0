"""
Risk register: /api/v1/risks

Risk level comes from the 4x4 probability x impact matrix and is recomputed on
every write. "Delete" archives the risk so its acceptance history survives.
"""
import logging

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext, get_caller
from phoenixgrc.config import Settings, get_settings
from phoenixgrc.database import get_session
from phoenixgrc.errors import Forbidden, InvalidInput, NotFound
from phoenixgrc.models.risk import (
    Risk, RiskCategory, RiskImpact, RiskProbability, RiskStakeholder, RiskStatus,
)
from phoenixgrc.models.user import User
from phoenixgrc.models.webhook import WebhookEventType
from phoenixgrc.schemas.common import MessageOut, Page, clamp_paging, page_count
from phoenixgrc.schemas.risk import RiskCreate, RiskOut, RiskUpdate, StakeholderAdd, StakeholderOut
from phoenixgrc.services.notifications import NotificationSink, get_notifier, risk_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/risks", tags=["Risks"])


# -- helpers --

async def _risk_out(s: AsyncSession, risk: Risk) -> RiskOut:
    owner = await s.get(User, risk.owner_id) if risk.owner_id else None
    return RiskOut(
        id=risk.id,
        organization_id=risk.organization_id,
        title=risk.title,
        description=risk.description,
        category=risk.category,
        impact=risk.impact,
        probability=risk.probability,
        risk_level=risk.risk_level,
        status=risk.status,
        owner_id=risk.owner_id,
        owner_name=owner.name if owner else None,
        is_active=risk.is_active,
        created_at=risk.created_at,
        updated_at=risk.updated_at,
    )


async def _get_org_risk(s: AsyncSession, risk_id: int, caller: CallerContext) -> Risk:
    risk = await s.get(Risk, risk_id)
    if not risk or risk.organization_id != caller.organization_id:
        raise NotFound("Risk not found")
    return risk


async def _get_org_user(s: AsyncSession, user_id: int, caller: CallerContext) -> User:
    user = await s.get(User, user_id)
    if not user or user.organization_id != caller.organization_id:
        raise NotFound("User not found in your organization")
    return user


def _can_edit(risk: Risk, caller: CallerContext) -> bool:
    return caller.is_admin_or_manager or risk.owner_id == caller.user_id


# =================== LIST ===================

@router.get("", response_model=Page[RiskOut], summary="List risks")
async def list_risks(
    page: int | None = Query(None),
    page_size: int | None = Query(None),
    status: RiskStatus | None = Query(None),
    impact: RiskImpact | None = Query(None),
    probability: RiskProbability | None = Query(None),
    category: RiskCategory | None = Query(None),
    include_archived: bool = Query(False),
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    page, page_size = clamp_paging(page, page_size)
    filters = [Risk.organization_id == caller.organization_id]
    if not include_archived:
        filters.append(Risk.is_active.is_(True))
    if status is not None:
        filters.append(Risk.status == status)
    if impact is not None:
        filters.append(Risk.impact == impact)
    if probability is not None:
        filters.append(Risk.probability == probability)
    if category is not None:
        filters.append(Risk.category == category)

    total = (await s.execute(select(func.count()).select_from(Risk).where(*filters))).scalar_one()
    q = (
        select(Risk).where(*filters)
        .order_by(Risk.created_at.desc(), Risk.id.desc())
        .offset((page - 1) * page_size).limit(page_size)
    )
    risks = (await s.execute(q)).scalars().all()
    return Page[RiskOut](
        items=[await _risk_out(s, r) for r in risks],
        total_items=total,
        total_pages=page_count(total, page_size),
        page=page,
        page_size=page_size,
    )


# =================== GET ===================

@router.get("/{risk_id}", response_model=RiskOut, summary="Get risk")
async def get_risk(
    risk_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return await _risk_out(s, await _get_org_risk(s, risk_id, caller))


# =================== CREATE ===================

@router.post("", response_model=RiskOut, status_code=201, summary="Create risk")
async def create_risk(
    body: RiskCreate,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
    notifier: NotificationSink = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    data = body.model_dump()
    if data["owner_id"] is None:
        data["owner_id"] = caller.user_id
    elif data["owner_id"] != caller.user_id:
        try:
            await _get_org_user(s, data["owner_id"], caller)
        except NotFound:
            raise InvalidInput("Owner must be a user of your organization")

    risk = Risk(organization_id=caller.organization_id, **data)
    risk.recompute_level()
    s.add(risk)
    await s.commit()
    await s.refresh(risk)
    logger.info("Risk %s created in org %s by user %s", risk.id, risk.organization_id, caller.user_id)

    link = risk_link(settings, risk.id)
    notifier.notify_org_event(
        risk.organization_id, WebhookEventType.RISK_CREATED,
        f"New Risk Created: '{risk.title}' (level {risk.risk_level.value}). {link}",
    )
    notifier.notify_user(
        risk.owner_id,
        f"New Risk Created: '{risk.title}'",
        f"You are the owner of the new risk '{risk.title}'.\n{link}",
    )
    return await _risk_out(s, risk)


# =================== UPDATE ===================

@router.put("/{risk_id}", response_model=RiskOut, summary="Update risk")
async def update_risk(
    risk_id: int,
    body: RiskUpdate,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
    notifier: NotificationSink = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    risk = await _get_org_risk(s, risk_id, caller)
    if not risk.is_active:
        raise NotFound("Risk not found")
    if not _can_edit(risk, caller):
        raise Forbidden("Only the risk owner, an admin or a manager can edit this risk")

    data = body.model_dump(exclude_unset=True)
    if "owner_id" in data and data["owner_id"] != risk.owner_id:
        if not caller.is_admin_or_manager:
            raise Forbidden("Only admins and managers can reassign the risk owner")
        if data["owner_id"] is not None:
            try:
                await _get_org_user(s, data["owner_id"], caller)
            except NotFound:
                raise InvalidInput("Owner must be a user of your organization")
    for field in ("title", "status"):
        if field in data and data[field] is None:
            raise InvalidInput(f"{field} cannot be null")

    old_status = risk.status
    for k, v in data.items():
        setattr(risk, k, v)
    risk.recompute_level()
    await s.commit()
    await s.refresh(risk)

    if risk.status != old_status:
        logger.info("Risk %s status %s -> %s by user %s", risk.id, old_status.value, risk.status.value, caller.user_id)
        link = risk_link(settings, risk.id)
        notifier.notify_org_event(
            risk.organization_id, WebhookEventType.RISK_STATUS_CHANGED,
            f"Risk '{risk.title}' status changed from {old_status.value} to {risk.status.value}. {link}",
        )
        notifier.notify_user(
            risk.owner_id,
            f"Risk status changed: '{risk.title}'",
            f"Status changed from {old_status.value} to {risk.status.value}.\n{link}",
        )
    return await _risk_out(s, risk)


# =================== ARCHIVE (soft delete) ===================

@router.delete("/{risk_id}", summary="Archive risk")
async def archive_risk(
    risk_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    risk = await _get_org_risk(s, risk_id, caller)
    if not _can_edit(risk, caller):
        raise Forbidden("Only the risk owner, an admin or a manager can archive this risk")
    risk.is_active = False
    await s.commit()
    logger.info("Risk %s archived by user %s", risk_id, caller.user_id)
    return {"status": "archived", "id": risk_id}


# =================== STAKEHOLDERS ===================

@router.get("/{risk_id}/stakeholders", response_model=list[StakeholderOut], summary="List stakeholders")
async def list_stakeholders(
    risk_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    await _get_org_risk(s, risk_id, caller)
    q = (
        select(RiskStakeholder, User)
        .join(User, RiskStakeholder.user_id == User.id)
        .where(RiskStakeholder.risk_id == risk_id)
        .order_by(User.name)
    )
    rows = (await s.execute(q)).all()
    return [
        StakeholderOut(user_id=u.id, name=u.name, email=u.email, created_at=rs.created_at)
        for rs, u in rows
    ]


@router.post("/{risk_id}/stakeholders", response_model=MessageOut, status_code=201, summary="Add stakeholder")
async def add_stakeholder(
    risk_id: int,
    body: StakeholderAdd,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    risk = await _get_org_risk(s, risk_id, caller)
    if not _can_edit(risk, caller):
        raise Forbidden("Only the risk owner, an admin or a manager can manage stakeholders")
    user = await _get_org_user(s, body.user_id, caller)

    if await s.get(RiskStakeholder, (risk.id, user.id)):
        response.status_code = 200
        return MessageOut(message="Stakeholder association already exists.")

    s.add(RiskStakeholder(risk_id=risk.id, user_id=user.id))
    await s.commit()
    return MessageOut(message="Stakeholder added.")


@router.delete("/{risk_id}/stakeholders/{user_id}", response_model=MessageOut, summary="Remove stakeholder")
async def remove_stakeholder(
    risk_id: int,
    user_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    risk = await _get_org_risk(s, risk_id, caller)
    if not _can_edit(risk, caller):
        raise Forbidden("Only the risk owner, an admin or a manager can manage stakeholders")
    link = await s.get(RiskStakeholder, (risk.id, user_id))
    if not link:
        raise NotFound("Stakeholder association not found")
    await s.delete(link)
    await s.commit()
    return MessageOut(message="Stakeholder removed.")
