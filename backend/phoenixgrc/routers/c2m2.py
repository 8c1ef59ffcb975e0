"""C2M2 reference data: /api/v1/c2m2"""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phoenixgrc.auth import CallerContext, get_caller
from phoenixgrc.database import get_session
from phoenixgrc.errors import NotFound
from phoenixgrc.models.c2m2 import C2M2Domain, C2M2Practice
from phoenixgrc.schemas.c2m2 import C2M2DomainOut, C2M2PracticeOut

router = APIRouter(prefix="/api/v1/c2m2", tags=["C2M2"])


@router.get("/domains", response_model=list[C2M2DomainOut], summary="List C2M2 domains")
async def list_domains(
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    return (await s.execute(select(C2M2Domain).order_by(C2M2Domain.code))).scalars().all()


@router.get("/domains/{domain_id}/practices", response_model=list[C2M2PracticeOut], summary="Practices of a domain")
async def list_practices(
    domain_id: int,
    caller: CallerContext = Depends(get_caller),
    s: AsyncSession = Depends(get_session),
):
    if not await s.get(C2M2Domain, domain_id):
        raise NotFound("C2M2 domain not found")
    q = select(C2M2Practice).where(C2M2Practice.domain_id == domain_id).order_by(C2M2Practice.code)
    return (await s.execute(q)).scalars().all()
