from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import get_current_active_user, get_current_membership, get_tenant_session
from fxdesk_api.db.models.users import User
from fxdesk_api.schemas.transfers import (
    CurrencySwapCreate,
    CurrencySwapRead,
    FloatTransferCreate,
    FloatTransferRead,
)
from fxdesk_api.services.transfers import TransferService

router = APIRouter(tags=["Transfers"], dependencies=[Depends(get_current_membership)])


# PUBLIC_INTERFACE
@router.post(
    "/transfers",
    response_model=FloatTransferRead,
    status_code=201,
    summary="Create float transfer",
    description=(
        "Move float between two repositories of a session that is open for business. "
        "OUTBOUND breakdowns reduce the stack close count, INBOUND ones increase it."
    ),
)
async def create_float_transfer(
    payload: FloatTransferCreate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> FloatTransferRead:
    data = payload.model_dump()
    transfer = await TransferService(session).create_transfer(user=user, **data)
    return FloatTransferRead.model_validate(transfer)


# PUBLIC_INTERFACE
@router.get("/transfers", response_model=List[FloatTransferRead], summary="List float transfers of a session")
async def list_float_transfers(
    session_id: UUID = Query(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[FloatTransferRead]:
    items = await TransferService(session).list_transfers(session_id)
    return [FloatTransferRead.model_validate(t) for t in items]


# PUBLIC_INTERFACE
@router.post(
    "/swaps",
    response_model=CurrencySwapRead,
    status_code=201,
    summary="Create currency swap",
    description="Swap one currency between two repositories of a session that is open for business.",
)
async def create_currency_swap(
    payload: CurrencySwapCreate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> CurrencySwapRead:
    swap = await TransferService(session).create_swap(user=user, **payload.model_dump())
    return CurrencySwapRead.model_validate(swap)


# PUBLIC_INTERFACE
@router.get("/swaps", response_model=List[CurrencySwapRead], summary="List currency swaps of a session")
async def list_currency_swaps(
    session_id: UUID = Query(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[CurrencySwapRead]:
    items = await TransferService(session).list_swaps(session_id)
    return [CurrencySwapRead.model_validate(s) for s in items]
