from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_current_membership, get_tenant_session, require_roles
from fxdesk_api.repositories.currencies import AppCurrencyRepository, OrgCurrencyRepository
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.schemas.currencies import (
    AppCurrencyRead,
    ApplyRatesResult,
    DenominationCreate,
    DenominationRead,
    DenominationUpdate,
    OrgCurrencyCreate,
    OrgCurrencyRead,
    OrgCurrencyUpdate,
    RefreshResult,
)
from fxdesk_api.schemas.repositories import ReorderRequest
from fxdesk_api.services.currencies import CurrencyService
from fxdesk_api.services.fx_rates import FxRateService

router = APIRouter(tags=["Currencies"])


# App currencies (global catalogue)


# PUBLIC_INTERFACE
@router.get(
    "/app-currencies",
    response_model=List[AppCurrencyRead],
    summary="List catalogue currencies",
    dependencies=[Depends(get_current_membership)],
)
async def list_app_currencies(
    type: Optional[str] = Query(None, description="FIAT, CRYPTOCURRENCY or METAL"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[AppCurrencyRead]:
    items = await AppCurrencyRepository(session).list(type_=type)
    return [AppCurrencyRead.model_validate(c) for c in items]


# PUBLIC_INTERFACE
@router.post(
    "/app-currencies/refresh",
    response_model=RefreshResult,
    summary="Refresh catalogue rates",
    description="Fetch the latest rates from the FX API, normalized to the configured base currency.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def refresh_app_currencies(session: AsyncSession = Depends(get_tenant_session)) -> RefreshResult:
    return RefreshResult(**await FxRateService(session).refresh_app_currencies())


# PUBLIC_INTERFACE
@router.post(
    "/currencies/apply-rates",
    response_model=ApplyRatesResult,
    summary="Apply catalogue rates",
    description="Copy catalogue rates onto the organization's currencies by ticker.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def apply_catalogue_rates(session: AsyncSession = Depends(get_tenant_session)) -> ApplyRatesResult:
    return ApplyRatesResult(updated=await FxRateService(session).apply_to_org_currencies())


# Org currencies


# PUBLIC_INTERFACE
@router.get(
    "/currencies",
    response_model=List[OrgCurrencyRead],
    summary="List currencies",
    dependencies=[Depends(get_current_membership)],
)
async def list_currencies(
    tradeable: Optional[bool] = Query(None),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[OrgCurrencyRead]:
    items = await OrgCurrencyRepository(session).list(tradeable=tradeable)
    return [OrgCurrencyRead.model_validate(c) for c in items]


# PUBLIC_INTERFACE
@router.post(
    "/currencies",
    response_model=OrgCurrencyRead,
    status_code=201,
    summary="Create currency",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def create_currency(
    payload: OrgCurrencyCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> OrgCurrencyRead:
    currency = await CurrencyService(session).create(payload.model_dump(exclude_none=True))
    return OrgCurrencyRead.model_validate(currency)


# PUBLIC_INTERFACE
@router.post(
    "/currencies/reorder",
    response_model=List[OrgCurrencyRead],
    summary="Reorder currencies",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def reorder_currencies(
    payload: ReorderRequest,
    session: AsyncSession = Depends(get_tenant_session),
) -> List[OrgCurrencyRead]:
    items = await CurrencyService(session).reorder(payload.ids)
    return [OrgCurrencyRead.model_validate(c) for c in items]


# PUBLIC_INTERFACE
@router.get(
    "/currencies/{currency_id}",
    response_model=OrgCurrencyRead,
    summary="Get currency",
    dependencies=[Depends(get_current_membership)],
)
async def get_currency(
    currency_id: UUID = Path(..., description="Currency ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrgCurrencyRead:
    return OrgCurrencyRead.model_validate(await CurrencyService(session).get(currency_id))


# PUBLIC_INTERFACE
@router.patch(
    "/currencies/{currency_id}",
    response_model=OrgCurrencyRead,
    summary="Update currency",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def update_currency(
    payload: OrgCurrencyUpdate,
    currency_id: UUID = Path(..., description="Currency ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrgCurrencyRead:
    currency = await CurrencyService(session).update(currency_id, payload.model_dump(exclude_unset=True))
    return OrgCurrencyRead.model_validate(currency)


# PUBLIC_INTERFACE
@router.delete(
    "/currencies/{currency_id}",
    response_model=MessageResponse,
    summary="Delete currency",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def delete_currency(
    currency_id: UUID = Path(..., description="Currency ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await CurrencyService(session).delete(currency_id)
    return MessageResponse(message="Currency deleted")


# PUBLIC_INTERFACE
@router.post(
    "/currencies/{currency_id}/base",
    response_model=OrgCurrencyRead,
    summary="Set base currency",
    description="Make this the organization's only base currency.",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def set_base_currency(
    currency_id: UUID = Path(..., description="Currency ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrgCurrencyRead:
    return OrgCurrencyRead.model_validate(await CurrencyService(session).set_base_currency(currency_id))


# Denominations


# PUBLIC_INTERFACE
@router.get(
    "/currencies/{currency_id}/denominations",
    response_model=List[DenominationRead],
    summary="List denominations",
    dependencies=[Depends(get_current_membership)],
)
async def list_denominations(
    currency_id: UUID = Path(..., description="Currency ID"),
    accepted_only: bool = Query(False),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[DenominationRead]:
    items = await CurrencyService(session).list_denominations(currency_id, accepted_only=accepted_only)
    return [DenominationRead.model_validate(d) for d in items]


# PUBLIC_INTERFACE
@router.post(
    "/currencies/{currency_id}/denominations",
    response_model=DenominationRead,
    status_code=201,
    summary="Create denomination",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def create_denomination(
    payload: DenominationCreate,
    currency_id: UUID = Path(..., description="Currency ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> DenominationRead:
    denomination = await CurrencyService(session).create_denomination(currency_id, payload.model_dump())
    return DenominationRead.model_validate(denomination)


# PUBLIC_INTERFACE
@router.patch(
    "/currencies/{currency_id}/denominations/{denomination_id}",
    response_model=DenominationRead,
    summary="Update denomination",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def update_denomination(
    payload: DenominationUpdate,
    currency_id: UUID = Path(..., description="Currency ID"),
    denomination_id: UUID = Path(..., description="Denomination ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> DenominationRead:
    denomination = await CurrencyService(session).update_denomination(
        currency_id, denomination_id, payload.model_dump(exclude_unset=True)
    )
    return DenominationRead.model_validate(denomination)


# PUBLIC_INTERFACE
@router.delete(
    "/currencies/{currency_id}/denominations/{denomination_id}",
    response_model=MessageResponse,
    summary="Delete denomination",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def delete_denomination(
    currency_id: UUID = Path(..., description="Currency ID"),
    denomination_id: UUID = Path(..., description="Denomination ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await CurrencyService(session).delete_denomination(currency_id, denomination_id)
    return MessageResponse(message="Denomination deleted")
