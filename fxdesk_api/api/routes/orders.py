from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_current_membership, get_tenant_session, require_roles
from fxdesk_api.db.models.users import OrgMembership
from fxdesk_api.repositories.orders import OrderRepository
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.schemas.orders import (
    BreakableType,
    BreakdownCommitRequest,
    BreakdownSetRequest,
    BreakdownWithValue,
    OrderCreate,
    OrderRead,
    OrderUpdate,
    QuoteRequest,
    QuoteResponse,
)
from fxdesk_api.services.orders import BreakdownService, OrderService

router = APIRouter(tags=["Orders"], dependencies=[Depends(get_current_membership)])


# PUBLIC_INTERFACE
@router.post(
    "/orders/quote",
    response_model=QuoteResponse,
    summary="Quote an order",
    description="Price an exchange from the organization's currency rates without saving it.",
)
async def quote_order(
    payload: QuoteRequest,
    session: AsyncSession = Depends(get_tenant_session),
) -> QuoteResponse:
    quote = await OrderService(session).quote(
        inbound_ticker=payload.inbound_ticker,
        outbound_ticker=payload.outbound_ticker,
        inbound_sum=payload.inbound_sum,
        outbound_sum=payload.outbound_sum,
    )
    return QuoteResponse(**quote)


# PUBLIC_INTERFACE
@router.get("/orders", response_model=List[OrderRead], summary="List orders")
async def list_orders(
    session_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None),
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[OrderRead]:
    items = await OrderRepository(session).list(
        session_id=session_id, status=status, customer_id=customer_id, limit=limit, offset=offset
    )
    return [OrderRead.model_validate(o) for o in items]


# PUBLIC_INTERFACE
@router.post("/orders", response_model=OrderRead, status_code=201, summary="Create order")
async def create_order(
    payload: OrderCreate,
    membership: OrgMembership = Depends(get_current_membership),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrderRead:
    order = await OrderService(session).create(payload.model_dump(), membership.user_id)
    return OrderRead.model_validate(order)


# PUBLIC_INTERFACE
@router.get("/orders/{order_id}", response_model=OrderRead, summary="Get order")
async def get_order(
    order_id: UUID = Path(..., description="Order ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrderRead:
    return OrderRead.model_validate(await OrderService(session).get(order_id))


# PUBLIC_INTERFACE
@router.patch(
    "/orders/{order_id}",
    response_model=OrderRead,
    summary="Update order",
    description="Partial update; a status change is validated against the order statuses.",
)
async def update_order(
    payload: OrderUpdate,
    order_id: UUID = Path(..., description="Order ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> OrderRead:
    order = await OrderService(session).update(order_id, payload.model_dump(exclude_unset=True))
    return OrderRead.model_validate(order)


# PUBLIC_INTERFACE
@router.delete(
    "/orders/{order_id}",
    response_model=MessageResponse,
    summary="Delete order",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def delete_order(
    order_id: UUID = Path(..., description="Order ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await OrderService(session).delete(order_id)
    return MessageResponse(message="Order deleted")


# Breakdowns


# PUBLIC_INTERFACE
@router.get(
    "/breakdowns/{breakable_type}/{breakable_id}",
    response_model=List[BreakdownWithValue],
    summary="List breakdowns",
)
async def list_breakdowns(
    breakable_type: BreakableType = Path(..., description="ORDER, FLOAT_TRANSFER or CURRENCY_SWAP"),
    breakable_id: UUID = Path(..., description="Id of the order, transfer or swap"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[BreakdownWithValue]:
    rows = await BreakdownService(session).list(breakable_type, breakable_id)
    return [BreakdownWithValue.model_validate(row) for row in rows]


# PUBLIC_INTERFACE
@router.put(
    "/breakdowns/{breakable_type}/{breakable_id}",
    response_model=MessageResponse,
    summary="Set breakdowns",
    description="Replace the rows of the directions present in the request; other directions are kept.",
)
async def set_breakdowns(
    payload: BreakdownSetRequest,
    breakable_type: BreakableType = Path(...),
    breakable_id: UUID = Path(...),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    count = await BreakdownService(session).set(
        breakable_type, breakable_id, [entry.model_dump() for entry in payload.entries]
    )
    return MessageResponse(message="Breakdowns saved", details={"count": count})


# PUBLIC_INTERFACE
@router.post(
    "/breakdowns/{breakable_type}/{breakable_id}/commit",
    response_model=MessageResponse,
    summary="Commit or uncommit breakdowns",
)
async def commit_breakdowns(
    payload: BreakdownCommitRequest,
    breakable_type: BreakableType = Path(...),
    breakable_id: UUID = Path(...),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    status = await BreakdownService(session).set_committed(breakable_type, breakable_id, payload.committed)
    return MessageResponse(message="Breakdowns updated", details={"status": status})


# PUBLIC_INTERFACE
@router.delete(
    "/breakdowns/{breakable_type}/{breakable_id}",
    response_model=MessageResponse,
    summary="Clear breakdowns",
)
async def clear_breakdowns(
    breakable_type: BreakableType = Path(...),
    breakable_id: UUID = Path(...),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await BreakdownService(session).clear(breakable_type, breakable_id)
    return MessageResponse(message="Breakdowns cleared")
