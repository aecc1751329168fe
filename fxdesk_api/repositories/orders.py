from __future__ import annotations

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update

from fxdesk_api.db.models.orders import Breakdown, CurrencySwap, FloatTransfer, Order
from .base import BaseRepository


class OrderRepository(BaseRepository):
    async def list(
        self,
        *,
        session_id: Optional[UUID] = None,
        status: Optional[str] = None,
        customer_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        stmt = select(Order)
        if session_id:
            stmt = stmt.where(Order.session_id == session_id)
        if status:
            stmt = stmt.where(Order.status == status)
        if customer_id:
            stmt = stmt.where(Order.customer_id == customer_id)
        stmt = stmt.order_by(Order.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def list_open_for_session(self, session_id: UUID, done: Iterable[str]) -> List[Order]:
        """Orders of the session whose status is not in `done`."""
        stmt = select(Order).where(Order.session_id == session_id, Order.status.not_in(list(done)))
        return list(await self.scalars(stmt))

    async def get(self, order_id: UUID) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        return await self.scalar_one_or_none(stmt)

    async def create(self, **values) -> Order:
        order = Order(**values)
        await self.add(order)
        await self.flush()
        return order


class BreakdownRepository(BaseRepository):
    """Denomination breakdowns keyed by (breakable_type, breakable_id)."""

    async def list_for(self, breakable_type: str, breakable_id: UUID) -> List[Breakdown]:
        stmt = (
            select(Breakdown)
            .where(Breakdown.breakable_type == breakable_type, Breakdown.breakable_id == breakable_id)
            .order_by(Breakdown.direction.asc(), Breakdown.created_at.asc())
        )
        return list(await self.scalars(stmt))

    async def delete_for(
        self, breakable_type: str, breakable_id: UUID, directions: Optional[Iterable[str]] = None
    ) -> None:
        stmt = delete(Breakdown).where(
            Breakdown.breakable_type == breakable_type, Breakdown.breakable_id == breakable_id
        )
        if directions is not None:
            stmt = stmt.where(Breakdown.direction.in_(list(directions)))
        await self.execute(stmt)

    async def set_status(self, breakable_type: str, breakable_id: UUID, status: str) -> None:
        stmt = (
            update(Breakdown)
            .where(Breakdown.breakable_type == breakable_type, Breakdown.breakable_id == breakable_id)
            .values(status=status)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(stmt)

    async def create(self, **values) -> Breakdown:
        breakdown = Breakdown(**values)
        await self.add(breakdown)
        return breakdown


class FloatTransferRepository(BaseRepository):
    async def list_for_session(self, session_id: UUID) -> List[FloatTransfer]:
        stmt = (
            select(FloatTransfer)
            .where(FloatTransfer.session_id == session_id)
            .order_by(FloatTransfer.created_at.desc())
        )
        return list(await self.scalars(stmt))

    async def create(self, **values) -> FloatTransfer:
        transfer = FloatTransfer(**values)
        await self.add(transfer)
        await self.flush()
        return transfer


class CurrencySwapRepository(BaseRepository):
    async def list_for_session(self, session_id: UUID) -> List[CurrencySwap]:
        stmt = (
            select(CurrencySwap)
            .where(CurrencySwap.session_id == session_id)
            .order_by(CurrencySwap.created_at.desc())
        )
        return list(await self.scalars(stmt))

    async def create(self, **values) -> CurrencySwap:
        swap = CurrencySwap(**values)
        await self.add(swap)
        await self.flush()
        return swap
