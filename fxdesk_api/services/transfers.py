"""
Float transfers and currency swaps between repositories of an open session.

Both movements adjust float stack close counts from their breakdowns and are
committed once at the end, so a failure leaves no partial movement behind.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import BusinessRuleError, InvalidStateError, NotFoundError
from fxdesk_api.db.models.users import User
from fxdesk_api.repositories.currencies import OrgCurrencyRepository
from fxdesk_api.repositories.org_repositories import OrgRepositoryRepository
from fxdesk_api.repositories.orders import BreakdownRepository, CurrencySwapRepository, FloatTransferRepository
from fxdesk_api.repositories.organizations import ActivityRepository
from fxdesk_api.repositories.sessions import CxSessionRepository, FloatStackRepository
from fxdesk_api.services.base import BaseService
from fxdesk_api.services.session_workflow import FLOAT_OPEN_COMPLETE

logger = logging.getLogger(__name__)

FLOAT_TRANSFER = "FLOAT_TRANSFER"
CURRENCY_SWAP = "CURRENCY_SWAP"
MOVEMENT_COMPLETED = "COMPLETED"

_LABELS = {FLOAT_TRANSFER: "FloatTransfer", CURRENCY_SWAP: "CurrencySwap"}


class TransferService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.transfers = FloatTransferRepository(session)
        self.swaps = CurrencySwapRepository(session)
        self.stacks = FloatStackRepository(session)
        self.breakdowns = BreakdownRepository(session)

    async def _validate(
        self,
        kind: str,
        *,
        session_id: UUID,
        user: User,
        inbound_repository_id: UUID,
        outbound_repository_id: UUID,
        inbound_sum: float,
        outbound_sum: float,
    ) -> None:
        cx = await CxSessionRepository(self.session).get(session_id)
        if cx is None:
            raise NotFoundError("Session not found")
        if cx.status != FLOAT_OPEN_COMPLETE:
            raise InvalidStateError("Session must be open for business")
        if not user.is_active:
            raise BusinessRuleError("User must be active")

        label = _LABELS[kind]
        if float(inbound_sum) == 0:
            raise BusinessRuleError(f"Inbound sum cannot be 0 for {label}")
        if float(outbound_sum) == 0:
            raise BusinessRuleError(f"Outbound sum cannot be 0 for {label}")

        repositories = OrgRepositoryRepository(self.session)
        if await repositories.get(inbound_repository_id) is None or await repositories.get(outbound_repository_id) is None:
            raise NotFoundError("Repository not found")

    async def _apply_breakdowns(self, kind: str, movement_id: UUID, entries: Sequence[Dict[str, Any]]) -> None:
        """Move stack close counts (OUTBOUND subtracts, INBOUND adds) and record COMMITTED rows."""
        for entry in entries:
            stack = await self.stacks.get(entry["float_stack_id"])
            if stack is None:
                raise NotFoundError(f"Float stack not found: {entry['float_stack_id']}")
            count = float(entry["count"])
            if entry["direction"] == "OUTBOUND":
                stack.close_count = (stack.close_count or 0) - count
            else:
                stack.close_count = (stack.close_count or 0) + count
            await self.breakdowns.create(
                breakable_type=kind,
                breakable_id=movement_id,
                float_stack_id=stack.id,
                denomination_id=entry["denomination_id"],
                count=count,
                direction=entry["direction"],
                status="COMMITTED",
            )
        await self.breakdowns.flush()

    # PUBLIC_INTERFACE
    async def create_transfer(
        self,
        *,
        user: User,
        session_id: UUID,
        inbound_repository_id: UUID,
        outbound_repository_id: UUID,
        inbound_ticker: str,
        outbound_ticker: str,
        inbound_sum: float,
        outbound_sum: float,
        breakdowns: Sequence[Dict[str, Any]] = (),
        notes: Optional[str] = None,
    ):
        """Record a completed float transfer and move the stack counts."""
        await self._validate(
            FLOAT_TRANSFER,
            session_id=session_id,
            user=user,
            inbound_repository_id=inbound_repository_id,
            outbound_repository_id=outbound_repository_id,
            inbound_sum=inbound_sum,
            outbound_sum=outbound_sum,
        )
        transfer = await self.transfers.create(
            session_id=session_id,
            user_id=user.id,
            inbound_repository_id=inbound_repository_id,
            outbound_repository_id=outbound_repository_id,
            inbound_ticker=inbound_ticker,
            outbound_ticker=outbound_ticker,
            inbound_sum=inbound_sum,
            outbound_sum=outbound_sum,
            status=MOVEMENT_COMPLETED,
            notes=notes,
        )
        await self._apply_breakdowns(FLOAT_TRANSFER, transfer.id, breakdowns)
        await ActivityRepository(self.session).record(
            "TRANSFER_CREATED", user_id=user.id, session_id=session_id, reference_id=str(transfer.id)
        )
        await self.transfers.commit()
        logger.info("Float transfer %s created in session %s", transfer.id, session_id)
        return transfer

    # PUBLIC_INTERFACE
    async def create_swap(
        self,
        *,
        user: User,
        session_id: UUID,
        inbound_repository_id: UUID,
        outbound_repository_id: UUID,
        ticker: str,
        inbound_sum: float,
        outbound_sum: float,
        breakdowns: Sequence[Dict[str, Any]] = (),
        notes: Optional[str] = None,
    ):
        """Record a completed same-currency swap; `swap_value` is the inbound sum."""
        await self._validate(
            CURRENCY_SWAP,
            session_id=session_id,
            user=user,
            inbound_repository_id=inbound_repository_id,
            outbound_repository_id=outbound_repository_id,
            inbound_sum=inbound_sum,
            outbound_sum=outbound_sum,
        )
        currency = await OrgCurrencyRepository(self.session).get_by_ticker(ticker)
        if currency is None:
            raise NotFoundError("Currency not found")
        swap = await self.swaps.create(
            session_id=session_id,
            user_id=user.id,
            currency_id=currency.id,
            inbound_repository_id=inbound_repository_id,
            outbound_repository_id=outbound_repository_id,
            inbound_ticker=ticker,
            outbound_ticker=ticker,
            inbound_sum=inbound_sum,
            outbound_sum=outbound_sum,
            swap_value=inbound_sum,
            status=MOVEMENT_COMPLETED,
            notes=notes,
        )
        await self._apply_breakdowns(CURRENCY_SWAP, swap.id, breakdowns)
        await ActivityRepository(self.session).record(
            "SWAP_CREATED", user_id=user.id, session_id=session_id, reference_id=str(swap.id)
        )
        await self.swaps.commit()
        logger.info("Currency swap %s created in session %s", swap.id, session_id)
        return swap

    # PUBLIC_INTERFACE
    async def list_transfers(self, session_id: UUID):
        return await self.transfers.list_for_session(session_id)

    # PUBLIC_INTERFACE
    async def list_swaps(self, session_id: UUID):
        return await self.swaps.list_for_session(session_id)
