from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import BusinessRuleError, NotFoundError
from fxdesk_api.db.models.orders import Order
from fxdesk_api.repositories.currencies import DenominationRepository, OrgCurrencyRepository
from fxdesk_api.repositories.customers import CustomerRepository
from fxdesk_api.repositories.orders import BreakdownRepository, OrderRepository
from fxdesk_api.repositories.sessions import CxSessionRepository
from fxdesk_api.services.base import BaseService
from fxdesk_api.services.quotes import QuoteCurrency, compute_order_quote

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("QUOTE", "ACCEPTED", "CONFIRMED", "COMPLETED", "CANCELLED", "SCHEDULED", "BLOCKED")
BREAKDOWN_DIRECTIONS = ("INBOUND", "OUTBOUND")
BREAKDOWN_CREATED = "CREATED"
BREAKDOWN_COMMITTED = "COMMITTED"

# Quote fields computed when the caller leaves them out
_QUOTE_FIELDS = (
    "outbound_sum",
    "inbound_type",
    "outbound_type",
    "fx_rate",
    "rate_wo_fees",
    "final_rate",
    "final_rate_without_fees",
    "margin",
    "fee",
)


# PUBLIC_INTERFACE
def ensure_order_status(status: str) -> str:
    if status not in ORDER_STATUSES:
        raise BusinessRuleError(
            f"Invalid order status: {status}. Allowed: {', '.join(ORDER_STATUSES)}"
        )
    return status


class OrderService(BaseService):
    """Orders of the current organization and their quotes."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.orders = OrderRepository(session)

    # PUBLIC_INTERFACE
    async def quote(
        self,
        *,
        inbound_ticker: str,
        outbound_ticker: str,
        inbound_sum: float,
        outbound_sum: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Price an order from the organization's currency rates without saving it."""
        currencies = {
            ticker: QuoteCurrency.from_model(c)
            for ticker, c in (await OrgCurrencyRepository(self.session).by_ticker()).items()
        }
        return compute_order_quote(currencies, inbound_ticker, outbound_ticker, inbound_sum, outbound_sum)

    # PUBLIC_INTERFACE
    async def create(self, values: Dict[str, Any], user_id: UUID) -> Order:
        """
        Create an order in QUOTE status.

        Missing quote fields are computed from the org currency rates. The
        customer's last_order_at is bumped.
        """
        if await CxSessionRepository(self.session).get(values["session_id"]) is None:
            raise NotFoundError("Session not found")

        data = {k: v for k, v in values.items() if v is not None}
        for field in ("inbound_ticker", "outbound_ticker"):
            if isinstance(data.get(field), str):
                data[field] = data[field].upper()
        if any(data.get(field) is None for field in _QUOTE_FIELDS):
            quote = await self.quote(
                inbound_ticker=data["inbound_ticker"],
                outbound_ticker=data["outbound_ticker"],
                inbound_sum=data["inbound_sum"],
                outbound_sum=data.get("outbound_sum"),
            )
            for field in _QUOTE_FIELDS:
                data.setdefault(field, quote[field])

        data["status"] = ensure_order_status(data.get("status") or "QUOTE")
        data["network_fee"] = data.get("network_fee") or 0
        data["batched_status"] = 0
        data.setdefault("user_id", user_id)
        data.setdefault("open_at", datetime.now(tz=timezone.utc))

        order = await self.orders.create(**data)
        if order.customer_id:
            customer = await CustomerRepository(self.session).get(order.customer_id)
            if customer is not None:
                customer.last_order_at = datetime.now(tz=timezone.utc)
        await self.orders.commit()
        logger.info("Created order %s in session %s", order.id, order.session_id)
        return order

    # PUBLIC_INTERFACE
    async def get(self, order_id: UUID) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Org order not found")
        return order

    # PUBLIC_INTERFACE
    async def update(self, order_id: UUID, values: Dict[str, Any]) -> Order:
        order = await self.get(order_id)
        if values.get("status") is not None:
            ensure_order_status(values["status"])
        self.orders.apply(order, values)
        await self.orders.commit()
        return order

    # PUBLIC_INTERFACE
    async def delete(self, order_id: UUID) -> None:
        order = await self.get(order_id)
        await BreakdownRepository(self.session).delete_for("ORDER", order.id)
        await self.orders.remove(order)
        await self.orders.commit()


class BreakdownService(BaseService):
    """Denomination breakdowns of a breakable entity (ORDER, FLOAT_TRANSFER, CURRENCY_SWAP)."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.breakdowns = BreakdownRepository(session)

    # PUBLIC_INTERFACE
    async def list(self, breakable_type: str, breakable_id: UUID) -> List[Dict[str, Any]]:
        """Breakdown rows with the denomination value attached."""
        rows = await self.breakdowns.list_for(breakable_type, breakable_id)
        denominations = await DenominationRepository(self.session).get_many(
            [row.denomination_id for row in rows]
        )
        result = []
        for row in rows:
            denomination = denominations.get(row.denomination_id)
            result.append({"breakdown": row, "denominated_value": denomination.value if denomination else 0})
        return result

    # PUBLIC_INTERFACE
    async def set(
        self, breakable_type: str, breakable_id: UUID, entries: Sequence[Dict[str, Any]]
    ) -> int:
        """Replace the rows for the directions present in `entries`; other directions stay."""
        directions = {entry["direction"] for entry in entries}
        for direction in directions:
            if direction not in BREAKDOWN_DIRECTIONS:
                raise BusinessRuleError(f"Invalid breakdown direction: {direction}")
        await self.breakdowns.delete_for(breakable_type, breakable_id, directions)
        for entry in entries:
            await self.breakdowns.create(
                breakable_type=breakable_type,
                breakable_id=breakable_id,
                denomination_id=entry["denomination_id"],
                float_stack_id=entry.get("float_stack_id"),
                count=entry["count"],
                direction=entry["direction"],
                status=entry.get("status") or BREAKDOWN_CREATED,
            )
        await self.breakdowns.commit()
        return len(entries)

    # PUBLIC_INTERFACE
    async def set_committed(self, breakable_type: str, breakable_id: UUID, committed: bool) -> str:
        status = BREAKDOWN_COMMITTED if committed else BREAKDOWN_CREATED
        await self.breakdowns.set_status(breakable_type, breakable_id, status)
        await self.breakdowns.commit()
        return status

    # PUBLIC_INTERFACE
    async def clear(self, breakable_type: str, breakable_id: UUID) -> None:
        await self.breakdowns.delete_for(breakable_type, breakable_id)
        await self.breakdowns.commit()
