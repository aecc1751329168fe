"""
Cx session orchestration: lifecycle transitions, float stack seeding, access
logs and the float view.

State rules live in session_workflow; this module applies them to the
database, records an activity per change and publishes `session.status`.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import InvalidStateError, NotFoundError, PermissionDeniedError
from fxdesk_api.db.models.sessions import CxSession, CxSessionUser, FloatStack
from fxdesk_api.repositories.currencies import DenominationRepository, OrgCurrencyRepository
from fxdesk_api.repositories.org_repositories import OrgRepositoryRepository
from fxdesk_api.repositories.orders import OrderRepository
from fxdesk_api.repositories.organizations import ActivityRepository
from fxdesk_api.repositories.sessions import (
    CxSessionRepository,
    FloatStackRepository,
    RepositoryAccessLogRepository,
    SessionAccessLogRepository,
)
from fxdesk_api.schemas.realtime import SessionStatusEvent
from fxdesk_api.services import session_workflow as wf
from fxdesk_api.services.base import BaseService
from fxdesk_api.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = {
    "create": "SESSION_CREATED",
    "join": "SESSION_JOINED",
    "leave": "SESSION_LEFT",
    "start float open": "FLOAT_OPEN_STARTED",
    "confirm float open": "FLOAT_OPEN_CONFIRMED",
    "start float close": "FLOAT_CLOSE_STARTED",
    "confirm float close": "FLOAT_CLOSE_CONFIRMED",
    "cancel float close": "FLOAT_CLOSE_CANCELLED",
    "close": "SESSION_CLOSED",
    "cancel": "SESSION_CANCELLED",
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class CxSessionService(BaseService):
    """Cx session workflow for the current organization."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.sessions = CxSessionRepository(session)
        self.stacks = FloatStackRepository(session)
        self.session_logs = SessionAccessLogRepository(session)
        self.repo_logs = RepositoryAccessLogRepository(session)
        self.repositories = OrgRepositoryRepository(session)
        self.activities = ActivityRepository(session)

    # Helpers

    async def get(self, session_id: UUID) -> CxSession:
        cx = await self.sessions.get(session_id)
        if cx is None:
            raise NotFoundError("Session not found")
        return cx

    @staticmethod
    def _require_authorized(cx: CxSession, user_id: UUID) -> None:
        if user_id not in cx.authorized_user_ids:
            raise PermissionDeniedError("User not authorized for this session")

    async def _finish(self, cx: CxSession, action: str, user_id: UUID, **meta: Any) -> CxSession:
        """Record the activity, commit and notify subscribers."""
        await self.activities.record(
            ACTIVITY_EVENTS[action],
            user_id=user_id,
            session_id=cx.id,
            comment=f"Session {action}",
            meta={"status": cx.status, **meta},
        )
        await self.sessions.commit()
        await self._publish(cx, action, user_id)
        return cx

    async def _publish(self, cx: CxSession, action: str, user_id: UUID) -> None:
        event = SessionStatusEvent(
            session_id=cx.id,
            status=cx.status,
            action=action,
            active_user_id=cx.active_user_id,
            user_id=user_id,
        )
        try:
            await broadcast_manager.publish_session_status(cx.tenant_id, event)
        except Exception:
            logger.exception("Failed to publish session.status for session %s", cx.id)

    async def _logs_by_repository(self, session_id: UUID) -> Dict[UUID, Any]:
        """Latest repository access log per repository for the session."""
        latest: Dict[UUID, Any] = {}
        for log in await self.repo_logs.list_for_session(session_id):
            latest[log.repository_id] = log
        return latest

    # Lifecycle

    # PUBLIC_INTERFACE
    async def create(self, user_id: UUID) -> CxSession:
        """Open a DORMANT session owned, worked and authorized by the creator."""
        now = _now()
        cx = await self.sessions.create(
            user_id=user_id,
            status=wf.DORMANT,
            open_start_at=now,
            open_start_user_id=user_id,
            active_user_id=user_id,
            authorized_users=[CxSessionUser(user_id=user_id)],
        )
        await self.session_logs.create(
            session_id=cx.id,
            start_at=now,
            start_owner_id=user_id,
            authorized_user_ids=[user_id],
        )
        return await self._finish(cx, "create", user_id)

    # PUBLIC_INTERFACE
    async def join(self, session_id: UUID, user_id: UUID, tenant_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        if cx.tenant_id != tenant_id:
            raise PermissionDeniedError("Unauthorized: Session belongs to a different organization")

        await self.sessions.authorize(cx, user_id)
        cx.active_user_id = user_id

        now = _now()
        log = await self.session_logs.get_for_session(cx.id)
        if log is None:
            await self.session_logs.create(
                session_id=cx.id,
                start_at=cx.open_start_at or now,
                start_owner_id=cx.user_id,
                user_join_at=now,
                user_join_id=user_id,
                authorized_user_ids=list(cx.authorized_user_ids),
            )
        else:
            log.user_join_at = now
            log.user_join_id = user_id
            log.authorized_user_ids = list(cx.authorized_user_ids)
        return await self._finish(cx, "join", user_id)

    # PUBLIC_INTERFACE
    async def leave(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        await self.sessions.deauthorize(cx, user_id)
        if cx.active_user_id == user_id:
            cx.active_user_id = None
        return await self._finish(cx, "leave", user_id)

    # PUBLIC_INTERFACE
    async def start_float_open(self, session_id: UUID, user_id: UUID) -> CxSession:
        """
        DORMANT -> FLOAT_OPEN_START.

        Seeds float stacks on first open and stamps repository access logs.
        """
        cx = await self.get(session_id)
        self._require_authorized(cx, user_id)
        target = wf.ensure_transition("start float open", cx.status)

        repositories = await self.repositories.list(active=True)
        if await self.stacks.count_for_session(cx.id) == 0:
            created = await self._seed_float_stacks(cx, repositories)
            logger.info("Seeded %d float stacks for session %s", created, cx.id)

        now = _now()
        logs = await self._logs_by_repository(cx.id)
        for repository in repositories:
            log = logs.get(repository.id)
            if log is None:
                await self.repo_logs.create(
                    session_id=cx.id, repository_id=repository.id, user_id=user_id, open_start_at=now
                )
            elif log.open_start_at is None:
                log.open_start_at = now

        cx.open_start_at = now
        cx.open_start_user_id = user_id
        cx.status = target
        return await self._finish(cx, "start float open", user_id)

    async def _seed_float_stacks(self, cx: CxSession, repositories: List[Any]) -> int:
        currencies = await OrgCurrencyRepository(self.session).by_ticker()
        denominations = DenominationRepository(self.session)
        accepted: Dict[UUID, List[Any]] = {}
        created = 0
        for repository in repositories:
            for ticker in repository.currency_tickers or []:
                currency = currencies.get(ticker)
                if currency is None:
                    continue
                if currency.id not in accepted:
                    accepted[currency.id] = await denominations.list_for_currency(currency.id, accepted_only=True)
                for denomination in accepted[currency.id]:
                    previous = await self.stacks.latest_closed(repository.id, denomination.id)
                    await self.stacks.add(
                        FloatStack(
                            session_id=cx.id,
                            repository_id=repository.id,
                            denomination_id=denomination.id,
                            ticker=ticker,
                            denominated_value=denomination.value,
                            last_session_count=previous.close_count if previous else 0,
                            previous_session_float_stack_id=previous.id if previous else None,
                        )
                    )
                    created += 1
        await self.stacks.flush()
        return created

    # PUBLIC_INTERFACE
    async def confirm_float_open(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        self._require_authorized(cx, user_id)
        cx.status = wf.ensure_transition("confirm float open", cx.status)

        now = _now()
        cx.open_confirm_at = now
        cx.open_confirm_user_id = user_id
        for log in await self.repo_logs.list_for_session(cx.id):
            if log.open_confirm_at is None:
                log.open_confirm_at = now
        for stack in await self.stacks.list_for_session(cx.id):
            stack.open_confirmed_at = now
        return await self._finish(cx, "confirm float open", user_id)

    # PUBLIC_INTERFACE
    async def start_float_close(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        self._require_authorized(cx, user_id)
        cx.status = wf.ensure_transition("start float close", cx.status)

        now = _now()
        cx.close_start_at = now
        cx.close_start_user_id = user_id
        for log in await self.repo_logs.list_for_session(cx.id):
            if log.close_start_at is None:
                log.close_start_at = now
        return await self._finish(cx, "start float close", user_id)

    # PUBLIC_INTERFACE
    async def confirm_float_close(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        self._require_authorized(cx, user_id)
        cx.status = wf.ensure_transition("confirm float close", cx.status)

        now = _now()
        cx.close_confirm_at = now
        cx.close_confirm_user_id = user_id
        for log in await self.repo_logs.list_for_session(cx.id):
            if log.close_confirm_at is None:
                log.close_confirm_at = now
        for stack in await self.stacks.list_for_session(cx.id):
            stack.close_confirmed_at = now
        return await self._finish(cx, "confirm float close", user_id)

    # PUBLIC_INTERFACE
    async def cancel_float_close(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        self._require_authorized(cx, user_id)
        cx.status = wf.ensure_transition("cancel float close", cx.status)

        cx.close_start_at = None
        cx.close_start_user_id = None
        cx.close_confirm_at = None
        cx.close_confirm_user_id = None
        for log in await self.repo_logs.list_for_session(cx.id):
            log.close_start_at = None
            log.close_confirm_at = None
        return await self._finish(cx, "cancel float close", user_id)

    # PUBLIC_INTERFACE
    async def validate_can_close(self, session_id: UUID) -> Dict[str, Any]:
        cx = await self.get(session_id)
        return await self._validate(cx)

    async def _validate(self, cx: CxSession) -> Dict[str, Any]:
        open_orders = await OrderRepository(self.session).list_open_for_session(cx.id, wf.ORDER_DONE_STATUSES)
        required = [r for r in await self.repositories.list(active=True) if r.float_count_required]
        logs = await self.repo_logs.list_for_session(cx.id)
        return wf.validate_can_close(cx.status, open_orders, required, logs)

    # PUBLIC_INTERFACE
    async def close(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        result = await self._validate(cx)
        if not result["can_close"]:
            raise InvalidStateError(result["error"], details=result["blocking_items"])

        now = _now()
        cx.status = wf.CLOSED
        cx.close_confirm_at = now
        cx.close_confirm_user_id = user_id
        return await self._finish(cx, "close", user_id)

    # PUBLIC_INTERFACE
    async def cancel(self, session_id: UUID, user_id: UUID) -> CxSession:
        cx = await self.get(session_id)
        if cx.status in wf.TERMINAL_STATUSES:
            raise InvalidStateError("This session is already closed or cancelled")
        cx.status = wf.CANCELLED
        return await self._finish(cx, "cancel", user_id)

    # PUBLIC_INTERFACE
    async def delete(self, session_id: UUID) -> None:
        """Remove the session; stacks, logs and authorized users go with it."""
        cx = await self.get(session_id)
        await self.stacks.delete_for_session(cx.id)
        await self.sessions.remove(cx)
        await self.sessions.commit()

    # Reads

    # PUBLIC_INTERFACE
    async def list(
        self, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> Tuple[List[CxSession], int]:
        items = await self.sessions.list(status=status, limit=limit, offset=offset)
        total = await self.sessions.count(status=status)
        return items, total

    # PUBLIC_INTERFACE
    async def active_sessions(self, user_id: UUID) -> List[CxSession]:
        return await self.sessions.list_active(wf.ACTIVE_STATUSES, user_id)

    # PUBLIC_INTERFACE
    async def access_logs(self, session_id: UUID) -> Dict[str, Any]:
        cx = await self.get(session_id)
        return {
            "session_logs": await self.session_logs.list_for_session(cx.id),
            "repository_logs": await self.repo_logs.list_for_session(cx.id),
        }

    # PUBLIC_INTERFACE
    async def float_view(self, session_id: UUID, user_id: UUID) -> Dict[str, Any]:
        """
        Session float grouped per active repository and ticker.

        Each repository carries its derived state and access logs; each ticker
        group carries the stacks with their denomination details.
        """
        cx = await self.get(session_id)
        self._require_authorized(cx, user_id)
        wf.ensure_float_access(cx.status)

        repositories = await self.repositories.list(active=True)
        stacks = await self.stacks.list_for_session(cx.id)
        denominations = await DenominationRepository(self.session).get_many(
            list({s.denomination_id for s in stacks})
        )
        currencies = await OrgCurrencyRepository(self.session).by_ticker()
        all_logs = await self.repo_logs.list_for_session(cx.id)

        grouped: Dict[UUID, Dict[str, Dict[str, Any]]] = {}
        for stack in stacks:
            per_ticker = grouped.setdefault(stack.repository_id, {})
            group = per_ticker.get(stack.ticker)
            if group is None:
                currency = currencies.get(stack.ticker)
                group = per_ticker[stack.ticker] = {
                    "id": f"{stack.repository_id}_{stack.ticker}",
                    "ticker": stack.ticker,
                    "name": currency.name if currency else stack.ticker,
                    "type_of": currency.type_of if currency else "currency",
                    "float_stacks": [],
                }
            denomination = denominations.get(stack.denomination_id)
            group["float_stacks"].append(
                {
                    "stack": stack,
                    "denomination": {
                        "id": denomination.id if denomination else None,
                        "value": denomination.value if denomination else 0,
                        "name": (denomination.name if denomination else None) or stack.ticker,
                    },
                }
            )

        result_repositories = []
        for repository in repositories:
            logs = [log for log in all_logs if log.repository_id == repository.id]
            result_repositories.append(
                {
                    "id": repository.id,
                    "name": repository.name,
                    "type_of_currencies": repository.currency_type or repository.type_of or "currency",
                    "float_count_required": repository.float_count_required,
                    "active": repository.active,
                    "state": wf.derive_repository_state(logs[-1] if logs else None),
                    "access_logs": logs,
                    "float": list(grouped.get(repository.id, {}).values()),
                }
            )

        return {
            "session": {"id": cx.id, "status": cx.status, "user_id": cx.user_id},
            "repositories": result_repositories,
        }

    # PUBLIC_INTERFACE
    async def update_stack_counts(self, stack_id: UUID, counts: Dict[str, Optional[float]]) -> FloatStack:
        """
        Update open/close/midday counts of a float stack.

        `counts` maps "open", "close" or "midday" to the new value; None entries are skipped.
        """
        stack = await self.stacks.get(stack_id)
        if stack is None:
            raise NotFoundError("Float stack not found")
        cx = await self.get(stack.session_id)
        for field, value in counts.items():
            if value is None:
                continue
            wf.ensure_count_editable(field, cx.status)
            setattr(stack, f"{field}_count", value)
        await self.stacks.commit()
        return stack
