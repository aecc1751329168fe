"""
Cx session state machine.

DORMANT → FLOAT_OPEN_START → FLOAT_OPEN_COMPLETE → FLOAT_CLOSE_START →
FLOAT_CLOSE_COMPLETE → CLOSED, with FLOAT_CLOSE_START → FLOAT_OPEN_COMPLETE on
cancel close. CANCELLED is terminal.

The functions here only look at plain values so the database-backed
CxSessionService and the tests share the same rules.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from fxdesk_api.core.errors import InvalidStateError

DORMANT = "DORMANT"
FLOAT_OPEN_START = "FLOAT_OPEN_START"
FLOAT_OPEN_COMPLETE = "FLOAT_OPEN_COMPLETE"
FLOAT_CLOSE_START = "FLOAT_CLOSE_START"
FLOAT_CLOSE_COMPLETE = "FLOAT_CLOSE_COMPLETE"
CLOSED = "CLOSED"
CANCELLED = "CANCELLED"

SESSION_STATUSES = (
    DORMANT,
    FLOAT_OPEN_START,
    FLOAT_OPEN_COMPLETE,
    FLOAT_CLOSE_START,
    FLOAT_CLOSE_COMPLETE,
    CLOSED,
    CANCELLED,
)
ACTIVE_STATUSES = (DORMANT, FLOAT_OPEN_START, FLOAT_OPEN_COMPLETE, FLOAT_CLOSE_START)
TERMINAL_STATUSES = (CLOSED, CANCELLED)

# action -> (allowed source states, target state)
TRANSITIONS: Dict[str, tuple] = {
    "start float open": ((DORMANT,), FLOAT_OPEN_START),
    "confirm float open": ((FLOAT_OPEN_START,), FLOAT_OPEN_COMPLETE),
    "start float close": ((FLOAT_OPEN_COMPLETE,), FLOAT_CLOSE_START),
    "confirm float close": ((FLOAT_CLOSE_START,), FLOAT_CLOSE_COMPLETE),
    "cancel float close": ((FLOAT_CLOSE_START,), FLOAT_OPEN_COMPLETE),
}

# Which count column may be edited in which state
COUNT_EDIT_STATES = {
    "open": (FLOAT_OPEN_START,),
    "close": (FLOAT_CLOSE_START,),
    "midday": (FLOAT_OPEN_COMPLETE,),
}

# Repository states derived from access logs
REPO_DORMANT = "DORMANT"
REPO_OPEN_START = "OPEN_START"
REPO_OPEN_CONFIRMED = "OPEN_CONFIRMED"
REPO_CLOSE_START = "CLOSE_START"

ORDER_DONE_STATUSES = ("COMPLETED", "CANCELLED")


# PUBLIC_INTERFACE
def ensure_transition(action: str, status: str) -> str:
    """
    Return the target state of `action` from `status`.

    Raises:
        InvalidStateError: "Cannot <action> from <status> state".
    """
    sources, target = TRANSITIONS[action]
    if status not in sources:
        raise InvalidStateError(f"Cannot {action} from {status} state")
    return target


# PUBLIC_INTERFACE
def ensure_float_access(status: str) -> None:
    if status not in ACTIVE_STATUSES:
        raise InvalidStateError(
            f"Float access not allowed in {status} state. "
            f"Allowed states: {', '.join(ACTIVE_STATUSES)}."
        )


# PUBLIC_INTERFACE
def ensure_count_editable(field: str, status: str) -> None:
    """Open counts only in FLOAT_OPEN_START, close counts in FLOAT_CLOSE_START, midday while open."""
    allowed = COUNT_EDIT_STATES.get(field)
    if allowed is None:
        raise ValueError(f"Unknown count field: {field}")
    if status not in allowed:
        raise InvalidStateError(f"Cannot update {field} count in {status} state")


# PUBLIC_INTERFACE
def validate_can_close(
    status: str,
    open_orders: Sequence[Any] = (),
    required_repositories: Sequence[Any] = (),
    repository_logs: Iterable[Any] = (),
) -> Dict[str, Any]:
    """
    Check whether a session may be closed.

    Parameters:
        status: current session status
        open_orders: orders of the session not COMPLETED/CANCELLED (objects with `.id`)
        required_repositories: repositories with float_count_required (`.id`, `.name`)
        repository_logs: the session's repository access logs (`.repository_id`, `.close_confirm_at`)
    Returns:
        {"can_close": bool, "error": str | None, "blocking_items": list}
    """
    if status in TERMINAL_STATUSES:
        return _close_result("This session is already closed or cancelled")

    if status not in (FLOAT_CLOSE_START, FLOAT_CLOSE_COMPLETE):
        return _close_result(
            "Session must be in FLOAT_CLOSE_START or FLOAT_CLOSE_COMPLETE state to close. "
            f"Current state: {status}"
        )

    if open_orders:
        ids = [str(o.id) for o in open_orders]
        return _close_result(
            f"Cannot close session: {len(ids)} order(s) are not completed or cancelled. "
            f"Order IDs: {', '.join(ids)}",
            [{"type": "order", "id": i} for i in ids],
        )

    confirmed = {log.repository_id for log in repository_logs if log.close_confirm_at is not None}
    unconfirmed = [r for r in required_repositories if r.id not in confirmed]
    if unconfirmed:
        names = [r.name for r in unconfirmed]
        return _close_result(
            f"Cannot close session: {len(unconfirmed)} repository(s) are not confirmed. "
            f"Repository names: {', '.join(names)}",
            [{"type": "repository", "id": str(r.id), "name": r.name} for r in unconfirmed],
        )

    return {"can_close": True, "error": None, "blocking_items": []}


def _close_result(error: str, blocking: Optional[List[dict]] = None) -> Dict[str, Any]:
    return {"can_close": False, "error": error, "blocking_items": blocking or []}


# PUBLIC_INTERFACE
def derive_repository_state(log: Optional[Any]) -> str:
    """
    Repository state from its latest access log.

    close confirmed -> DORMANT, close started -> CLOSE_START,
    open confirmed -> OPEN_CONFIRMED, open started -> OPEN_START.
    """
    if log is None:
        return REPO_DORMANT
    if log.close_confirm_at is not None:
        return REPO_DORMANT
    if log.close_start_at is not None:
        return REPO_CLOSE_START
    if log.open_confirm_at is not None:
        return REPO_OPEN_CONFIRMED
    if log.open_start_at is not None:
        return REPO_OPEN_START
    return REPO_DORMANT
