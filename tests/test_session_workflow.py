import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fxdesk_api.core.errors import InvalidStateError
from fxdesk_api.services import session_workflow as wf


def test_happy_path_transitions():
    status = wf.DORMANT
    for action in ("start float open", "confirm float open", "start float close", "confirm float close"):
        status = wf.ensure_transition(action, status)
    assert status == wf.FLOAT_CLOSE_COMPLETE


def test_cancel_float_close_returns_to_open():
    assert wf.ensure_transition("cancel float close", wf.FLOAT_CLOSE_START) == wf.FLOAT_OPEN_COMPLETE


def test_invalid_transition_message():
    with pytest.raises(InvalidStateError) as exc:
        wf.ensure_transition("confirm float open", wf.DORMANT)
    assert exc.value.message == "Cannot confirm float open from DORMANT state"
    assert exc.value.status_code == 409


@pytest.mark.parametrize("status", [wf.CLOSED, wf.CANCELLED, wf.FLOAT_CLOSE_COMPLETE])
def test_float_access_denied_outside_active_states(status):
    with pytest.raises(InvalidStateError):
        wf.ensure_float_access(status)


def test_float_access_allowed_while_active():
    for status in wf.ACTIVE_STATUSES:
        wf.ensure_float_access(status)


def test_count_editing_windows():
    wf.ensure_count_editable("open", wf.FLOAT_OPEN_START)
    wf.ensure_count_editable("close", wf.FLOAT_CLOSE_START)
    wf.ensure_count_editable("midday", wf.FLOAT_OPEN_COMPLETE)
    with pytest.raises(InvalidStateError):
        wf.ensure_count_editable("open", wf.FLOAT_OPEN_COMPLETE)
    with pytest.raises(InvalidStateError):
        wf.ensure_count_editable("close", wf.FLOAT_OPEN_START)
    with pytest.raises(ValueError):
        wf.ensure_count_editable("spent", wf.FLOAT_OPEN_START)


def test_cannot_close_terminal_session():
    result = wf.validate_can_close(wf.CLOSED)
    assert result == {
        "can_close": False,
        "error": "This session is already closed or cancelled",
        "blocking_items": [],
    }


def test_cannot_close_while_open_for_business():
    result = wf.validate_can_close(wf.FLOAT_OPEN_COMPLETE)
    assert not result["can_close"]
    assert "Current state: FLOAT_OPEN_COMPLETE" in result["error"]


def test_open_orders_block_close():
    order = SimpleNamespace(id=uuid.uuid4())
    result = wf.validate_can_close(wf.FLOAT_CLOSE_COMPLETE, open_orders=[order])
    assert not result["can_close"]
    assert result["error"].startswith("Cannot close session: 1 order(s)")
    assert result["blocking_items"] == [{"type": "order", "id": str(order.id)}]


def test_unconfirmed_required_repository_blocks_close():
    vault = SimpleNamespace(id=uuid.uuid4(), name="Main Vault")
    till = SimpleNamespace(id=uuid.uuid4(), name="Till 1")
    logs = [SimpleNamespace(repository_id=till.id, close_confirm_at=datetime.now(tz=timezone.utc))]

    result = wf.validate_can_close(wf.FLOAT_CLOSE_START, required_repositories=[vault, till], repository_logs=logs)

    assert not result["can_close"]
    assert "Repository names: Main Vault" in result["error"]
    assert result["blocking_items"] == [{"type": "repository", "id": str(vault.id), "name": "Main Vault"}]


def test_can_close_when_everything_is_confirmed():
    vault = SimpleNamespace(id=uuid.uuid4(), name="Main Vault")
    logs = [SimpleNamespace(repository_id=vault.id, close_confirm_at=datetime.now(tz=timezone.utc))]
    result = wf.validate_can_close(wf.FLOAT_CLOSE_COMPLETE, required_repositories=[vault], repository_logs=logs)
    assert result == {"can_close": True, "error": None, "blocking_items": []}


def _log(**stamps):
    fields = {"open_start_at": None, "open_confirm_at": None, "close_start_at": None, "close_confirm_at": None}
    fields.update(stamps)
    return SimpleNamespace(**fields)


def test_repository_state_from_access_log():
    now = datetime.now(tz=timezone.utc)
    assert wf.derive_repository_state(None) == wf.REPO_DORMANT
    assert wf.derive_repository_state(_log()) == wf.REPO_DORMANT
    assert wf.derive_repository_state(_log(open_start_at=now)) == wf.REPO_OPEN_START
    assert wf.derive_repository_state(_log(open_start_at=now, open_confirm_at=now)) == wf.REPO_OPEN_CONFIRMED
    assert (
        wf.derive_repository_state(_log(open_start_at=now, open_confirm_at=now, close_start_at=now))
        == wf.REPO_CLOSE_START
    )
    assert wf.derive_repository_state(_log(close_start_at=now, close_confirm_at=now)) == wf.REPO_DORMANT
