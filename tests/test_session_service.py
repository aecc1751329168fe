import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from fxdesk_api.core.errors import InvalidStateError, NotFoundError, PermissionDeniedError
from fxdesk_api.services import session_workflow as wf
from fxdesk_api.services import sessions as sessions_module
from fxdesk_api.services.sessions import CxSessionService

EARLIER = datetime(2024, 1, 2, 8, 0, tzinfo=timezone.utc)


def _cx(status=wf.DORMANT, users=(), **values):
    fields = dict(
        id=uuid.uuid4(),
        tenant_id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        status=status,
        active_user_id=None,
        open_start_at=None,
        authorized_user_ids=list(users),
    )
    fields.update(values)
    return SimpleNamespace(**fields)


class StubSessions:
    def __init__(self, cx):
        self.cx = cx
        self.commits = 0

    async def get(self, session_id):
        return self.cx if self.cx is not None and self.cx.id == session_id else None

    async def authorize(self, cx, user_id):
        if user_id not in cx.authorized_user_ids:
            cx.authorized_user_ids.append(user_id)

    async def deauthorize(self, cx, user_id):
        if user_id in cx.authorized_user_ids:
            cx.authorized_user_ids.remove(user_id)

    async def commit(self):
        self.commits += 1


class StubStacks:
    def __init__(self, stacks=(), previous=None):
        self.stacks = list(stacks)
        self.previous = previous or {}
        self.added = []
        self.flushes = 0
        self.commits = 0

    async def count_for_session(self, session_id):
        return len(self.stacks)

    async def latest_closed(self, repository_id, denomination_id):
        return self.previous.get((repository_id, denomination_id))

    async def add(self, stack):
        self.added.append(stack)
        return stack

    async def flush(self):
        self.flushes += 1

    async def list_for_session(self, session_id):
        return self.stacks

    async def get(self, stack_id):
        return next((s for s in self.stacks if s.id == stack_id), None)

    async def commit(self):
        self.commits += 1


class StubSessionLogs:
    def __init__(self, log=None):
        self.log = log
        self.created = []

    async def get_for_session(self, session_id):
        return self.log

    async def create(self, **values):
        self.created.append(values)
        return SimpleNamespace(**values)


class StubRepositoryLogs:
    def __init__(self, logs=()):
        self.logs = list(logs)
        self.created = []

    async def list_for_session(self, session_id):
        return self.logs

    async def create(self, **values):
        self.created.append(values)
        log = SimpleNamespace(**values)
        self.logs.append(log)
        return log


class StubRepositories:
    def __init__(self, items=()):
        self.items = list(items)

    async def list(self, **filters):
        assert filters.get("active") is True
        return self.items


class StubActivities:
    def __init__(self):
        self.events = []

    async def record(self, event, **values):
        self.events.append((event, values))


class RecordingBroadcast:
    def __init__(self):
        self.published = []

    async def publish_session_status(self, tenant_id, event):
        self.published.append((tenant_id, event))


@pytest.fixture
def broadcast(monkeypatch):
    recorder = RecordingBroadcast()
    monkeypatch.setattr(sessions_module, "broadcast_manager", recorder)
    return recorder


def _service(fake_session, cx, *, stacks=None, session_logs=None, repo_logs=None, repositories=()):
    service = CxSessionService(fake_session)
    service.sessions = StubSessions(cx)
    service.stacks = stacks or StubStacks()
    service.session_logs = session_logs or StubSessionLogs()
    service.repo_logs = repo_logs or StubRepositoryLogs()
    service.repositories = StubRepositories(repositories)
    service.activities = StubActivities()
    return service


def _denomination(value, accepted=True):
    return SimpleNamespace(id=uuid.uuid4(), value=value, accepted=accepted)


def test_start_float_open_seeds_accepted_denominations(fake_session, broadcast, monkeypatch):
    cad_id, usd_id = uuid.uuid4(), uuid.uuid4()
    twenty, five, one = _denomination(20), _denomination(5), _denomination(1, accepted=False)
    hundred = _denomination(100)
    by_currency = {cad_id: [twenty, five, one], usd_id: [hundred]}
    lookups = []

    class StubCurrencies:
        def __init__(self, session):
            pass

        async def by_ticker(self):
            return {"CAD": SimpleNamespace(id=cad_id), "USD": SimpleNamespace(id=usd_id)}

    class StubDenominations:
        def __init__(self, session):
            pass

        async def list_for_currency(self, currency_id, accepted_only=False):
            lookups.append((currency_id, accepted_only))
            return [d for d in by_currency[currency_id] if d.accepted or not accepted_only]

    monkeypatch.setattr(sessions_module, "OrgCurrencyRepository", StubCurrencies)
    monkeypatch.setattr(sessions_module, "DenominationRepository", StubDenominations)

    user_id = uuid.uuid4()
    cx = _cx(users=[user_id])
    till = SimpleNamespace(id=uuid.uuid4(), currency_tickers=["CAD", "EUR"])
    vault = SimpleNamespace(id=uuid.uuid4(), currency_tickers=["USD", "CAD"])
    previous = SimpleNamespace(id=uuid.uuid4(), close_count=7)
    stacks = StubStacks(previous={(till.id, twenty.id): previous})
    vault_log = SimpleNamespace(repository_id=vault.id, open_start_at=None)
    repo_logs = StubRepositoryLogs([vault_log])
    service = _service(fake_session, cx, stacks=stacks, repo_logs=repo_logs, repositories=[till, vault])

    asyncio.run(service.start_float_open(cx.id, user_id))

    assert cx.status == wf.FLOAT_OPEN_START
    assert cx.open_start_user_id == user_id
    assert all(accepted_only for _, accepted_only in lookups)
    assert len(lookups) == 2

    seeded = {(s.repository_id, s.denomination_id): s for s in stacks.added}
    assert len(seeded) == 5
    assert (till.id, one.id) not in seeded
    assert {s.ticker for s in stacks.added} == {"CAD", "USD"}
    carried = seeded[(till.id, twenty.id)]
    assert carried.last_session_count == 7
    assert carried.previous_session_float_stack_id == previous.id
    assert carried.denominated_value == 20
    fresh = seeded[(vault.id, hundred.id)]
    assert fresh.last_session_count == 0
    assert fresh.previous_session_float_stack_id is None
    assert stacks.flushes == 1

    assert repo_logs.created == [
        dict(session_id=cx.id, repository_id=till.id, user_id=user_id, open_start_at=cx.open_start_at)
    ]
    assert vault_log.open_start_at == cx.open_start_at

    assert service.activities.events[0][0] == "FLOAT_OPEN_STARTED"
    assert service.sessions.commits == 1
    tenant, event = broadcast.published[0]
    assert tenant == cx.tenant_id
    assert event.status == wf.FLOAT_OPEN_START
    assert event.action == "start float open"


def test_start_float_open_keeps_existing_stacks(fake_session, broadcast):
    user_id = uuid.uuid4()
    cx = _cx(users=[user_id])
    stacks = StubStacks(stacks=[SimpleNamespace(id=uuid.uuid4())])
    service = _service(fake_session, cx, stacks=stacks)

    asyncio.run(service.start_float_open(cx.id, user_id))

    assert stacks.added == []
    assert stacks.flushes == 0
    assert cx.status == wf.FLOAT_OPEN_START


def test_start_float_open_requires_authorized_user(fake_session, broadcast):
    cx = _cx(users=[uuid.uuid4()])
    with pytest.raises(PermissionDeniedError, match="User not authorized for this session"):
        asyncio.run(_service(fake_session, cx).start_float_open(cx.id, uuid.uuid4()))
    assert cx.status == wf.DORMANT


def test_join_authorizes_user_and_updates_access_log(fake_session, broadcast):
    owner, joiner = uuid.uuid4(), uuid.uuid4()
    cx = _cx(users=[owner], active_user_id=owner)
    log = SimpleNamespace(user_join_at=None, user_join_id=None, authorized_user_ids=[owner])
    service = _service(fake_session, cx, session_logs=StubSessionLogs(log))

    asyncio.run(service.join(cx.id, joiner, cx.tenant_id))

    assert cx.authorized_user_ids == [owner, joiner]
    assert cx.active_user_id == joiner
    assert log.user_join_id == joiner
    assert log.user_join_at is not None
    assert log.authorized_user_ids == [owner, joiner]
    assert service.activities.events[0][0] == "SESSION_JOINED"
    assert broadcast.published[0][1].active_user_id == joiner


def test_join_creates_missing_access_log(fake_session, broadcast):
    joiner = uuid.uuid4()
    cx = _cx(open_start_at=EARLIER)
    session_logs = StubSessionLogs()
    asyncio.run(_service(fake_session, cx, session_logs=session_logs).join(cx.id, joiner, cx.tenant_id))

    created = session_logs.created[0]
    assert created["start_at"] == EARLIER
    assert created["start_owner_id"] == cx.user_id
    assert created["user_join_id"] == joiner
    assert created["authorized_user_ids"] == [joiner]


def test_join_rejects_other_organization(fake_session, broadcast):
    cx = _cx()
    with pytest.raises(PermissionDeniedError, match="Session belongs to a different organization"):
        asyncio.run(_service(fake_session, cx).join(cx.id, uuid.uuid4(), uuid.uuid4()))
    assert cx.authorized_user_ids == []


def test_leave_clears_active_user(fake_session, broadcast):
    owner, teller = uuid.uuid4(), uuid.uuid4()
    cx = _cx(users=[owner, teller], active_user_id=teller)
    service = _service(fake_session, cx)

    asyncio.run(service.leave(cx.id, owner))
    assert cx.authorized_user_ids == [teller]
    assert cx.active_user_id == teller

    asyncio.run(service.leave(cx.id, teller))
    assert cx.authorized_user_ids == []
    assert cx.active_user_id is None
    assert [event for event, _ in service.activities.events] == ["SESSION_LEFT", "SESSION_LEFT"]


def test_float_close_keeps_first_log_stamps(fake_session, broadcast):
    user_id = uuid.uuid4()
    cx = _cx(status=wf.FLOAT_OPEN_COMPLETE, users=[user_id])
    restarted = SimpleNamespace(repository_id=uuid.uuid4(), close_start_at=EARLIER, close_confirm_at=None)
    untouched = SimpleNamespace(repository_id=uuid.uuid4(), close_start_at=None, close_confirm_at=None)
    confirmed = SimpleNamespace(
        repository_id=uuid.uuid4(), close_start_at=EARLIER, close_confirm_at=EARLIER + timedelta(minutes=5)
    )
    stacks = StubStacks(stacks=[SimpleNamespace(id=uuid.uuid4(), close_confirmed_at=None) for _ in range(2)])
    service = _service(
        fake_session, cx, stacks=stacks, repo_logs=StubRepositoryLogs([restarted, untouched, confirmed])
    )

    asyncio.run(service.start_float_close(cx.id, user_id))
    assert cx.status == wf.FLOAT_CLOSE_START
    assert restarted.close_start_at == EARLIER
    assert untouched.close_start_at == cx.close_start_at

    asyncio.run(service.confirm_float_close(cx.id, user_id))
    assert cx.status == wf.FLOAT_CLOSE_COMPLETE
    assert confirmed.close_confirm_at == EARLIER + timedelta(minutes=5)
    assert restarted.close_confirm_at == cx.close_confirm_at
    assert untouched.close_confirm_at == cx.close_confirm_at
    assert all(stack.close_confirmed_at == cx.close_confirm_at for stack in stacks.stacks)
    assert cx.close_confirm_user_id == user_id


def test_update_stack_counts(fake_session, broadcast):
    cx = _cx(status=wf.FLOAT_OPEN_START)
    stack = SimpleNamespace(id=uuid.uuid4(), session_id=cx.id, open_count=0, close_count=0, midday_count=0)
    stacks = StubStacks(stacks=[stack])
    service = _service(fake_session, cx, stacks=stacks)

    asyncio.run(service.update_stack_counts(stack.id, {"open": 12, "close": None}))
    assert stack.open_count == 12
    assert stack.close_count == 0
    assert stacks.commits == 1

    with pytest.raises(InvalidStateError, match="Cannot update close count in FLOAT_OPEN_START state"):
        asyncio.run(service.update_stack_counts(stack.id, {"close": 3}))
    assert stack.close_count == 0

    with pytest.raises(NotFoundError, match="Float stack not found"):
        asyncio.run(service.update_stack_counts(uuid.uuid4(), {"open": 1}))


class StubOrders:
    open_orders = []

    def __init__(self, session):
        pass

    async def list_open_for_session(self, session_id, done_statuses):
        assert tuple(done_statuses) == wf.ORDER_DONE_STATUSES
        return self.open_orders


def test_close_is_blocked_by_open_orders(fake_session, broadcast, monkeypatch):
    order_id = uuid.uuid4()

    class OpenOrders(StubOrders):
        open_orders = [SimpleNamespace(id=order_id)]

    monkeypatch.setattr(sessions_module, "OrderRepository", OpenOrders)
    cx = _cx(status=wf.FLOAT_CLOSE_COMPLETE)
    service = _service(fake_session, cx)

    with pytest.raises(InvalidStateError) as exc:
        asyncio.run(service.close(cx.id, uuid.uuid4()))

    assert exc.value.message.startswith("Cannot close session: 1 order(s)")
    assert exc.value.details == [{"type": "order", "id": str(order_id)}]
    assert cx.status == wf.FLOAT_CLOSE_COMPLETE
    assert service.sessions.commits == 0


def test_close_is_blocked_by_unconfirmed_repository(fake_session, broadcast, monkeypatch):
    monkeypatch.setattr(sessions_module, "OrderRepository", StubOrders)
    cx = _cx(status=wf.FLOAT_CLOSE_START)
    till = SimpleNamespace(id=uuid.uuid4(), name="Till 1", float_count_required=True)
    spare = SimpleNamespace(id=uuid.uuid4(), name="Spare", float_count_required=False)
    service = _service(fake_session, cx, repositories=[till, spare])

    with pytest.raises(InvalidStateError) as exc:
        asyncio.run(service.close(cx.id, uuid.uuid4()))
    assert exc.value.details == [{"type": "repository", "id": str(till.id), "name": "Till 1"}]


def test_close_when_every_required_repository_is_confirmed(fake_session, broadcast, monkeypatch):
    monkeypatch.setattr(sessions_module, "OrderRepository", StubOrders)
    user_id = uuid.uuid4()
    cx = _cx(status=wf.FLOAT_CLOSE_COMPLETE)
    till = SimpleNamespace(id=uuid.uuid4(), name="Till 1", float_count_required=True)
    log = SimpleNamespace(repository_id=till.id, close_confirm_at=EARLIER)
    service = _service(fake_session, cx, repo_logs=StubRepositoryLogs([log]), repositories=[till])

    asyncio.run(service.close(cx.id, user_id))

    assert cx.status == wf.CLOSED
    assert cx.close_confirm_user_id == user_id
    assert service.activities.events[0][0] == "SESSION_CLOSED"
    assert service.sessions.commits == 1


def test_publish_failure_does_not_undo_the_change(fake_session, monkeypatch):
    class BrokenBroadcast:
        async def publish_session_status(self, tenant_id, event):
            raise RuntimeError("socket gone")

    monkeypatch.setattr(sessions_module, "broadcast_manager", BrokenBroadcast())
    user_id = uuid.uuid4()
    cx = _cx(users=[user_id], active_user_id=user_id)
    service = _service(fake_session, cx)

    asyncio.run(service.leave(cx.id, user_id))
    assert service.sessions.commits == 1
    assert cx.active_user_id is None
