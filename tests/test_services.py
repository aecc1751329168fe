import asyncio
import uuid
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from fxdesk_api.core.errors import (
    BusinessRuleError,
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from fxdesk_api.core.settings import AppSettings
from fxdesk_api.schemas.customers import IdentificationRead
from fxdesk_api.services import transfers as transfers_module
from fxdesk_api.services.identity_provider import IdentityProviderClient, normalize_provider_role
from fxdesk_api.services import notes as notes_module
from fxdesk_api.services import orders as orders_module
from fxdesk_api.services.notes import NoteService, entity_column
from fxdesk_api.services.orders import BreakdownService, OrderService
from fxdesk_api.services.organizations import slugify
from fxdesk_api.services.transfers import TransferService


class StubNotes:
    def __init__(self, note=None):
        self.note = note
        self.created = None
        self.listed = None
        self.removed = None
        self.commits = 0

    async def get(self, note_id):
        return self.note

    async def create(self, **values):
        self.created = values
        return SimpleNamespace(**values)

    async def list(self, **filters):
        self.listed = filters
        return []

    async def remove(self, entity):
        self.removed = entity

    async def commit(self):
        self.commits += 1

    apply = staticmethod(lambda entity, values: [setattr(entity, k, v) for k, v in values.items() if v is not None])


def _service(fake_session, note=None):
    service = NoteService(fake_session)
    service.notes = StubNotes(note)
    return service


def test_entity_columns():
    assert entity_column("ORDER") == "order_id"
    assert entity_column("CUSTOMER") == "customer_id"
    assert entity_column("SESSION") == "session_id"
    assert entity_column("SWAP") == "reference_id"
    with pytest.raises(BusinessRuleError, match="Invalid note type: INVOICE"):
        entity_column("INVOICE")


class StubCustomers:
    def __init__(self, session):
        pass

    async def get(self, customer_id):
        return SimpleNamespace(id=customer_id)


def test_note_is_linked_through_its_entity_column(fake_session, monkeypatch):
    monkeypatch.setitem(notes_module._ENTITY_LOOKUPS, "CUSTOMER", (StubCustomers, "Customer not found"))
    service = _service(fake_session)
    customer_id, user_id = uuid.uuid4(), uuid.uuid4()

    asyncio.run(service.create(note_type="CUSTOMER", entity_id=customer_id, message="Called back", user_id=user_id))

    assert service.notes.created["customer_id"] == customer_id
    assert service.notes.created["resolved"] is False
    assert service.notes.commits == 1


def test_note_on_missing_entity_is_not_found(fake_session):
    service = _service(fake_session)
    with pytest.raises(NotFoundError, match="Customer not found"):
        asyncio.run(service.create(note_type="CUSTOMER", entity_id=uuid.uuid4(), message="x", user_id=uuid.uuid4()))
    with pytest.raises(NotFoundError, match="Session not found"):
        asyncio.run(service.create(note_type="SESSION", entity_id=uuid.uuid4(), message="x", user_id=uuid.uuid4()))
    assert service.notes.created is None


def test_reference_notes_skip_the_entity_lookup(fake_session):
    service = _service(fake_session)
    swap_id = uuid.uuid4()
    asyncio.run(service.create(note_type="SWAP", entity_id=swap_id, message="Rate agreed", user_id=uuid.uuid4()))
    assert service.notes.created["reference_id"] == swap_id
    assert fake_session.statements == []


def test_note_listing_filters_by_entity(fake_session):
    service = _service(fake_session)
    transfer_id = uuid.uuid4()
    asyncio.run(service.list(note_type="TRANSFER", entity_id=transfer_id))
    assert service.notes.listed["reference_id"] == transfer_id
    assert service.notes.listed["note_type"] == "TRANSFER"


def test_only_author_or_admin_may_edit(fake_session):
    author = uuid.uuid4()
    note = SimpleNamespace(user_id=author, message="old", title=None)
    service = _service(fake_session, note)

    stranger = SimpleNamespace(user_id=uuid.uuid4(), role="member")
    with pytest.raises(PermissionDeniedError):
        asyncio.run(service.update(uuid.uuid4(), {"message": "new"}, stranger))

    admin = SimpleNamespace(user_id=uuid.uuid4(), role="admin")
    asyncio.run(service.update(uuid.uuid4(), {"message": "new"}, admin))
    assert note.message == "new"

    asyncio.run(service.delete(uuid.uuid4(), SimpleNamespace(user_id=author, role="member")))
    assert service.notes.removed is note


def test_resolve_requires_resolvable_note(fake_session):
    note = SimpleNamespace(resolvable=False, resolved=False, resolved_at=None, resolved_by_id=None)
    with pytest.raises(BusinessRuleError, match="This note is not resolvable"):
        asyncio.run(_service(fake_session, note).resolve(uuid.uuid4(), True, uuid.uuid4()))


def test_resolve_and_reopen(fake_session):
    note = SimpleNamespace(resolvable=True, resolved=False, resolved_at=None, resolved_by_id=None)
    service = _service(fake_session, note)
    user_id = uuid.uuid4()

    asyncio.run(service.resolve(uuid.uuid4(), True, user_id))
    assert note.resolved and note.resolved_by_id == user_id and note.resolved_at is not None

    asyncio.run(service.resolve(uuid.uuid4(), False, user_id))
    assert not note.resolved and note.resolved_at is None and note.resolved_by_id is None


def test_missing_note(fake_session):
    with pytest.raises(NotFoundError, match="Note not found"):
        asyncio.run(_service(fake_session).get(uuid.uuid4()))


def test_slugify():
    assert slugify("Maple Leaf  Exchange!") == "maple-leaf-exchange"
    assert slugify("--Café & Co--") == "caf-co"


def test_provider_roles():
    assert normalize_provider_role("org:admin") == "admin"
    assert normalize_provider_role("owner") == "owner"
    assert normalize_provider_role("org:member") == "member"
    assert normalize_provider_role(None) == "member"


def _identification(expiry):
    return IdentificationRead(
        id=uuid.uuid4(),
        customer_id=uuid.uuid4(),
        type_of="PASSPORT",
        reference_number="X123",
        expiry_date=expiry,
        verified=False,
        primary=True,
        created_at=datetime.now(tz=timezone.utc),
    )


def test_identification_expiry_flag():
    assert _identification(date.today() - timedelta(days=1)).is_expired
    assert not _identification(date.today() + timedelta(days=30)).is_expired
    assert not _identification(None).is_expired
    assert _identification(date.today() - timedelta(days=1)).model_dump()["is_expired"] is True


class StubSessions:
    status = "FLOAT_OPEN_COMPLETE"

    def __init__(self, session):
        pass

    async def get(self, session_id):
        return SimpleNamespace(id=session_id, status=self.status)


def _transfer_kwargs(**overrides):
    values = dict(
        user=SimpleNamespace(id=uuid.uuid4(), is_active=True),
        session_id=uuid.uuid4(),
        inbound_repository_id=uuid.uuid4(),
        outbound_repository_id=uuid.uuid4(),
        inbound_ticker="CAD",
        outbound_ticker="CAD",
        inbound_sum=100,
        outbound_sum=100,
    )
    values.update(overrides)
    return values


def test_transfer_requires_open_session(fake_session, monkeypatch):
    class Dormant(StubSessions):
        status = "DORMANT"

    monkeypatch.setattr(transfers_module, "CxSessionRepository", Dormant)
    with pytest.raises(InvalidStateError, match="Session must be open for business"):
        asyncio.run(TransferService(fake_session).create_transfer(**_transfer_kwargs()))


def test_transfer_rejects_zero_sums(fake_session, monkeypatch):
    monkeypatch.setattr(transfers_module, "CxSessionRepository", StubSessions)
    with pytest.raises(BusinessRuleError, match="Inbound sum cannot be 0 for FloatTransfer"):
        asyncio.run(TransferService(fake_session).create_transfer(**_transfer_kwargs(inbound_sum=0)))
    with pytest.raises(BusinessRuleError, match="Outbound sum cannot be 0 for FloatTransfer"):
        asyncio.run(TransferService(fake_session).create_transfer(**_transfer_kwargs(outbound_sum=0)))


def test_transfer_requires_active_user(fake_session, monkeypatch):
    monkeypatch.setattr(transfers_module, "CxSessionRepository", StubSessions)
    inactive = SimpleNamespace(id=uuid.uuid4(), is_active=False)
    with pytest.raises(BusinessRuleError, match="User must be active"):
        asyncio.run(TransferService(fake_session).create_transfer(**_transfer_kwargs(user=inactive)))


def test_identity_provider_requires_secret_key():
    client = IdentityProviderClient(AppSettings(IDENTITY_PROVIDER_SECRET_KEY=None))
    with pytest.raises(ConfigurationError, match="Identity provider secret key not configured"):
        asyncio.run(client.get_organization_by_slug("acme"))


class StubCurrencyRates:
    def __init__(self, session):
        pass

    async def by_ticker(self):
        return {
            "CAD": SimpleNamespace(ticker="CAD", rate=1.0, type_of="FIAT"),
            "USD": SimpleNamespace(ticker="USD", rate=0.5, type_of="FIAT"),
        }


class StubOrders:
    def __init__(self):
        self.created = None
        self.commits = 0

    async def create(self, **values):
        self.created = values
        fields = dict(customer_id=None)
        fields.update(values)
        return SimpleNamespace(id=uuid.uuid4(), **fields)

    async def commit(self):
        self.commits += 1


def test_order_is_created_as_quote_with_computed_fields(fake_session, monkeypatch):
    customer = SimpleNamespace(id=uuid.uuid4(), last_order_at=None)

    class StubCustomerLookup:
        def __init__(self, session):
            pass

        async def get(self, customer_id):
            return customer if customer_id == customer.id else None

    monkeypatch.setattr(orders_module, "CxSessionRepository", StubSessions)
    monkeypatch.setattr(orders_module, "OrgCurrencyRepository", StubCurrencyRates)
    monkeypatch.setattr(orders_module, "CustomerRepository", StubCustomerLookup)
    service = OrderService(fake_session)
    service.orders = StubOrders()
    user_id = uuid.uuid4()

    order = asyncio.run(
        service.create(
            {
                "session_id": uuid.uuid4(),
                "customer_id": customer.id,
                "inbound_ticker": "cad",
                "outbound_ticker": "usd",
                "inbound_sum": 100,
                "outbound_sum": None,
                "status": None,
            },
            user_id,
        )
    )

    created = service.orders.created
    assert created["status"] == "QUOTE"
    assert created["inbound_ticker"] == "CAD"
    assert created["outbound_ticker"] == "USD"
    assert created["outbound_sum"] == pytest.approx(200)
    assert created["fx_rate"] == pytest.approx(2.0)
    assert created["fee"] == pytest.approx(2.0)
    assert created["network_fee"] == 0
    assert created["batched_status"] == 0
    assert created["user_id"] == user_id
    assert created["open_at"] is not None
    assert order.customer_id == customer.id
    assert customer.last_order_at is not None
    assert service.orders.commits == 1


def test_order_keeps_supplied_quote_fields(fake_session, monkeypatch):
    monkeypatch.setattr(orders_module, "CxSessionRepository", StubSessions)
    monkeypatch.setattr(orders_module, "OrgCurrencyRepository", StubCurrencyRates)
    service = OrderService(fake_session)
    service.orders = StubOrders()

    asyncio.run(
        service.create(
            {
                "session_id": uuid.uuid4(),
                "inbound_ticker": "CAD",
                "outbound_ticker": "USD",
                "inbound_sum": 100,
                "outbound_sum": 190,
                "fee": 5,
            },
            uuid.uuid4(),
        )
    )

    assert service.orders.created["outbound_sum"] == 190
    assert service.orders.created["fee"] == 5
    assert service.orders.created["margin"] == pytest.approx(2.0)


def test_order_requires_existing_session(fake_session):
    service = OrderService(fake_session)
    service.orders = StubOrders()
    with pytest.raises(NotFoundError, match="Session not found"):
        asyncio.run(service.create({"session_id": uuid.uuid4(), "inbound_ticker": "CAD"}, uuid.uuid4()))
    assert service.orders.created is None


class StubBreakdowns:
    def __init__(self):
        self.deleted = []
        self.created = []
        self.flushes = 0
        self.commits = 0

    async def delete_for(self, breakable_type, breakable_id, directions=None):
        self.deleted.append((breakable_type, breakable_id, set(directions or ())))

    async def create(self, **values):
        self.created.append(values)

    async def flush(self):
        self.flushes += 1

    async def commit(self):
        self.commits += 1


def test_breakdowns_replace_only_supplied_directions(fake_session):
    service = BreakdownService(fake_session)
    service.breakdowns = StubBreakdowns()
    order_id, denomination_id = uuid.uuid4(), uuid.uuid4()

    count = asyncio.run(
        service.set(
            "ORDER",
            order_id,
            [
                {"denomination_id": denomination_id, "count": 3, "direction": "OUTBOUND"},
                {"denomination_id": denomination_id, "count": 1, "direction": "OUTBOUND", "status": "COMMITTED"},
            ],
        )
    )

    assert count == 2
    assert service.breakdowns.deleted == [("ORDER", order_id, {"OUTBOUND"})]
    assert [row["status"] for row in service.breakdowns.created] == ["CREATED", "COMMITTED"]
    assert service.breakdowns.commits == 1


def test_breakdowns_reject_unknown_direction(fake_session):
    service = BreakdownService(fake_session)
    service.breakdowns = StubBreakdowns()
    with pytest.raises(BusinessRuleError, match="Invalid breakdown direction: SIDEWAYS"):
        asyncio.run(
            service.set("ORDER", uuid.uuid4(), [{"denomination_id": uuid.uuid4(), "count": 1, "direction": "SIDEWAYS"}])
        )
    assert service.breakdowns.deleted == []


class StubRepositoryLookup:
    def __init__(self, session):
        pass

    async def get(self, repository_id):
        return SimpleNamespace(id=repository_id)


class StubActivityLog:
    events = []

    def __init__(self, session):
        pass

    async def record(self, event, **values):
        self.events.append((event, values))


class StubTransfers:
    def __init__(self):
        self.created = None
        self.commits = 0

    async def create(self, **values):
        self.created = values
        return SimpleNamespace(id=uuid.uuid4(), **values)

    async def commit(self):
        self.commits += 1


class StubFloatStacks:
    def __init__(self, *stacks):
        self.stacks = {stack.id: stack for stack in stacks}

    async def get(self, stack_id):
        return self.stacks.get(stack_id)


def _transfer_service(fake_session, monkeypatch, *stacks):
    monkeypatch.setattr(transfers_module, "CxSessionRepository", StubSessions)
    monkeypatch.setattr(transfers_module, "OrgRepositoryRepository", StubRepositoryLookup)
    monkeypatch.setattr(transfers_module, "ActivityRepository", StubActivityLog)
    monkeypatch.setattr(StubActivityLog, "events", [])
    service = TransferService(fake_session)
    service.transfers = StubTransfers()
    service.stacks = StubFloatStacks(*stacks)
    service.breakdowns = StubBreakdowns()
    return service


def test_transfer_moves_stack_counts(fake_session, monkeypatch):
    till = SimpleNamespace(id=uuid.uuid4(), close_count=10)
    vault = SimpleNamespace(id=uuid.uuid4(), close_count=None)
    service = _transfer_service(fake_session, monkeypatch, till, vault)
    denomination_id = uuid.uuid4()

    transfer = asyncio.run(
        service.create_transfer(
            **_transfer_kwargs(
                breakdowns=[
                    {"float_stack_id": till.id, "denomination_id": denomination_id, "count": 4, "direction": "OUTBOUND"},
                    {"float_stack_id": vault.id, "denomination_id": denomination_id, "count": 4, "direction": "INBOUND"},
                ]
            )
        )
    )

    assert till.close_count == 6
    assert vault.close_count == 4
    rows = service.breakdowns.created
    assert {row["status"] for row in rows} == {"COMMITTED"}
    assert {row["breakable_type"] for row in rows} == {"FLOAT_TRANSFER"}
    assert [row["float_stack_id"] for row in rows] == [till.id, vault.id]
    assert all(row["breakable_id"] == transfer.id for row in rows)
    assert service.breakdowns.flushes == 1
    assert service.transfers.created["status"] == "COMPLETED"
    assert StubActivityLog.events[0][0] == "TRANSFER_CREATED"
    assert service.transfers.commits == 1


def test_transfer_with_unknown_stack(fake_session, monkeypatch):
    service = _transfer_service(fake_session, monkeypatch)
    missing = uuid.uuid4()
    entry = {"float_stack_id": missing, "denomination_id": uuid.uuid4(), "count": 1, "direction": "INBOUND"}

    with pytest.raises(NotFoundError, match=f"Float stack not found: {missing}"):
        asyncio.run(service.create_transfer(**_transfer_kwargs(breakdowns=[entry])))
    assert service.transfers.commits == 0
