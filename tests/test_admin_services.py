import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from fxdesk_api.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from fxdesk_api.repositories.base import BaseRepository
from fxdesk_api.services.currencies import CurrencyService
from fxdesk_api.services.customers import CustomerService
from fxdesk_api.services.memberships import INVITATION_TTL, MembershipService
from fxdesk_api.services.vaults import RepositoryService


class StubRepository:
    """Async repository stand-in: returns the canned result per method and records every call."""

    apply = staticmethod(BaseRepository.apply)

    def __init__(self, **results):
        self.results = results
        self.calls = []
        self.commits = 0

    def __getattr__(self, name):
        async def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            result = self.results.get(name)
            return result(*args, **kwargs) if callable(result) else result

        return method

    async def commit(self):
        self.commits += 1

    def called(self, name):
        return [(args, kwargs) for called, args, kwargs in self.calls if called == name]


def _membership(role="member", **values):
    fields = dict(user_id=uuid.uuid4(), role=role, status="active", user=SimpleNamespace(is_active=True))
    fields.update(values)
    return SimpleNamespace(**fields)


def _memberships(fake_session, *, users=None, memberships=None, invitations=None):
    service = MembershipService(fake_session)
    service.users = users or StubRepository()
    service.memberships = memberships or StubRepository()
    service.invitations = invitations or StubRepository()
    return service


# Members


def test_only_an_owner_grants_the_owner_role(fake_session):
    admin = _membership("admin")
    service = _memberships(fake_session, memberships=StubRepository(get_for_user=_membership()))

    with pytest.raises(PermissionDeniedError, match="Only an owner can grant the owner role"):
        asyncio.run(service.update_role(actor=admin, user_id=uuid.uuid4(), role="owner"))
    with pytest.raises(PermissionDeniedError, match="Only an owner can grant the owner role"):
        asyncio.run(service.invite(actor=admin, email="new@example.com", role="owner"))
    assert service.memberships.commits == 0

    promoted = asyncio.run(service.update_role(actor=_membership("owner"), user_id=uuid.uuid4(), role="owner"))
    assert promoted.role == "owner"
    assert service.memberships.commits == 1


def test_admin_cannot_change_an_owner(fake_session):
    service = _memberships(fake_session, memberships=StubRepository(get_for_user=_membership("owner")))
    with pytest.raises(PermissionDeniedError, match="Insufficient permissions to update member roles"):
        asyncio.run(service.update_role(actor=_membership("admin"), user_id=uuid.uuid4(), role="member"))


def test_owner_cannot_be_removed(fake_session):
    owner = _membership("owner")
    service = _memberships(fake_session, memberships=StubRepository(get_for_user=owner))
    with pytest.raises(PermissionDeniedError, match="Cannot remove organization owner"):
        asyncio.run(service.remove_member(user_id=owner.user_id))
    assert service.memberships.called("remove") == []

    member = _membership()
    service = _memberships(fake_session, memberships=StubRepository(get_for_user=member))
    asyncio.run(service.remove_member(user_id=member.user_id))
    assert service.memberships.called("remove") == [((member,), {})]
    assert service.memberships.commits == 1


def test_archive_member(fake_session):
    actor, member = _membership("admin"), _membership()
    service = _memberships(fake_session, memberships=StubRepository(get_for_user=member))

    with pytest.raises(PermissionDeniedError, match="Cannot archive your own account"):
        asyncio.run(service.archive_member(actor=actor, user_id=actor.user_id))

    asyncio.run(service.archive_member(actor=actor, user_id=member.user_id))
    assert member.status == "removed"
    assert member.user.is_active is False


# Invitations


def test_invite_rejects_active_member(fake_session):
    service = _memberships(
        fake_session,
        users=StubRepository(get_by_email=SimpleNamespace(id=uuid.uuid4())),
        memberships=StubRepository(get_for_user=_membership()),
    )
    with pytest.raises(ConflictError, match="User is already a member of this organization"):
        asyncio.run(service.invite(actor=_membership("admin"), email="teller@example.com"))


def test_invite_rejects_duplicate_pending_invitation(fake_session):
    service = _memberships(fake_session, invitations=StubRepository(get_pending_for_email=SimpleNamespace()))
    with pytest.raises(ConflictError, match="User already has a pending invitation"):
        asyncio.run(service.invite(actor=_membership("admin"), email="teller@example.com"))
    assert service.invitations.called("create") == []


def test_invite_creates_expiring_invitation(fake_session):
    actor = _membership("admin")
    invitations = StubRepository(create=lambda **values: SimpleNamespace(**values))
    service = _memberships(fake_session, invitations=invitations)

    invitation = asyncio.run(service.invite(actor=actor, email="Teller@Example.com", role="admin"))

    assert invitation.email == "teller@example.com"
    assert invitation.role == "admin"
    assert invitation.invited_by == actor.user_id
    assert invitation.token
    remaining = invitation.expires_at - datetime.now(tz=timezone.utc)
    assert INVITATION_TTL - timedelta(minutes=1) < remaining <= INVITATION_TTL
    assert invitations.commits == 1


def _invitation(**values):
    fields = dict(
        email="teller@example.com",
        role="member",
        status="pending",
        invited_by=uuid.uuid4(),
        expires_at=datetime.now(tz=timezone.utc) + timedelta(days=1),
    )
    fields.update(values)
    return SimpleNamespace(**fields)


def _user(email="teller@example.com"):
    return SimpleNamespace(id=uuid.uuid4(), email=email)


def test_invitation_for_another_email(fake_session):
    service = _memberships(fake_session, invitations=StubRepository(get_by_token=_invitation()))
    with pytest.raises(PermissionDeniedError, match="Invitation was sent to a different email"):
        asyncio.run(service.accept_invitation(token="t", user=_user("other@example.com")))


def test_expired_invitation_is_marked_and_rejected(fake_session):
    invitation = _invitation(expires_at=datetime.now(tz=timezone.utc) - timedelta(minutes=1))
    service = _memberships(fake_session, invitations=StubRepository(get_by_token=invitation))

    with pytest.raises(ConflictError, match="Invitation has expired") as exc:
        asyncio.run(service.accept_invitation(token="t", user=_user("TELLER@example.com")))

    assert exc.value.status_code == 409
    assert invitation.status == "expired"
    assert service.invitations.commits == 1


def test_processed_invitation_is_rejected(fake_session):
    service = _memberships(fake_session, invitations=StubRepository(get_by_token=_invitation(status="accepted")))
    with pytest.raises(ConflictError, match="Invitation already processed"):
        asyncio.run(service.accept_invitation(token="t", user=_user()))


def test_accepting_invitation_creates_membership(fake_session):
    invitation = _invitation(role="admin")
    memberships = StubRepository(create=lambda **values: SimpleNamespace(**values))
    service = _memberships(fake_session, memberships=memberships, invitations=StubRepository(get_by_token=invitation))
    user = _user()

    membership = asyncio.run(service.accept_invitation(token="t", user=user))

    assert membership.user is user
    assert membership.role == "admin"
    assert membership.invited_by == invitation.invited_by
    assert invitation.status == "accepted"
    assert memberships.commits == 1


# Repositories


def test_repository_key_must_be_unique_on_create(fake_session):
    service = RepositoryService(fake_session)
    service.repositories = StubRepository(get_by_key=SimpleNamespace(id=uuid.uuid4()))
    with pytest.raises(ConflictError, match="Repository key already exists in this organization"):
        asyncio.run(service.create({"key": "TILL1", "name": "Till 1"}))
    assert service.repositories.called("create") == []

    service.repositories = StubRepository(create=lambda **values: SimpleNamespace(id=uuid.uuid4(), **values))
    created = asyncio.run(service.create({"key": "TILL1", "name": "Till 1"}))
    assert created.key == "TILL1"
    assert service.repositories.commits == 1


def test_repository_key_must_be_unique_on_update(fake_session):
    till = SimpleNamespace(id=uuid.uuid4(), key="TILL1", name="Till 1")
    vault = SimpleNamespace(id=uuid.uuid4(), key="VAULT", name="Vault")
    keys = {"TILL1": till, "VAULT": vault}
    service = RepositoryService(fake_session)
    service.repositories = StubRepository(get=till, get_by_key=lambda key: keys.get(key))

    with pytest.raises(ConflictError, match="Repository key already exists in this organization"):
        asyncio.run(service.update(till.id, {"key": "VAULT"}))
    assert till.key == "TILL1"

    asyncio.run(service.update(till.id, {"key": "TILL1", "name": "Front till"}))
    assert till.name == "Front till"

    asyncio.run(service.update(till.id, {"key": "TILL2", "name": None}))
    assert till.key == "TILL2"
    assert till.name == "Front till"
    assert service.repositories.commits == 2


# Currencies


def test_set_base_currency_clears_the_others(fake_session):
    cad = SimpleNamespace(id=uuid.uuid4(), ticker="CAD", is_base_currency=False)
    service = CurrencyService(fake_session)
    service.currencies = StubRepository(get=cad)

    asyncio.run(service.set_base_currency(cad.id))

    assert service.currencies.called("clear_base_currency") == [((), {"except_id": cad.id})]
    assert cad.is_base_currency is True
    assert service.currencies.commits == 1

    service.currencies = StubRepository()
    with pytest.raises(NotFoundError, match="Currency not found"):
        asyncio.run(service.set_base_currency(uuid.uuid4()))


def test_create_currency_uppercases_ticker(fake_session):
    service = CurrencyService(fake_session)
    service.currencies = StubRepository(create=lambda **values: SimpleNamespace(**values))

    currency = asyncio.run(service.create({"ticker": "usd", "name": "US Dollar", "is_base_currency": True}))

    assert currency.ticker == "USD"
    assert service.currencies.called("get_by_ticker") == [(("USD",), {})]
    assert service.currencies.called("clear_base_currency") == [((), {})]


# Customers


def _customers(fake_session, customer, **repositories):
    service = CustomerService(fake_session)
    service.customers = StubRepository(get=customer)
    service.identifications = repositories.get("identifications") or StubRepository()
    service.addresses = repositories.get("addresses") or StubRepository()
    return service


def test_set_primary_identification(fake_session):
    customer = SimpleNamespace(id=uuid.uuid4(), primary_identification_id=None)
    passport = SimpleNamespace(id=uuid.uuid4(), customer_id=customer.id, primary=False)
    service = _customers(fake_session, customer, identifications=StubRepository(get=passport))

    asyncio.run(service.set_primary_identification(customer.id, passport.id))

    assert service.identifications.called("clear_primary") == [((customer.id,), {})]
    assert passport.primary is True
    assert customer.primary_identification_id == passport.id
    assert service.identifications.commits == 1


def test_identification_of_another_customer_is_not_found(fake_session):
    customer = SimpleNamespace(id=uuid.uuid4(), primary_identification_id=None)
    foreign = SimpleNamespace(id=uuid.uuid4(), customer_id=uuid.uuid4(), primary=False)
    service = _customers(fake_session, customer, identifications=StubRepository(get=foreign))

    with pytest.raises(NotFoundError, match="Identification not found"):
        asyncio.run(service.set_primary_identification(customer.id, foreign.id))
    assert customer.primary_identification_id is None


def test_set_primary_address(fake_session):
    customer = SimpleNamespace(id=uuid.uuid4(), primary_address_id=None)
    home = SimpleNamespace(id=uuid.uuid4(), parent_type="CUSTOMER", parent_id=customer.id, primary=False)
    service = _customers(fake_session, customer, addresses=StubRepository(get=home))

    asyncio.run(service.set_primary_address(customer.id, home.id))

    assert service.addresses.called("clear_primary") == [(("CUSTOMER", customer.id), {})]
    assert home.primary is True
    assert customer.primary_address_id == home.id
    assert service.addresses.commits == 1


def test_address_of_another_parent_is_not_found(fake_session):
    customer = SimpleNamespace(id=uuid.uuid4(), primary_address_id=None)
    branch = SimpleNamespace(id=uuid.uuid4(), parent_type="ORGANIZATION", parent_id=customer.id, primary=False)
    service = _customers(fake_session, customer, addresses=StubRepository(get=branch))

    with pytest.raises(NotFoundError, match="Address not found"):
        asyncio.run(service.set_primary_address(customer.id, branch.id))
