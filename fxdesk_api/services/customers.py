from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.errors import NotFoundError
from fxdesk_api.db.models.customers import Address, Customer, Identification
from fxdesk_api.repositories.customers import AddressRepository, CustomerRepository, IdentificationRepository
from fxdesk_api.services.base import BaseService

CUSTOMER_PARENT = "CUSTOMER"
IDENTIFICATION_TYPES = ("PASSPORT", "DRIVING_LICENSE", "NATIONAL_ID", "RESIDENCY_CARD")
ADDRESS_PARENT_TYPES = ("CUSTOMER", "ORGANIZATION", "IDENTIFICATION")


class CustomerService(BaseService):
    """KYC records: customers, their identifications and addresses."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.customers = CustomerRepository(session)
        self.identifications = IdentificationRepository(session)
        self.addresses = AddressRepository(session)

    # Customers

    # PUBLIC_INTERFACE
    async def get(self, customer_id: UUID) -> Customer:
        customer = await self.customers.get(customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    # PUBLIC_INTERFACE
    async def create(self, values: Dict[str, Any]) -> Customer:
        customer = await self.customers.create(**values)
        await self.customers.commit()
        return customer

    # PUBLIC_INTERFACE
    async def update(self, customer_id: UUID, values: Dict[str, Any]) -> Customer:
        customer = await self.get(customer_id)
        self.customers.apply(customer, values)
        await self.customers.commit()
        return customer

    # PUBLIC_INTERFACE
    async def delete(self, customer_id: UUID) -> None:
        customer = await self.get(customer_id)
        for address in await self.addresses.list_for_parent(CUSTOMER_PARENT, customer.id):
            await self.addresses.remove(address)
        await self.customers.remove(customer)
        await self.customers.commit()

    # PUBLIC_INTERFACE
    async def set_blacklisted(self, customer_id: UUID, blacklisted: bool, reason: str | None = None) -> Customer:
        customer = await self.get(customer_id)
        customer.blacklisted = blacklisted
        customer.blacklist_reason = reason if blacklisted else None
        await self.customers.commit()
        return customer

    # Identifications

    async def get_identification(self, customer_id: UUID, identification_id: UUID) -> Identification:
        identification = await self.identifications.get(identification_id)
        if identification is None or identification.customer_id != customer_id:
            raise NotFoundError("Identification not found")
        return identification

    # PUBLIC_INTERFACE
    async def create_identification(self, customer_id: UUID, values: Dict[str, Any]) -> Identification:
        customer = await self.get(customer_id)
        if values.get("primary"):
            await self.identifications.clear_primary(customer.id)
        identification = await self.identifications.create(customer_id=customer.id, **values)
        if identification.primary:
            customer.primary_identification_id = identification.id
        await self.identifications.commit()
        return identification

    # PUBLIC_INTERFACE
    async def update_identification(
        self, customer_id: UUID, identification_id: UUID, values: Dict[str, Any]
    ) -> Identification:
        identification = await self.get_identification(customer_id, identification_id)
        values = dict(values)
        values.pop("primary", None)
        self.identifications.apply(identification, values)
        await self.identifications.commit()
        return identification

    # PUBLIC_INTERFACE
    async def delete_identification(self, customer_id: UUID, identification_id: UUID) -> None:
        identification = await self.get_identification(customer_id, identification_id)
        customer = await self.get(customer_id)
        if customer.primary_identification_id == identification.id:
            customer.primary_identification_id = None
        await self.identifications.remove(identification)
        await self.identifications.commit()

    # PUBLIC_INTERFACE
    async def verify_identification(
        self, customer_id: UUID, identification_id: UUID, reviewer_id: UUID
    ) -> Identification:
        identification = await self.get_identification(customer_id, identification_id)
        identification.verified = True
        identification.verified_at = datetime.now(tz=timezone.utc)
        identification.reviewer_id = reviewer_id
        await self.identifications.commit()
        return identification

    # PUBLIC_INTERFACE
    async def set_primary_identification(self, customer_id: UUID, identification_id: UUID) -> Identification:
        identification = await self.get_identification(customer_id, identification_id)
        customer = await self.get(customer_id)
        await self.identifications.clear_primary(customer.id)
        identification.primary = True
        customer.primary_identification_id = identification.id
        await self.identifications.commit()
        return identification

    # Addresses

    async def get_address(self, customer_id: UUID, address_id: UUID) -> Address:
        address = await self.addresses.get(address_id)
        if address is None or address.parent_type != CUSTOMER_PARENT or address.parent_id != customer_id:
            raise NotFoundError("Address not found")
        return address

    # PUBLIC_INTERFACE
    async def list_addresses(self, customer_id: UUID):
        customer = await self.get(customer_id)
        return await self.addresses.list_for_parent(CUSTOMER_PARENT, customer.id)

    # PUBLIC_INTERFACE
    async def create_address(self, customer_id: UUID, values: Dict[str, Any]) -> Address:
        customer = await self.get(customer_id)
        if values.get("primary"):
            await self.addresses.clear_primary(CUSTOMER_PARENT, customer.id)
        address = await self.addresses.create(parent_type=CUSTOMER_PARENT, parent_id=customer.id, **values)
        if address.primary:
            customer.primary_address_id = address.id
        await self.addresses.commit()
        return address

    # PUBLIC_INTERFACE
    async def update_address(self, customer_id: UUID, address_id: UUID, values: Dict[str, Any]) -> Address:
        address = await self.get_address(customer_id, address_id)
        values = dict(values)
        values.pop("primary", None)
        self.addresses.apply(address, values)
        await self.addresses.commit()
        return address

    # PUBLIC_INTERFACE
    async def delete_address(self, customer_id: UUID, address_id: UUID) -> None:
        address = await self.get_address(customer_id, address_id)
        customer = await self.get(customer_id)
        if customer.primary_address_id == address.id:
            customer.primary_address_id = None
        await self.addresses.remove(address)
        await self.addresses.commit()

    # PUBLIC_INTERFACE
    async def set_primary_address(self, customer_id: UUID, address_id: UUID) -> Address:
        address = await self.get_address(customer_id, address_id)
        customer = await self.get(customer_id)
        await self.addresses.clear_primary(CUSTOMER_PARENT, customer.id)
        address.primary = True
        customer.primary_address_id = address.id
        await self.addresses.commit()
        return address
