from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select, update

from fxdesk_api.db.models.customers import Address, Customer, Identification
from .base import BaseRepository


class CustomerRepository(BaseRepository):
    """Customer KYC records."""

    async def search(
        self,
        *,
        query: Optional[str] = None,
        active: Optional[bool] = None,
        blacklisted: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Customer]:
        stmt = select(Customer)
        if query:
            like = f"%{query}%"
            stmt = stmt.where(
                or_(
                    Customer.first_name.ilike(like),
                    Customer.middle_name.ilike(like),
                    Customer.last_name.ilike(like),
                    Customer.email.ilike(like),
                    Customer.telephone.ilike(like),
                )
            )
        if active is not None:
            stmt = stmt.where(Customer.active.is_(active))
        if blacklisted is not None:
            stmt = stmt.where(Customer.blacklisted.is_(blacklisted))
        stmt = stmt.order_by(Customer.last_name.asc(), Customer.first_name.asc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def get(self, customer_id: UUID) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.id == customer_id)
        return await self.scalar_one_or_none(stmt)

    async def create(self, **values) -> Customer:
        customer = Customer(**values)
        await self.add(customer)
        await self.flush()
        return customer


class IdentificationRepository(BaseRepository):
    async def list_for_customer(self, customer_id: UUID) -> List[Identification]:
        stmt = (
            select(Identification)
            .where(Identification.customer_id == customer_id)
            .order_by(Identification.primary.desc(), Identification.created_at.desc())
        )
        return list(await self.scalars(stmt))

    async def get(self, identification_id: UUID) -> Optional[Identification]:
        stmt = select(Identification).where(Identification.id == identification_id)
        return await self.scalar_one_or_none(stmt)

    async def create(self, **values) -> Identification:
        identification = Identification(**values)
        await self.add(identification)
        await self.flush()
        return identification

    async def clear_primary(self, customer_id: UUID) -> None:
        stmt = (
            update(Identification)
            .where(Identification.customer_id == customer_id, Identification.primary.is_(True))
            .values(primary=False)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(stmt)


class AddressRepository(BaseRepository):
    async def list_for_parent(self, parent_type: str, parent_id: UUID) -> List[Address]:
        stmt = (
            select(Address)
            .where(Address.parent_type == parent_type, Address.parent_id == parent_id)
            .order_by(Address.primary.desc(), Address.created_at.desc())
        )
        return list(await self.scalars(stmt))

    async def get(self, address_id: UUID) -> Optional[Address]:
        stmt = select(Address).where(Address.id == address_id)
        return await self.scalar_one_or_none(stmt)

    async def create(self, **values) -> Address:
        address = Address(**values)
        await self.add(address)
        await self.flush()
        return address

    async def clear_primary(self, parent_type: str, parent_id: UUID) -> None:
        stmt = (
            update(Address)
            .where(
                Address.parent_type == parent_type,
                Address.parent_id == parent_id,
                Address.primary.is_(True),
            )
            .values(primary=False)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(stmt)
