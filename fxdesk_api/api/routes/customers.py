from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_current_active_user, get_current_membership, get_tenant_session, require_roles
from fxdesk_api.db.models.users import User
from fxdesk_api.repositories.customers import CustomerRepository, IdentificationRepository
from fxdesk_api.schemas.common import MessageResponse
from fxdesk_api.schemas.customers import (
    AddressCreate,
    AddressRead,
    AddressUpdate,
    BlacklistRequest,
    CustomerCreate,
    CustomerRead,
    CustomerUpdate,
    IdentificationCreate,
    IdentificationRead,
    IdentificationUpdate,
)
from fxdesk_api.services.customers import CustomerService

# Every route needs an active membership in the organization
router = APIRouter(prefix="/customers", tags=["Customers"], dependencies=[Depends(get_current_membership)])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[CustomerRead],
    summary="Search customers",
    description="Case-insensitive search over name, email and telephone.",
)
async def search_customers(
    q: Optional[str] = Query(None, description="Search text"),
    active: Optional[bool] = Query(None),
    blacklisted: Optional[bool] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[CustomerRead]:
    items = await CustomerRepository(session).search(
        query=q, active=active, blacklisted=blacklisted, limit=limit, offset=offset
    )
    return [CustomerRead.model_validate(c) for c in items]


# PUBLIC_INTERFACE
@router.post("", response_model=CustomerRead, status_code=201, summary="Create customer")
async def create_customer(
    payload: CustomerCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> CustomerRead:
    return CustomerRead.model_validate(await CustomerService(session).create(payload.model_dump()))


# PUBLIC_INTERFACE
@router.get("/{customer_id}", response_model=CustomerRead, summary="Get customer")
async def get_customer(
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CustomerRead:
    return CustomerRead.model_validate(await CustomerService(session).get(customer_id))


# PUBLIC_INTERFACE
@router.patch("/{customer_id}", response_model=CustomerRead, summary="Update customer")
async def update_customer(
    payload: CustomerUpdate,
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CustomerRead:
    customer = await CustomerService(session).update(customer_id, payload.model_dump(exclude_unset=True))
    return CustomerRead.model_validate(customer)


# PUBLIC_INTERFACE
@router.delete(
    "/{customer_id}",
    response_model=MessageResponse,
    summary="Delete customer",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def delete_customer(
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await CustomerService(session).delete(customer_id)
    return MessageResponse(message="Customer deleted")


# PUBLIC_INTERFACE
@router.post(
    "/{customer_id}/blacklist",
    response_model=CustomerRead,
    summary="Blacklist customer",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def blacklist_customer(
    payload: BlacklistRequest,
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CustomerRead:
    customer = await CustomerService(session).set_blacklisted(customer_id, True, payload.reason)
    return CustomerRead.model_validate(customer)


# PUBLIC_INTERFACE
@router.post(
    "/{customer_id}/unblacklist",
    response_model=CustomerRead,
    summary="Remove customer from blacklist",
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)
async def unblacklist_customer(
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> CustomerRead:
    customer = await CustomerService(session).set_blacklisted(customer_id, False)
    return CustomerRead.model_validate(customer)


# Identifications


# PUBLIC_INTERFACE
@router.get(
    "/{customer_id}/identifications",
    response_model=List[IdentificationRead],
    summary="List identifications",
    description="Primary first; each entry reports whether it has expired.",
)
async def list_identifications(
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[IdentificationRead]:
    await CustomerService(session).get(customer_id)
    items = await IdentificationRepository(session).list_for_customer(customer_id)
    return [IdentificationRead.model_validate(i) for i in items]


# PUBLIC_INTERFACE
@router.post(
    "/{customer_id}/identifications",
    response_model=IdentificationRead,
    status_code=201,
    summary="Add identification",
)
async def create_identification(
    payload: IdentificationCreate,
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> IdentificationRead:
    identification = await CustomerService(session).create_identification(customer_id, payload.model_dump())
    return IdentificationRead.model_validate(identification)


# PUBLIC_INTERFACE
@router.patch(
    "/{customer_id}/identifications/{identification_id}",
    response_model=IdentificationRead,
    summary="Update identification",
)
async def update_identification(
    payload: IdentificationUpdate,
    customer_id: UUID = Path(..., description="Customer ID"),
    identification_id: UUID = Path(..., description="Identification ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> IdentificationRead:
    identification = await CustomerService(session).update_identification(
        customer_id, identification_id, payload.model_dump(exclude_unset=True)
    )
    return IdentificationRead.model_validate(identification)


# PUBLIC_INTERFACE
@router.delete(
    "/{customer_id}/identifications/{identification_id}",
    response_model=MessageResponse,
    summary="Delete identification",
)
async def delete_identification(
    customer_id: UUID = Path(..., description="Customer ID"),
    identification_id: UUID = Path(..., description="Identification ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await CustomerService(session).delete_identification(customer_id, identification_id)
    return MessageResponse(message="Identification deleted")


# PUBLIC_INTERFACE
@router.post(
    "/{customer_id}/identifications/{identification_id}/verify",
    response_model=IdentificationRead,
    summary="Verify identification",
    description="Mark the document verified with the current user as reviewer.",
)
async def verify_identification(
    customer_id: UUID = Path(..., description="Customer ID"),
    identification_id: UUID = Path(..., description="Identification ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> IdentificationRead:
    identification = await CustomerService(session).verify_identification(customer_id, identification_id, user.id)
    return IdentificationRead.model_validate(identification)


# PUBLIC_INTERFACE
@router.post(
    "/{customer_id}/identifications/{identification_id}/primary",
    response_model=IdentificationRead,
    summary="Set primary identification",
)
async def set_primary_identification(
    customer_id: UUID = Path(..., description="Customer ID"),
    identification_id: UUID = Path(..., description="Identification ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> IdentificationRead:
    identification = await CustomerService(session).set_primary_identification(customer_id, identification_id)
    return IdentificationRead.model_validate(identification)


# Addresses


# PUBLIC_INTERFACE
@router.get("/{customer_id}/addresses", response_model=List[AddressRead], summary="List addresses")
async def list_addresses(
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[AddressRead]:
    items = await CustomerService(session).list_addresses(customer_id)
    return [AddressRead.model_validate(a) for a in items]


# PUBLIC_INTERFACE
@router.post("/{customer_id}/addresses", response_model=AddressRead, status_code=201, summary="Add address")
async def create_address(
    payload: AddressCreate,
    customer_id: UUID = Path(..., description="Customer ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> AddressRead:
    address = await CustomerService(session).create_address(customer_id, payload.model_dump())
    return AddressRead.model_validate(address)


# PUBLIC_INTERFACE
@router.patch("/{customer_id}/addresses/{address_id}", response_model=AddressRead, summary="Update address")
async def update_address(
    payload: AddressUpdate,
    customer_id: UUID = Path(..., description="Customer ID"),
    address_id: UUID = Path(..., description="Address ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> AddressRead:
    address = await CustomerService(session).update_address(
        customer_id, address_id, payload.model_dump(exclude_unset=True)
    )
    return AddressRead.model_validate(address)


# PUBLIC_INTERFACE
@router.delete("/{customer_id}/addresses/{address_id}", response_model=MessageResponse, summary="Delete address")
async def delete_address(
    customer_id: UUID = Path(..., description="Customer ID"),
    address_id: UUID = Path(..., description="Address ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MessageResponse:
    await CustomerService(session).delete_address(customer_id, address_id)
    return MessageResponse(message="Address deleted")


# PUBLIC_INTERFACE
@router.post(
    "/{customer_id}/addresses/{address_id}/primary",
    response_model=AddressRead,
    summary="Set primary address",
)
async def set_primary_address(
    customer_id: UUID = Path(..., description="Customer ID"),
    address_id: UUID = Path(..., description="Address ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> AddressRead:
    address = await CustomerService(session).set_primary_address(customer_id, address_id)
    return AddressRead.model_validate(address)
