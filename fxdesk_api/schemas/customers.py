from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, computed_field

IdentificationType = Literal["PASSPORT", "DRIVING_LICENSE", "NATIONAL_ID", "RESIDENCY_CARD"]


class CustomerRead(BaseModel):
    """Read model for a KYC customer."""
    id: UUID = Field(..., description="Customer ID")
    title: Optional[str] = None
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    dob: Optional[date] = Field(None, description="Date of birth")
    occupation: Optional[str] = None
    employer: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[str] = None
    active: bool
    blacklisted: bool
    blacklist_reason: Optional[str] = None
    risk_score: Optional[int] = None
    primary_address_id: Optional[UUID] = None
    primary_identification_id: Optional[UUID] = None
    last_order_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerCreate(BaseModel):
    title: Optional[str] = None
    first_name: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1)
    dob: Optional[date] = None
    occupation: Optional[str] = None
    employer: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[EmailStr] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)


class CustomerUpdate(BaseModel):
    title: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[date] = None
    occupation: Optional[str] = None
    employer: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[EmailStr] = None
    active: Optional[bool] = None
    risk_score: Optional[int] = Field(None, ge=0, le=100)


class BlacklistRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Why the customer is blacklisted")


class IdentificationRead(BaseModel):
    """Identity document; `is_expired` is true once the expiry date has passed."""
    id: UUID
    customer_id: UUID
    address_id: Optional[UUID] = None
    type_of: str
    reference_number: str
    issuing_country_code: Optional[str] = None
    issuing_country_name: Optional[str] = None
    issuing_state_code: Optional[str] = None
    issuing_state_name: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    date_of_birth: Optional[date] = None
    origin_of_funds: Optional[str] = None
    purpose_of_funds: Optional[str] = None
    verified: bool
    verified_at: Optional[datetime] = None
    reviewer_id: Optional[UUID] = None
    primary: bool
    created_at: datetime

    @computed_field  # type: ignore[misc]
    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < date.today()

    class Config:
        from_attributes = True


class IdentificationCreate(BaseModel):
    type_of: IdentificationType
    reference_number: str = Field(..., min_length=1)
    address_id: Optional[UUID] = None
    issuing_country_code: Optional[str] = None
    issuing_country_name: Optional[str] = None
    issuing_state_code: Optional[str] = None
    issuing_state_name: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    date_of_birth: Optional[date] = None
    origin_of_funds: Optional[str] = None
    purpose_of_funds: Optional[str] = None
    primary: bool = False


class IdentificationUpdate(BaseModel):
    type_of: Optional[IdentificationType] = None
    reference_number: Optional[str] = None
    address_id: Optional[UUID] = None
    issuing_country_code: Optional[str] = None
    issuing_country_name: Optional[str] = None
    issuing_state_code: Optional[str] = None
    issuing_state_name: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    date_of_birth: Optional[date] = None
    origin_of_funds: Optional[str] = None
    purpose_of_funds: Optional[str] = None


class AddressRead(BaseModel):
    id: UUID
    parent_type: str
    parent_id: UUID
    address_type: Optional[str] = None
    line1: str
    line2: Optional[str] = None
    line3: Optional[str] = None
    city: Optional[str] = None
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    primary: bool
    verified: bool
    confidential: bool
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class AddressCreate(BaseModel):
    address_type: Optional[str] = None
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    line3: Optional[str] = None
    city: Optional[str] = None
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    primary: bool = False
    confidential: bool = False
    notes: Optional[str] = None


class AddressUpdate(BaseModel):
    address_type: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    line3: Optional[str] = None
    city: Optional[str] = None
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    verified: Optional[bool] = None
    confidential: Optional[bool] = None
    notes: Optional[str] = None
