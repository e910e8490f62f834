"""Request bodies. JSON keys are camelCase to match the dashboard client."""
import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl
from pydantic.alias_generators import to_camel

ProjectedFtds = Literal["0-50", "51-100", "101-500", "500+"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------------

class LoginRequest(CamelModel):
    email: str
    password: str


class RegisterRequest(CamelModel):
    name: str = Field(min_length=2)
    email: EmailStr
    password: str = Field(min_length=6)
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    projected_ftds: Optional[ProjectedFtds] = None


# ----------------------------------------------------------------------------
# Admin: users
# ----------------------------------------------------------------------------

class CreateUserRequest(RegisterRequest):
    cpa_amount: Decimal = Field(Decimal("0"), ge=0)
    parent_id: Optional[UUID] = None


class UpdateUserRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=2)
    email: Optional[EmailStr] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    projected_ftds: Optional[ProjectedFtds] = None
    cpa_amount: Optional[Decimal] = Field(None, ge=0)
    parent_id: Optional[UUID] = None


class UpdateStatusRequest(CamelModel):
    status: Literal["ACTIVE", "REJECTED", "BANNED"]


class UpdateCpaRequest(CamelModel):
    cpa_amount: Decimal = Field(ge=0)


class UpdatePasswordRequest(CamelModel):
    password: str = Field(min_length=6)


# ----------------------------------------------------------------------------
# Admin: metrics
# ----------------------------------------------------------------------------

class CreateMetricRequest(CamelModel):
    user_id: UUID
    campaign_id: int = Field(gt=0)
    date: datetime.date
    clicks: int = Field(0, ge=0)
    registrations: int = Field(0, ge=0)
    ftds: int = Field(0, ge=0)
    qualified_cpa: int = Field(0, ge=0)
    deposit_amount: Decimal = Field(Decimal("0"), ge=0)
    commission_cpa: Decimal = Field(Decimal("0"), ge=0)
    commission_rev: Decimal = Field(Decimal("0"), ge=0)


class UpdateMetricRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    date: Optional[datetime.date] = None
    clicks: Optional[int] = Field(None, ge=0)
    registrations: Optional[int] = Field(None, ge=0)
    ftds: Optional[int] = Field(None, ge=0)
    qualified_cpa: Optional[int] = Field(None, ge=0)
    deposit_amount: Optional[Decimal] = Field(None, ge=0)
    commission_cpa: Optional[Decimal] = Field(None, ge=0)
    commission_rev: Optional[Decimal] = Field(None, ge=0)


class BulkMetricUpdate(CamelModel):
    id: int
    data: UpdateMetricRequest


class BulkUpdateRequest(CamelModel):
    updates: List[BulkMetricUpdate] = Field(min_length=1)


# ----------------------------------------------------------------------------
# Admin: links & campaigns
# ----------------------------------------------------------------------------

class CreateLinkRequest(CamelModel):
    user_id: UUID
    campaign_id: int = Field(gt=0)
    platform_url: HttpUrl


class CreateCampaignRequest(CamelModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
