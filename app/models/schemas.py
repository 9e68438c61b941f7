from __future__ import annotations

from datetime import date as date_type
from datetime import datetime
from datetime import time as time_type
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

RaffleStatus = Literal["active", "closed", "finalized"]
TicketStatus = Literal["free", "sold"]
RoleName = Literal["admin", "super_admin"]


class HealthResponse(BaseModel):
    status: str
    time: datetime


class MigrationRunResponse(BaseModel):
    status: str
    applied_at: datetime


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class UserOut(BaseModel):
    id: str
    email: EmailStr
    created_at: datetime


class IdentityOut(BaseModel):
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[RoleName] = None
    must_change_password: bool = False
    state: str
    is_admin: bool
    is_super_admin: bool


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    identity: IdentityOut


class PasswordChange(BaseModel):
    password: str = Field(..., max_length=128)
    confirm_password: str = Field(..., max_length=128)


class StatusResponse(BaseModel):
    status: str


class RaffleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    ticket_count: int = Field(..., gt=0, le=100000)
    description: str = Field(..., min_length=1, max_length=2000)
    date: date_type
    time: time_type
    status: RaffleStatus = "active"


class RaffleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    ticket_count: Optional[int] = Field(None, gt=0)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    date: Optional[date_type] = None
    time: Optional[time_type] = None
    status: Optional[RaffleStatus] = None


class RaffleOut(BaseModel):
    id: str
    name: str
    price: Decimal
    ticket_count: int
    description: str
    date: date_type
    time: time_type
    status: RaffleStatus
    winner_number: Optional[int]
    tickets_sold: int
    tickets_available: int
    sold_percentage: float
    created_at: datetime
    updated_at: datetime


class RaffleDeleted(BaseModel):
    status: str
    raffle_id: str


class GridTicket(BaseModel):
    id: str
    number: int
    status: TicketStatus


class TicketGridResponse(BaseModel):
    raffle_id: str
    counts: dict[str, int]
    tickets: list[GridTicket]


class TicketOut(BaseModel):
    id: str
    raffle_id: str
    number: int
    status: TicketStatus
    buyer_name: Optional[str]
    buyer_email: Optional[str]
    buyer_phone: Optional[str]
    purchase_time: Optional[datetime]


class PurchaseRequest(BaseModel):
    number: Optional[int] = None
    name: str = Field("", max_length=120)
    email: str = Field("", max_length=254)
    phone: str = Field("", max_length=32)


class PurchaseResponse(BaseModel):
    raffle_id: str
    ticket_id: str
    number: int
    buyer_name: str
    buyer_email: str
    buyer_phone: str
    purchase_time: datetime
    price: Decimal


class DrawResponse(BaseModel):
    raffle_id: str
    winning_number: int
    status: RaffleStatus


class AdminCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class RoleAssign(BaseModel):
    role: RoleName


class RoleOut(BaseModel):
    user_id: str
    role: RoleName
    must_change_password: bool
    protected: bool


class UserRoleOut(BaseModel):
    user_id: str
    email: str
    role: Optional[RoleName]
    must_change_password: bool
    protected: bool
    created_at: datetime


class RoleRevoked(BaseModel):
    status: str
    user_id: str
