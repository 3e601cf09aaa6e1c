"""Request and response schemas.

Wire names are camelCase (``amountCents``, ``toHandle``); Python attributes
stay snake_case. Both spellings are accepted on input.
"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator

from .models import PayoutStatus, Role, TipStatus
from .utils import clean_text

HANDLE_PATTERN = r"^[A-Za-z0-9_-]{3,32}$"
MAX_TIP_CENTS = 1_000_000
MAX_PAYOUT_CENTS = 10_000_000
MAX_MESSAGE_LENGTH = 280

TipCents = Annotated[int, Field(strict=True, gt=0, le=MAX_TIP_CENTS)]
PayoutCents = Annotated[int, Field(strict=True, gt=0, le=MAX_PAYOUT_CENTS)]


def _to_camel(name: str) -> str:
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True, from_attributes=True)

    @field_serializer("created_at", check_fields=False)
    def utc_timestamp(self, value: datetime) -> str:
        # SQLite hands back naive datetimes; every stored value is UTC
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()


# -------------------- Requests --------------------

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.CUSTOMER
    handle: str = Field(..., pattern=HANDLE_PATTERN)

    @field_validator("password")
    def fits_bcrypt(cls, v: str):
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes")
        return v

    @field_validator("name")
    def strip_markup(cls, v: str):
        v = clean_text(v)
        if not v:
            raise ValueError("name must not be empty")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class TipCreate(CamelModel):
    to_handle: str = Field(..., min_length=1)
    amount_cents: TipCents
    message: Optional[str] = Field(default=None, max_length=MAX_MESSAGE_LENGTH)
    from_email: Optional[EmailStr] = None

    @field_validator("message")
    def strip_markup(cls, v: Optional[str]):
        if v is None:
            return None
        return clean_text(v) or None


class PayoutCreate(CamelModel):
    amount_cents: PayoutCents


class TipStatusUpdate(CamelModel):
    status: TipStatus


class PayoutStatusUpdate(CamelModel):
    status: PayoutStatus


class RoleUpdate(CamelModel):
    role: Role


# -------------------- Projections --------------------

class UserPublic(CamelModel):
    id: str
    email: str
    name: str
    role: Role
    handle: str


class AdminUserRead(UserPublic):
    created_at: datetime


class UserSummary(CamelModel):
    id: str
    email: str
    name: str
    handle: str


class TipRead(CamelModel):
    id: str
    to_user_id: str
    from_user_id: Optional[str] = None
    amount_cents: int
    fee_cents: int
    net_cents: int
    message: Optional[str] = None
    from_email: Optional[str] = None
    status: TipStatus
    created_at: datetime


class AdminTipRead(TipRead):
    to_user: UserSummary
    from_user: Optional[UserSummary] = None


class PayoutRead(CamelModel):
    id: str
    user_id: str
    amount_cents: int
    status: PayoutStatus
    created_at: datetime


class AdminPayoutRead(PayoutRead):
    user: UserSummary


# -------------------- Envelopes --------------------

class HealthResponse(BaseModel):
    ok: bool = True


class AuthResponse(CamelModel):
    token: str
    user: UserPublic


class UserEnvelope(CamelModel):
    user: UserPublic


class UserList(CamelModel):
    users: List[AdminUserRead]


class TipEnvelope(CamelModel):
    tip: TipRead


class TipList(CamelModel):
    tips: List[TipRead]


class AdminTipList(CamelModel):
    tips: List[AdminTipRead]


class PayoutEnvelope(CamelModel):
    payout: PayoutRead


class PayoutList(CamelModel):
    payouts: List[PayoutRead]


class AdminPayoutList(CamelModel):
    payouts: List[AdminPayoutRead]
