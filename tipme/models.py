import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .db import Base


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    BARISTA = "BARISTA"
    ADMIN = "ADMIN"


class TipStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PayoutStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    # cleaned text is stored entity-escaped, so it can outgrow the input limit
    name = Column(Text, nullable=False)
    role = Column(Enum(Role, native_enum=False, length=16), nullable=False, default=Role.CUSTOMER, index=True)
    # public tipping target, see HANDLE_PATTERN in schemas
    handle = Column(String(32), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    tips_received = relationship("Tip", back_populates="to_user", foreign_keys="Tip.to_user_id")
    tips_sent = relationship("Tip", back_populates="from_user", foreign_keys="Tip.from_user_id")
    payouts = relationship("Payout", back_populates="user")


class Tip(Base):
    __tablename__ = "tips"

    id = Column(String(36), primary_key=True, default=_new_id)
    to_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    # nullable: anonymous tippers are allowed
    from_user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    amount_cents = Column(Integer, nullable=False)
    fee_cents = Column(Integer, nullable=False)
    net_cents = Column(Integer, nullable=False)
    message = Column(Text, nullable=True)
    from_email = Column(String(320), nullable=True)
    status = Column(Enum(TipStatus, native_enum=False, length=16), nullable=False, default=TipStatus.PENDING, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    to_user = relationship("User", back_populates="tips_received", foreign_keys=[to_user_id])
    from_user = relationship("User", back_populates="tips_sent", foreign_keys=[from_user_id])


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(Enum(PayoutStatus, native_enum=False, length=16), nullable=False, default=PayoutStatus.REQUESTED, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    user = relationship("User", back_populates="payouts")
