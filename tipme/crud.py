import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .auth import hash_password, verify_password
from .errors import Conflict, NotFound, ValidationFailed
from .payments import PaymentCapture

logger = logging.getLogger(__name__)


# Business rule: fee is floored, the recipient keeps the remainder

def split_fee(amount_cents: int, fee_bps: int) -> Tuple[int, int]:
    """Return ``(fee_cents, net_cents)`` for a gross amount at ``fee_bps`` basis points."""
    fee_cents = amount_cents * fee_bps // 10000
    return fee_cents, amount_cents - fee_cents


# -------------------- Users --------------------

def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def get_user_by_handle(db: Session, handle: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.handle == handle).first()


def require_user_by_handle(db: Session, handle: str) -> models.User:
    user = get_user_by_handle(db, handle)
    if not user:
        raise NotFound("User not found")
    return user


def create_user(db: Session, data: schemas.RegisterRequest, allow_admin: bool = False) -> models.User:
    if data.role == models.Role.ADMIN and not allow_admin:
        raise ValidationFailed("role", "ADMIN cannot be self-selected at registration")
    if get_user_by_email(db, data.email):
        raise Conflict("Email already in use")
    if get_user_by_handle(db, data.handle):
        raise Conflict("Handle already taken")

    db_user = models.User(
        email=data.email,
        password_hash=hash_password(data.password),
        name=data.name,
        role=data.role,
        handle=data.handle,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        # a concurrent registration won the unique email/handle race
        db.rollback()
        raise Conflict("Email or handle already in use") from e
    db.refresh(db_user)
    logger.info("registered user %s handle=%s role=%s", db_user.id, db_user.handle, db_user.role.value)
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    """Return the user for valid credentials, else None (unknown email and bad password look the same)."""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.created_at.desc()).all()


def update_user_role(db: Session, user_id: str, role: models.Role) -> models.User:
    user = get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    user.role = role
    db.commit()
    db.refresh(user)
    logger.info("user %s role set to %s", user.id, role.value)
    return user


# -------------------- Tips --------------------

def create_tip(
    db: Session,
    data: schemas.TipCreate,
    fee_bps: int,
    capture: PaymentCapture,
    from_user_id: Optional[str] = None,
) -> models.Tip:
    to_user = require_user_by_handle(db, data.to_handle)
    fee_cents, net_cents = split_fee(data.amount_cents, fee_bps)

    tip = models.Tip(
        to_user_id=to_user.id,
        from_user_id=from_user_id,
        amount_cents=data.amount_cents,
        fee_cents=fee_cents,
        net_cents=net_cents,
        message=data.message,
        from_email=data.from_email,
        status=models.TipStatus.PENDING,
    )
    db.add(tip)
    db.commit()
    db.refresh(tip)

    tip.status = capture.capture(tip)
    db.commit()
    db.refresh(tip)
    logger.info(
        "tip %s to %s: amount=%d fee=%d net=%d status=%s",
        tip.id, to_user.handle, tip.amount_cents, tip.fee_cents, tip.net_cents, tip.status.value,
    )
    return tip


def list_incoming_tips(db: Session, user_id: str) -> List[models.Tip]:
    return (
        db.query(models.Tip)
        .filter(models.Tip.to_user_id == user_id)
        .order_by(models.Tip.created_at.desc())
        .all()
    )


def list_outgoing_tips(db: Session, user_id: str) -> List[models.Tip]:
    return (
        db.query(models.Tip)
        .filter(models.Tip.from_user_id == user_id)
        .order_by(models.Tip.created_at.desc())
        .all()
    )


def list_tips(db: Session, status: Optional[models.TipStatus] = None) -> List[models.Tip]:
    q = db.query(models.Tip).options(joinedload(models.Tip.to_user), joinedload(models.Tip.from_user))
    if status is not None:
        q = q.filter(models.Tip.status == status)
    return q.order_by(models.Tip.created_at.desc()).all()


def set_tip_status(db: Session, tip_id: str, status: models.TipStatus) -> models.Tip:
    tip = db.get(models.Tip, tip_id)
    if not tip:
        raise NotFound("Tip not found")
    previous = tip.status
    tip.status = status
    db.commit()
    db.refresh(tip)
    logger.info("tip %s status %s -> %s", tip.id, previous.value, status.value)
    return tip


# -------------------- Payouts --------------------

def create_payout(db: Session, user_id: str, data: schemas.PayoutCreate) -> models.Payout:
    # no balance check: payouts are not reconciled against received tips
    payout = models.Payout(user_id=user_id, amount_cents=data.amount_cents, status=models.PayoutStatus.REQUESTED)
    db.add(payout)
    db.commit()
    db.refresh(payout)
    logger.info("payout %s requested by %s: amount=%d", payout.id, user_id, payout.amount_cents)
    return payout


def list_payouts_for_user(db: Session, user_id: str) -> List[models.Payout]:
    return (
        db.query(models.Payout)
        .filter(models.Payout.user_id == user_id)
        .order_by(models.Payout.created_at.desc())
        .all()
    )


def list_payouts(db: Session) -> List[models.Payout]:
    return (
        db.query(models.Payout)
        .options(joinedload(models.Payout.user))
        .order_by(models.Payout.created_at.desc())
        .all()
    )


def set_payout_status(db: Session, payout_id: str, status: models.PayoutStatus) -> models.Payout:
    payout = db.get(models.Payout, payout_id)
    if not payout:
        raise NotFound("Payout not found")
    previous = payout.status
    payout.status = status
    db.commit()
    db.refresh(payout)
    logger.info("payout %s status %s -> %s", payout.id, previous.value, status.value)
    return payout
