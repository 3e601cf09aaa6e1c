import logging
import time
from pathlib import Path
from typing import Annotated, Optional

import jwt
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud, models, qr, schemas
from .auth import create_access_token, decode_access_token, parse_bearer
from .config import get_settings
from .db import Base, SessionLocal, engine
from .errors import Forbidden, NotFound, TipMeError, Unauthorized
from .payments import PaymentCapture, get_payment_capture

logger = logging.getLogger(__name__)

# Create tables if not existing. There is no migration tooling.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Tip Me API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


# -------------------- Errors --------------------

def flatten_validation_errors(errors) -> dict:
    """Group pydantic errors by wire field name: ``{formErrors: [...], fieldErrors: {field: [...]}}``."""
    form_errors = []
    field_errors = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        if not loc or err.get("type") == "json_invalid":
            form_errors.append(err.get("msg", "Invalid request"))
            continue
        field_errors.setdefault(".".join(loc), []).append(err.get("msg", "Invalid value"))
    return {"formErrors": form_errors, "fieldErrors": field_errors}


@app.exception_handler(TipMeError)
async def tipme_error_handler(request: Request, exc: TipMeError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": flatten_validation_errors(exc.errors())})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    if request.url.path == "/health":
        return await call_next(request)
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, duration_ms)
    return response


# -------------------- Dependencies --------------------

# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _resolve_user(db: Session, authorization: Optional[str]) -> schemas.UserPublic:
    try:
        token = parse_bearer(authorization)
    except ValueError as e:
        raise Unauthorized(str(e))
    try:
        claims = decode_access_token(token)
    except jwt.PyJWTError:
        raise Unauthorized("Invalid token")
    user = crud.get_user(db, claims["sub"])
    if not user:
        raise Unauthorized("Invalid token")
    return schemas.UserPublic.model_validate(user)


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> schemas.UserPublic:
    return _resolve_user(db, authorization)


def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Optional[schemas.UserPublic]:
    """Like ``get_current_user`` but anonymous (None) when the token is absent or unusable."""
    if authorization is None:
        return None
    try:
        return _resolve_user(db, authorization)
    except Unauthorized:
        return None


CurrentUser = Annotated[schemas.UserPublic, Depends(get_current_user)]
OptionalUser = Annotated[Optional[schemas.UserPublic], Depends(get_optional_user)]


def require_admin(user: CurrentUser) -> schemas.UserPublic:
    if user.role != models.Role.ADMIN:
        raise Forbidden("Admin only")
    return user


# -------------------- Public --------------------

@app.get("/health", response_model=schemas.HealthResponse)
async def health():
    return {"ok": True}


@app.post("/auth/register", response_model=schemas.AuthResponse, status_code=201)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    user = crud.create_user(db, payload, allow_admin=get_settings().allow_admin_signup)
    return {"token": create_access_token(user.id), "user": user}


@app.post("/auth/login", response_model=schemas.AuthResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.authenticate_user(db, payload.email, payload.password)
    if not user:
        raise Unauthorized("Invalid credentials")
    return {"token": create_access_token(user.id), "user": user}


@app.get("/auth/me", response_model=schemas.UserEnvelope)
def auth_me(user: CurrentUser):
    return {"user": user}


@app.get("/users/me", response_model=schemas.UserEnvelope)
def users_me(user: CurrentUser):
    return {"user": user}


@app.post("/tips", response_model=schemas.TipEnvelope, status_code=201)
def create_tip(
    payload: schemas.TipCreate,
    sender: OptionalUser,
    db: Session = Depends(get_db),
    capture: PaymentCapture = Depends(get_payment_capture),
):
    tip = crud.create_tip(
        db,
        payload,
        fee_bps=get_settings().service_fee_bps,
        capture=capture,
        from_user_id=sender.id if sender else None,
    )
    return {"tip": tip}


@app.get("/tips/incoming", response_model=schemas.TipList)
def incoming_tips(user: CurrentUser, db: Session = Depends(get_db)):
    return {"tips": crud.list_incoming_tips(db, user.id)}


@app.get("/tips/outgoing", response_model=schemas.TipList)
def outgoing_tips(user: CurrentUser, db: Session = Depends(get_db)):
    return {"tips": crud.list_outgoing_tips(db, user.id)}


@app.get("/qr/{handle}", response_class=Response)
def qr_for_handle(handle: str, db: Session = Depends(get_db)):
    user = crud.require_user_by_handle(db, handle)
    png = qr.render_png(qr.tip_link(get_settings().base_url, user.handle))
    return Response(content=png, media_type="image/png")


@app.get("/portal/{handle}", response_class=HTMLResponse)
def tip_portal(request: Request, handle: str, db: Session = Depends(get_db)):
    try:
        user = crud.require_user_by_handle(db, handle)
    except NotFound:
        return PlainTextResponse("User not found", status_code=404)
    return templates.TemplateResponse(
        request,
        "portal.html",
        {"name": user.name, "handle": user.handle, "max_message_length": schemas.MAX_MESSAGE_LENGTH},
    )


# -------------------- Payouts --------------------

@app.post("/payouts/request", response_model=schemas.PayoutEnvelope, status_code=201)
def request_payout(payload: schemas.PayoutCreate, user: CurrentUser, db: Session = Depends(get_db)):
    return {"payout": crud.create_payout(db, user.id, payload)}


@app.get("/payouts", response_model=schemas.PayoutList)
def my_payouts(user: CurrentUser, db: Session = Depends(get_db)):
    return {"payouts": crud.list_payouts_for_user(db, user.id)}


# -------------------- Admin --------------------

admin = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@admin.get("/users", response_model=schemas.UserList)
def admin_list_users(db: Session = Depends(get_db)):
    return {"users": crud.list_users(db)}


@admin.patch("/users/{user_id}/role", response_model=schemas.UserEnvelope)
def admin_update_role(user_id: str, payload: schemas.RoleUpdate, db: Session = Depends(get_db)):
    return {"user": crud.update_user_role(db, user_id, payload.role)}


@admin.get("/tips", response_model=schemas.AdminTipList)
def admin_list_tips(status: Optional[models.TipStatus] = Query(default=None), db: Session = Depends(get_db)):
    return {"tips": crud.list_tips(db, status=status)}


@admin.patch("/tips/{tip_id}/status", response_model=schemas.TipEnvelope)
def admin_update_tip_status(tip_id: str, payload: schemas.TipStatusUpdate, db: Session = Depends(get_db)):
    return {"tip": crud.set_tip_status(db, tip_id, payload.status)}


@admin.get("/payouts", response_model=schemas.AdminPayoutList)
def admin_list_payouts(db: Session = Depends(get_db)):
    return {"payouts": crud.list_payouts(db)}


@admin.patch("/payouts/{payout_id}/status", response_model=schemas.PayoutEnvelope)
def admin_update_payout_status(payout_id: str, payload: schemas.PayoutStatusUpdate, db: Session = Depends(get_db)):
    return {"payout": crud.set_payout_status(db, payout_id, payload.status)}


app.include_router(admin)
