import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from jose import jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from quizdesk.core.config import settings
from quizdesk.core.rate_limit import rate_limit
from quizdesk.core.security import get_current_user
from quizdesk.db.session import get_db
from quizdesk.models.user import User, UserRole

router = APIRouter(prefix="/auth", tags=["auth"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None


class MeResponse(BaseModel):
    id: str
    name: str
    role: str
    class_name: str | None


class RegisterRequest(BaseModel):
    name: str
    class_name: str | None = None
    role: UserRole = UserRole.student
    password: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _create_access_token(*, user_id: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_access_token_minutes)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": expire,
        "iss": str(settings.jwt_issuer),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _me(user: User) -> MeResponse:
    return MeResponse(id=str(user.id), name=user.name, role=user.role.value, class_name=user.class_name)


@router.post("/token", response_model=TokenResponse)
def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_token", limit=10, window_seconds=60),
):
    user = db.scalar(select(User).where(User.name == form.username))
    if user is None or not _verify_password(form.password, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid credentials")

    token = _create_access_token(user_id=str(user.id), role=user.role.value)
    return TokenResponse(access_token=token, expires_in=int(settings.jwt_access_token_minutes) * 60)


@router.post("/register", response_model=MeResponse)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    if not settings.allow_public_register:
        raise HTTPException(status_code=403, detail="registration disabled")
    if len(body.password or "") < int(settings.password_min_length):
        raise HTTPException(status_code=400, detail="password too short")

    existing = db.scalar(select(User).where(User.name == body.name))
    if existing is not None:
        raise HTTPException(status_code=409, detail="user already exists")

    user = User(
        name=body.name,
        role=body.role,
        class_name=body.class_name,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return _me(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return _me(user)
