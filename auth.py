import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AdminSession(BaseModel):
    admin_id: str
    username: str
    role: str


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_admin_token() -> str:
    return create_access_token({"sub": settings.ADMIN_USERNAME, "admin_id": settings.ADMIN_ID, "role": "admin"})


def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def require_admin(request: Request) -> AdminSession:
    """Dependency gating admin-only endpoints on a valid admin session."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = _token_from_request(request)
    if not token:
        raise unauthorized
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected admin token: %s", e)
        raise unauthorized
    if payload.get("role") != "admin" or not payload.get("sub"):
        raise unauthorized
    return AdminSession(admin_id=payload.get("admin_id") or payload["sub"], username=payload["sub"], role="admin")


@router.post("/login")
def login(response: Response, form_data: OAuth2PasswordRequestForm = Depends()):
    """Check the admin credentials and start a cookie session."""
    if form_data.username != settings.ADMIN_USERNAME or not verify_password(
        form_data.password, settings.ADMIN_PASSWORD_HASH
    ):
        logger.warning("Failed admin login for %r", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = create_admin_token()
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
        max_age=settings.JWT_EXPIRY_MINUTES * 60,
    )
    logger.info("Admin %s logged in", form_data.username)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/session", response_model=AdminSession)
def read_session(admin: AdminSession = Depends(require_admin)):
    return admin


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"ok": True}
