from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
import secrets

from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from .config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer credentials extractor used by the auth dependencies
security = HTTPBearer()

ACCESS = "access"
REFRESH = "refresh"


class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenPayload(BaseModel):
    sub: Optional[int] = None
    email: Optional[str] = None
    role: Optional[str] = None
    exp: Optional[int] = None
    token_type: Optional[str] = None
    jti: Optional[str] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def generate_password_reset_token() -> str:
    return secrets.token_urlsafe(32)


def create_token(claims: dict, token_type: str, lifetime: timedelta) -> str:
    """Sign ``claims`` as a JWT of the given type.

    Every token carries a random ``jti`` so two tokens minted for the same
    user within one second are still distinct.
    """
    payload = dict(claims)
    payload.update({
        "exp": datetime.utcnow() + lifetime,
        "token_type": token_type,
        "jti": secrets.token_hex(8),
    })
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[TokenPayload]:
    """Decode a JWT, returning None when the signature or expiry is invalid."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    return TokenPayload(**payload)


def create_token_pair(user_id: int, email: str, role: UserRole) -> Token:
    # python-jose rejects a non-string subject
    claims = {"sub": str(user_id), "email": email, "role": UserRole(role).value}
    access_lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    return Token(
        access_token=create_token(claims, ACCESS, access_lifetime),
        refresh_token=create_token(
            claims, REFRESH, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        ),
        expires_in=int(access_lifetime.total_seconds())
    )


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )
