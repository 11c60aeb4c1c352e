# tutor/auth/auth_utils.py
from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from tutor.config import Settings
from tutor.dependencies import get_app_settings

ALGORITHM = "HS256"
TOKEN_COOKIE = "token"

# bcrypt cost factor is fixed for every stored hash
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

# Bearer token in the Authorization header; the cookie is the fallback
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    """Hashes a plain text password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verifies a plain text password against a hashed password (constant time)."""
    return pwd_context.verify(plain_password, hashed)


def dummy_verify() -> None:
    """Spends the same time as a real verify, for lookups that found no user."""
    pwd_context.dummy_verify()


def create_access_token(user_id: str, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a JWT access token.
    user_id: stored in the "sub" claim; the token carries nothing else about the user.
    expires_delta: Optional timedelta for token expiration.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.access_token_expire_days))
    to_encode = {"sub": user_id, "iat": now, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str, settings: Settings) -> Optional[dict]:
    """Decodes a JWT token. Returns payload or None if decoding fails."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except JWTError:
        return None


async def get_current_user_id(
    bearer: Optional[str] = Depends(oauth2_scheme),
    token: Optional[str] = Cookie(None),
    settings: Settings = Depends(get_app_settings),
) -> str:
    """
    Dependency returning the authenticated user ID from the bearer token or cookie.
    Raises HTTPException if the token is missing, invalid or expired.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    raw = bearer or token
    if not raw:
        raise credentials_exception

    payload = decode_token(raw, settings)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise credentials_exception
    return user_id
