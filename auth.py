from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from fastapi import Depends
from fastapi.security import HTTPBearer
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os

from database import get_db
from errors import InvalidCredentials, Unauthenticated
import users

SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_PASSWORD = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Swagger accepts the raw token, no "Bearer" prefix needed
auth_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


def hash_password(password: str):
    return pwd_context.hash(password[:BCRYPT_MAX_PASSWORD])


def verify_password(plain_password, hashed_password):
    try:
        return pwd_context.verify(plain_password[:BCRYPT_MAX_PASSWORD], hashed_password)
    except ValueError:
        # placeholder hashes (seed data) are not valid bcrypt strings
        return False


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def authenticate(db: Session, email: str, password: str):
    user = users.get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed sign-in for %s", email)
        raise InvalidCredentials()
    return user


def get_current_user_id(credentials=Depends(auth_scheme), db: Session = Depends(get_db)) -> Optional[str]:
    """Resolve the bearer token to a user id, or None for anonymous callers.

    Never raises: handlers decide whether a session is required.
    """
    if credentials is None:
        return None

    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        return None

    user = users.get_user_by_id(db, user_id)
    if not user:
        return None

    return user.id


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthenticated()
    return user_id
