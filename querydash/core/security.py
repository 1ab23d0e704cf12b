import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional, Tuple

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from querydash.core.config import settings
from querydash.core.broadcast.errors import (
    AuthError,
    InvalidCredentials,
    MissingCredentials,
)

# Hash mechanism
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PASSWORD_SPECIALS = "!@#$%^&*"
MAX_INPUT_LENGTH = 500


@dataclass(frozen=True)
class Principal:
    """Authenticated identity taken from the token claims."""

    id: int
    email: str


# Hash the password
def hash_password(password: str):
    return pwd_context.hash(password)


# Verify the password
def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def is_strong_password(password: str) -> Tuple[bool, str]:
    if len(password) < 12:
        return False, "Password must be at least 12 characters"
    if not re.search(r"[A-Z]", password):
        return False, "Password must include uppercase letters"
    if not re.search(r"[a-z]", password):
        return False, "Password must include lowercase letters"
    if not re.search(r"[0-9]", password):
        return False, "Password must include numbers"
    if not any(char in PASSWORD_SPECIALS for char in password):
        return False, "Password must include special characters"
    return True, "Password is strong"


def sanitize_input(value: str) -> str:
    """Strip angle brackets and surrounding whitespace, cap the length."""
    return re.sub(r"[<>]", "", value).strip()[:MAX_INPUT_LENGTH]


def create_access_token(data: dict, secret: Optional[str] = None):
    to_encode = data.copy()

    expire_time = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire_time})

    encoded_jwt = jwt.encode(
        to_encode, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )

    return encoded_jwt


def verify_token(token: Optional[str], secret: Optional[str] = None) -> Principal:
    """
    Turn a bearer token into a Principal.

    Pure function of (token, secret): no database lookup, no retries.
    Raises MissingCredentials when there is no token and InvalidCredentials
    when the signature, expiry or claims do not check out.
    """
    if not token:
        raise MissingCredentials()

    try:
        payload = jwt.decode(
            token, secret or settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    # Covers bad signatures, expired tokens and garbage input
    except jwt.InvalidTokenError:
        raise InvalidCredentials()

    user_id = payload.get("user_id")
    email = payload.get("email")
    if not isinstance(user_id, int) or isinstance(user_id, bool) or not email:
        raise InvalidCredentials("Token claims are incomplete")

    return Principal(id=user_id, email=str(email))


def extract_bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Pull the token out of an 'Authorization: Bearer <token>' header."""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# auto_error=False so a missing header reaches verify_token and becomes a 401
bearer_scheme = HTTPBearer(auto_error=False)


# Decode the token and see who is calling
async def get_current_principal(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)
    ],
) -> Principal:
    token = credentials.credentials if credentials else None
    try:
        return verify_token(token)
    except AuthError as error:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


principal_dep = Annotated[Principal, Depends(get_current_principal)]
