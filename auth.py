"""Password hashing, session tokens and the bearer-token request guard.

``Authenticator`` owns the two one-way operations of the service:

1. bcrypt hashing of passwords at registration and verification at login.
2. Minting and verifying HS256 session tokens with python-jose.

Tokens are stateless. They carry the owner email in ``sub``, an ``iat``, a
random ``jti`` (the key a revocation denylist would use) and, unless
``JWT_EXPIRE_MINUTES=0``, an ``exp`` claim. The signing secret is read once
from settings at startup.

``get_current_user`` is the FastAPI dependency that every job and suggestion
route declares. It resolves the caller's identity from
``Authorization: Bearer <token>`` or fails with ``MissingToken`` (401) /
``InvalidToken`` (403).
"""
from __future__ import annotations

import time
import uuid
from functools import lru_cache
from typing import Annotated, Optional

import bcrypt
import structlog
from fastapi import Depends, Request
from jose import jwt, JWTError
from sqlalchemy.orm import Session

import crud
from errors import DuplicateUser, InvalidCredentials, InvalidToken, MissingToken
from schemas import Identity, normalize_email
from settings import get_settings

logger = structlog.get_logger(__name__)


class Authenticator:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int = 0,
        rounds: int = 10,
    ) -> None:
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.rounds = rounds

    # --- Passwords ---
    def hash_password(self, raw_password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(raw_password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(raw_password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(raw_password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    # --- Tokens ---
    def issue_token(self, email: str) -> str:
        now = int(time.time())
        claims = {"sub": email, "email": email, "iat": now, "jti": uuid.uuid4().hex}
        if self.expire_minutes > 0:
            claims["exp"] = now + self.expire_minutes * 60
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> str:
        """Return the email embedded in ``token``.

        Raises InvalidToken on a bad signature, malformed or expired token.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.warning("JWT verification failed", exc=str(exc))
            raise InvalidToken() from exc

        email = payload.get("sub")
        if not isinstance(email, str) or not email:
            logger.warning("JWT missing subject claim")
            raise InvalidToken()
        return email

    # --- Entry points ---
    def register(self, db: Session, email: str, raw_password: str) -> None:
        email = normalize_email(email)
        if crud.get_user_by_email(db, email) is not None:
            raise DuplicateUser(email)
        crud.create_user(db, email=email, password_hash=self.hash_password(raw_password))
        logger.info("User registered", email=email)

    def login(self, db: Session, email: str, raw_password: str) -> str:
        email = normalize_email(email)
        user = crud.get_user_by_email(db, email)
        if user is None or not self.verify_password(raw_password, user.password_hash):
            logger.info("Login rejected", email=email)
            raise InvalidCredentials()
        logger.info("Login succeeded", email=email)
        return self.issue_token(user.email)


@lru_cache
def get_authenticator() -> Authenticator:
    settings = get_settings()
    return Authenticator(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expire_minutes=settings.jwt_expire_minutes,
        rounds=settings.bcrypt_rounds,
    )


# Helper to extract Authorization header (works with FastAPI DI)
def _get_authorization_header(request: Request) -> Optional[str]:
    return request.headers.get("Authorization")


# --- FastAPI dependency ---
async def get_current_user(
    authorization: Annotated[Optional[str], Depends(_get_authorization_header)],
    authenticator: Annotated[Authenticator, Depends(get_authenticator)],
) -> Identity:
    if not authorization or not authorization.strip():
        raise MissingToken()

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidToken()

    email = authenticator.verify_token(token.strip())
    return Identity(email=email)
