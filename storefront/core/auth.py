# storefront/core/auth.py
import uuid
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.errors import Conflict, Unauthenticated
from storefront.database import get_session
from storefront.models.user import User
from storefront.repositories.user_repo import UserRepository

settings = get_settings()

# auto_error=False: a missing header becomes our 401 envelope in
# require_auth instead of HTTPBearer's own 403.
bearer_scheme = HTTPBearer(auto_error=False)

user_repo = UserRepository()


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a bearer access token (JWT).

    Verification:
      - signature (JWT_SECRET / JWT_ALG)
      - expiration time (exp)
      - audience is NOT verified

    Raises:
        Unauthenticated: if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise Unauthenticated("Invalid or expired token")


def _default_name_from_email(email: str) -> str:
    """
    Derive a default display name from email if the token carries
    no name claim.
    """
    if "@" in email:
        return email.split("@", 1)[0]
    return email


def _provision_user(session: Session, user_id: uuid.UUID, payload: dict[str, Any]) -> User:
    """
    Create the profile for a first-time token.

    If a concurrent request for the same `sub` inserted the row first, that
    row is returned. If the email already belongs to another profile, 409.
    """
    email = payload["email"]
    try:
        return user_repo.create(
            session,
            User(
                id=user_id,
                email=email,
                full_name=payload.get("name") or _default_name_from_email(email),
            ),
        )
    except IntegrityError:
        session.rollback()
        user = user_repo.get_by_id(session, user_id)
        if user is None:
            raise Conflict("Email already belongs to another account")
        return user


def require_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    """
    Resolve the current user from the bearer token.

    Flow:
      1. No Authorization header => 401.
      2. Decode JWT => extract 'sub' (user id), 'email' and optional 'name'.
      3. Convert 'sub' to UUID to match User.id type.
      4. Find the user profile; auto-provision it if missing.

    Raises:
        Unauthenticated: if the token is absent, malformed or missing claims.
        Conflict: if a new token's email is taken by another profile.
    """
    if credentials is None:
        raise Unauthenticated("User not authenticated")

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise Unauthenticated("Token missing sub/email")

    try:
        sub_uuid = uuid.UUID(str(sub))
    except ValueError:
        raise Unauthenticated("Invalid sub in token")

    user = user_repo.get_by_id(session, sub_uuid)
    if user is None:
        user = _provision_user(session, sub_uuid, payload)

    return user
