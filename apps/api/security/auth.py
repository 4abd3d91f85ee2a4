import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..errors import NotAuthenticated, NotAuthorized

logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)

FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
AUTH_DISABLED = os.getenv("AUTH_DISABLED", "false").lower() == "true"
DEV_USER_ROLE = os.getenv("DEV_USER_ROLE", "member")

ROLES = ("member", "admin")

firebase_initialized = False


@dataclass(frozen=True)
class Caller:
    """Identity of whoever is making the request; passed explicitly to services."""

    uid: Optional[str] = None
    email: Optional[str] = None
    role: str = "member"
    metadata: dict = field(default_factory=dict)

    @property
    def is_anonymous(self) -> bool:
        return self.uid is None

    @property
    def is_admin(self) -> bool:
        return self.uid is not None and self.role == "admin"


ANONYMOUS = Caller()


def _init_firebase():
    global firebase_initialized
    if firebase_initialized:
        return
    import firebase_admin

    if not firebase_admin._apps:
        # ADC on GCP, GOOGLE_APPLICATION_CREDENTIALS elsewhere
        firebase_admin.initialize_app()
    firebase_initialized = True


def caller_from_claims(claims: dict) -> Caller:
    role = claims.get("role") or "member"
    if role not in ROLES:
        role = "member"
    meta = {k: v for k, v in claims.items() if k in ("name", "picture", "firebase")}
    return Caller(uid=claims["uid"], email=claims.get("email"), role=role, metadata=meta)


def verify_token(id_token: str) -> Caller:
    if AUTH_DISABLED:
        return Caller(uid="dev-user", email="dev@example.com", role=DEV_USER_ROLE)
    try:
        _init_firebase()
        from firebase_admin import auth

        decoded = auth.verify_id_token(id_token, check_revoked=False)
    except Exception as e:
        logger.info("token verification failed: %s", e)
        raise NotAuthenticated("Your session is invalid or expired") from e
    if FIREBASE_PROJECT_ID and decoded.get("aud") != FIREBASE_PROJECT_ID:
        raise NotAuthenticated("Your session is invalid or expired")
    return caller_from_claims(decoded)


def get_current_caller(credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)) -> Caller:
    if not credentials:
        return ANONYMOUS
    return verify_token(credentials.credentials)


def require_caller(caller: Caller = Depends(get_current_caller)) -> Caller:
    if caller.is_anonymous:
        raise NotAuthenticated()
    return caller


def require_admin(caller: Caller = Depends(require_caller)) -> Caller:
    if not caller.is_admin:
        raise NotAuthorized("Admin privileges are required")
    return caller
