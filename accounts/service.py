import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import jwt
import structlog
from passlib.context import CryptContext

from core.config import Settings
from core.errors import MarketplaceError, NotAuthenticated, NotFound, InvalidRequest, require_user
from docstore import InMemoryDocumentStore

from .models import (
    Role,
    RegisterRequest,
    TokenResponse,
    UserProfile,
    UpdateProfileRequest,
)


log = structlog.get_logger(__name__)

USERS = "users"
CREDENTIALS = "credentials"
PASSWORD_RESETS = "password_resets"

RESET_TOKEN_TTL = timedelta(hours=1)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class EmailAlreadyRegistered(MarketplaceError):
    pass


class InvalidCredentials(NotAuthenticated):
    pass


class UserNotFound(NotFound):
    pass


def _email_key(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Email/password accounts with signed bearer tokens.

    Credentials live apart from profiles so a profile read never carries the
    password hash.
    """

    def __init__(self, store: Optional[InMemoryDocumentStore] = None, settings: Optional[Settings] = None):
        self.store = store or InMemoryDocumentStore()
        self.settings = settings or Settings()

    def register(self, request: RegisterRequest) -> UserProfile:
        email = _email_key(request.email)
        uid = uuid4().hex
        is_buyer = request.role == Role.BUYER
        profile = UserProfile(
            uid=uid,
            email=email,
            mobile=request.mobile,
            is_buyer=is_buyer,
            org_name=request.org_name if is_buyer else None,
            org_location=request.org_location if is_buyer else None,
            first_name=request.first_name if not is_buyer else None,
            last_name=request.last_name if not is_buyer else None,
        )

        with self.store.transaction():
            if self.store.exists(CREDENTIALS, email):
                raise EmailAlreadyRegistered(f"{email} is already registered")
            self.store.set(CREDENTIALS, email, {
                "uid": uid,
                "password_hash": pwd_context.hash(request.password),
            })
            self.store.set(USERS, uid, profile.model_dump(exclude={"uid"}))

        log.info("user_registered", uid=uid, role=request.role.value)
        return profile

    def sign_in(self, email: str, password: str) -> TokenResponse:
        credentials = self.store.get(CREDENTIALS, _email_key(email))
        if credentials is None or not pwd_context.verify(password, credentials.get("password_hash")):
            log.info("sign_in_failed", email=_email_key(email))
            raise InvalidCredentials("Invalid email or password")

        uid = credentials.get("uid")
        return TokenResponse(access_token=self._issue_token(uid), user_id=uid)

    def verify_token(self, token: str) -> str:
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise NotAuthenticated("Session expired, please sign in again")
        except jwt.InvalidTokenError:
            raise NotAuthenticated("Invalid token")
        uid = payload.get("sub")
        if not uid:
            raise NotAuthenticated("Invalid token")
        return uid

    def request_password_reset(self, email: str) -> Optional[str]:
        """Issue a single-use reset token for ``email``.

        Returns None for unknown addresses. Delivering the token by mail is
        the caller's job.
        """
        email = _email_key(email)
        credentials = self.store.get(CREDENTIALS, email)
        if credentials is None:
            log.info("password_reset_unknown_email", email=email)
            return None

        token = secrets.token_urlsafe(32)
        self.store.set(PASSWORD_RESETS, token, {
            "email": email,
            "expires_at": datetime.now(timezone.utc) + RESET_TOKEN_TTL,
        })
        log.info("password_reset_requested", uid=credentials.get("uid"))
        return token

    def reset_password(self, token: str, new_password: str) -> None:
        with self.store.transaction():
            reset = self.store.get(PASSWORD_RESETS, token)
            if reset is None:
                raise InvalidRequest("Reset link is invalid or has expired")
            # Tokens are single use; an expired one is dropped too.
            self.store.delete(PASSWORD_RESETS, token)
            expired = reset.get("expires_at") <= datetime.now(timezone.utc)
            if not expired:
                self.store.update(CREDENTIALS, reset.get("email"), {
                    "password_hash": pwd_context.hash(new_password),
                })
        if expired:
            raise InvalidRequest("Reset link is invalid or has expired")
        log.info("password_reset_completed", email=reset.get("email"))

    def get_profile(self, user_id: str) -> UserProfile:
        require_user(user_id)
        snapshot = self.store.get(USERS, user_id)
        if snapshot is None:
            raise UserNotFound(f"User {user_id} not found")
        return UserProfile(uid=snapshot.id, **snapshot.data)

    def update_profile(self, user_id: str, request: UpdateProfileRequest) -> UserProfile:
        self.get_profile(user_id)
        changes = request.model_dump(exclude_none=True)
        if changes:
            self.store.set(USERS, user_id, changes, merge=True)
            log.info("profile_updated", uid=user_id, fields=sorted(changes))
        return self.get_profile(user_id)

    def set_profile_picture(self, user_id: str, url: str) -> UserProfile:
        self.get_profile(user_id)
        self.store.set(USERS, user_id, {"profile_picture_url": url}, merge=True)
        return self.get_profile(user_id)

    def _issue_token(self, uid: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": uid,
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.token_ttl_minutes),
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)
