from .models import (
    Role,
    RegisterRequest,
    SignInRequest,
    TokenResponse,
    UserProfile,
    UpdateProfileRequest,
)
from .service import (
    AuthService,
    EmailAlreadyRegistered,
    InvalidCredentials,
    UserNotFound,
)

__all__ = [
    "Role",
    "RegisterRequest",
    "SignInRequest",
    "TokenResponse",
    "UserProfile",
    "UpdateProfileRequest",
    "AuthService",
    "EmailAlreadyRegistered",
    "InvalidCredentials",
    "UserNotFound",
]
