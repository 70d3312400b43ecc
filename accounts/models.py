from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, ConfigDict, model_validator


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    mobile: str = ""
    role: Role
    org_name: Optional[str] = None
    org_location: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "email": "seller@example.com",
            "password": "secret123",
            "mobile": "9876543210",
            "role": "seller",
            "first_name": "Asha",
            "last_name": "Patil",
        }
    })

    @model_validator(mode="after")
    def check_role_fields(self) -> "RegisterRequest":
        if self.role == Role.BUYER and not self.org_name:
            raise ValueError("org_name is required for buyers")
        if self.role == Role.SELLER and not self.first_name:
            raise ValueError("first_name is required for sellers")
        return self


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(..., min_length=6)


class MessageResponse(BaseModel):
    message: str


class UserProfile(BaseModel):
    uid: str
    email: str
    mobile: str = ""
    is_buyer: bool
    org_name: Optional[str] = None
    org_location: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_picture_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.is_buyer:
            return self.org_name or self.email
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email


class UpdateProfileRequest(BaseModel):
    mobile: Optional[str] = None
    org_name: Optional[str] = None
    org_location: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ProfilePictureRequest(BaseModel):
    url: str = Field(..., min_length=1, description="URL returned by blob storage after upload")
