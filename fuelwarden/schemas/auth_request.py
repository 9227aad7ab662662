from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from fuelwarden.models.user import AuthUser, Session


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    """Request body to create an email/password account."""

    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


class OAuthRequest(BaseModel):
    provider: str
    success_url: str
    failure_url: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PasswordRecoveryRequest(BaseModel):
    email: EmailStr
    url: str


class UpdatePasswordRequest(BaseModel):
    password: str = Field(min_length=6)


class UpdateNameRequest(BaseModel):
    name: str = Field(min_length=1)


class AuthStateResponse(BaseModel):
    """The signed-in user and whether they have finished onboarding."""

    status: str
    user: Optional[AuthUser] = None
    has_completed_onboarding: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignInResponse(AuthStateResponse):
    session: Session
