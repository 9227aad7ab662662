from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class AuthUser(BaseModel):
    """Represents the authenticated user as reported by Firebase Authentication."""

    uid: str
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Session(BaseModel):
    """Tokens issued by the identity provider for an email/password or OAuth sign-in."""

    uid: str
    id_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
