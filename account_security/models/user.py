"""User data models for authentication"""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..utils.clock import utc_now


class UserRecord(BaseModel):
    """Stored account record, including credential material"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    email: EmailStr
    name: str
    password_hash: str
    email_verified: bool = False
    registered_at: datetime = Field(default_factory=utc_now)

    def to_session_user(self) -> "SessionUser":
        return SessionUser(
            id=self.id,
            email=self.email,
            name=self.name,
            email_verified=self.email_verified,
        )


class SessionUser(BaseModel):
    """Session-safe projection of a user (no credential material)"""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    email_verified: bool = False
