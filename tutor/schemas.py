# tutor/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator
from pydantic.networks import validate_email

from tutor.database.models import User


class UserCreate(BaseModel):
    email: str
    username: str
    password: str
    plan: str = "trial" # "trial" or "immediate"

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        # Rejects malformed addresses but keeps the original spelling
        validate_email(value)
        return value


class UserLogin(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    username: str
    is_admin: bool
    subscription_status: str
    trial_ends_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            is_admin=user.is_admin,
            subscription_status=user.subscription_status,
            trial_ends_at=user.trial_ends_at,
        )


class AuthResponse(BaseModel):
    token: str
    user: UserOut


class ConversationStart(BaseModel):
    language: str
    topic: str
    level: int = 3


class ConversationStarted(BaseModel):
    session_id: str
    language: str
    topic: str
    topic_name: str
    level: int


class ConversationMessage(BaseModel):
    session_id: str
    message: str = ""
    greet: bool = False # true on the first turn to trigger the tutor's greeting


class MessageOut(BaseModel):
    role: str
    content: str


class ConversationHistory(BaseModel):
    session_id: str
    language: str
    topic: str
    topic_name: str
    level: int
    messages: List[MessageOut]


class TranslateRequest(BaseModel):
    text: str
    language: str


class TTSRequest(BaseModel):
    text: str
    language: str = "it"


class CheckoutRequest(BaseModel):
    plan: str = "trial"


class SubscriptionUpdate(BaseModel):
    status: str
