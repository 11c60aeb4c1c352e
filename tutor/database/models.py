# tutor/database/models.py
# In-memory records: User, Session, Message
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# Subscription statuses
SUB_PENDING = ""
SUB_FREE = "free"
SUB_TRIALING = "trialing"
SUB_ACTIVE = "active"
SUB_PAST_DUE = "past_due"
SUB_CANCELLED = "cancelled"
SUB_SUSPENDED = "suspended"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass
class User:
    id: str
    email: str
    username: str
    password_hash: str
    created_at: datetime = field(default_factory=utcnow)
    is_admin: bool = False
    subscription_status: str = SUB_PENDING
    trial_ends_at: Optional[datetime] = None
    stripe_customer_id: str = ""
    stripe_subscription_id: str = ""

    def trial_active(self, now: Optional[datetime] = None) -> bool:
        if self.trial_ends_at is None:
            return False
        return (now or utcnow()) < self.trial_ends_at

    def has_full_access(self) -> bool:
        """Levels 4 and 5 need a paid (or complimentary) plan."""
        return self.is_admin or self.subscription_status in (SUB_ACTIVE, SUB_FREE)

    def has_conversation_access(self) -> bool:
        """Trial users keep access until the trial ends, even after cancelling."""
        if self.has_full_access():
            return True
        if self.subscription_status in (SUB_TRIALING, SUB_CANCELLED):
            return self.trial_active()
        return False

    def has_any_access(self) -> bool:
        return self.has_conversation_access() or self.subscription_status == SUB_PAST_DUE

    def to_record(self) -> dict:
        """Serializable form written to the users file."""
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "password_hash": self.password_hash,
            "created_at": self.created_at.isoformat(),
            "is_admin": self.is_admin,
            "subscription_status": self.subscription_status,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
        }

    @classmethod
    def from_record(cls, record: dict) -> "User":
        trial_ends_at = record.get("trial_ends_at")
        return cls(
            id=record["id"],
            email=record["email"],
            username=record.get("username", ""),
            password_hash=record["password_hash"],
            created_at=datetime.fromisoformat(record["created_at"]),
            is_admin=bool(record.get("is_admin", False)),
            subscription_status=record.get("subscription_status", SUB_PENDING),
            trial_ends_at=datetime.fromisoformat(trial_ends_at) if trial_ends_at else None,
            stripe_customer_id=record.get("stripe_customer_id", ""),
            stripe_subscription_id=record.get("stripe_subscription_id", ""),
        )


@dataclass
class Session:
    id: str
    user_id: str
    language: str
    topic: str
    level: int = 3
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
