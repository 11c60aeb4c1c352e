# tutor/database/store.py
# In-process stores: users (persisted to a JSON file), sessions and prior-session context.
import json
import logging
import os
import tempfile
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from tutor.auth.auth_utils import dummy_verify, hash_password, verify_password
from tutor.database.locks import RWLock
from tutor.database.models import Message, Role, Session, User, utcnow
from tutor.exceptions import AlreadyExists, InvalidCredentials, NotFound

logger = logging.getLogger(__name__)


class UserStore:
    """Accounts indexed by ID and by email.

    Every mutation rewrites the whole user list to ``file_path``. Persistence is
    best effort: a failed write is logged and the in-memory change stands.
    """

    def __init__(self, file_path: str = "data/users.json", admin_email: str = ""):
        self._lock = RWLock()
        self._by_id: Dict[str, User] = {}
        self._by_email: Dict[str, User] = {}
        self.file_path = file_path
        self.admin_email = admin_email
        self._load()

    def create(self, email: str, username: str, password: str) -> User:
        with self._lock.read():
            if email in self._by_email:
                raise AlreadyExists("email already registered")

        # bcrypt is slow; hash outside the lock and re-check before inserting
        password_hash = hash_password(password)
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            username=username,
            password_hash=password_hash,
            is_admin=bool(self.admin_email) and email == self.admin_email,
        )

        with self._lock.write():
            if email in self._by_email:
                raise AlreadyExists("email already registered")
            self._by_email[email] = user
            self._by_id[user.id] = user
            self._save()

        logger.info(f"Created user {user.id}")
        return replace(user)

    def authenticate(self, email: str, password: str) -> User:
        with self._lock.read():
            user = self._by_email.get(email)
            user = replace(user) if user else None

        if user is None:
            dummy_verify()
            raise InvalidCredentials("invalid email or password")
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials("invalid email or password")
        return user

    def get_by_id(self, user_id: str) -> User:
        with self._lock.read():
            user = self._by_id.get(user_id)
            if user is None:
                raise NotFound("user not found")
            return replace(user)

    def get_by_email(self, email: str) -> User:
        with self._lock.read():
            user = self._by_email.get(email)
            if user is None:
                raise NotFound("user not found")
            return replace(user)

    def get_by_stripe_customer_id(self, customer_id: str) -> User:
        with self._lock.read():
            for user in self._by_id.values():
                if customer_id and user.stripe_customer_id == customer_id:
                    return replace(user)
        raise NotFound("user not found")

    def list_all(self) -> List[User]:
        with self._lock.read():
            return [replace(u) for u in self._by_id.values()]

    def delete(self, user_id: str) -> None:
        with self._lock.write():
            user = self._by_id.pop(user_id, None)
            if user is None:
                raise NotFound("user not found")
            self._by_email.pop(user.email, None)
            self._save()

    def update_subscription(
        self,
        user_id: str,
        *,
        customer_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
        status: Optional[str] = None,
        trial_ends_at: Optional[datetime] = None,
    ) -> User:
        """Updates billing fields; arguments left as None keep their current value."""
        with self._lock.write():
            user = self._by_id.get(user_id)
            if user is None:
                raise NotFound("user not found")
            if customer_id:
                user.stripe_customer_id = customer_id
            if subscription_id:
                user.stripe_subscription_id = subscription_id
            if status is not None:
                user.subscription_status = status
            if trial_ends_at is not None:
                user.trial_ends_at = trial_ends_at
            self._save()
            return replace(user)

    def set_subscription_status(self, user_id: str, status: str, trial_ends_at: Optional[datetime]) -> User:
        with self._lock.write():
            user = self._by_id.get(user_id)
            if user is None:
                raise NotFound("user not found")
            user.subscription_status = status
            user.trial_ends_at = trial_ends_at
            self._save()
            return replace(user)

    def _load(self) -> None:
        if not os.path.exists(self.file_path):
            return
        try:
            with open(self.file_path, "r", encoding="utf-8") as fh:
                records = json.load(fh)
            users = [User.from_record(r) for r in records]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not load users from {self.file_path}, starting empty: {e}")
            return

        for user in users:
            self._by_email[user.email] = user
            self._by_id[user.id] = user
        logger.info(f"Loaded {len(users)} users from {self.file_path}")

    def _save(self) -> None:
        # Caller holds the write lock
        records = [u.to_record() for u in self._by_id.values()]
        directory = os.path.dirname(self.file_path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".users-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            logger.error(f"Failed to persist users to {self.file_path}: {e}")


class SessionStore:
    """Conversation sessions, kept for the lifetime of the process."""

    def __init__(self):
        self._lock = RWLock()
        self._sessions: Dict[str, Session] = {}

    def create(self, user_id: str, language: str, topic: str, system_prompt: str, level: int = 3) -> Session:
        now = utcnow()
        session = Session(
            id=str(uuid.uuid4()),
            user_id=user_id,
            language=language,
            topic=topic,
            level=level,
            messages=[Message(Role.SYSTEM, system_prompt)],
            created_at=now,
            updated_at=now,
        )
        with self._lock.write():
            self._sessions[session.id] = session
        return _snapshot(session)

    def get(self, session_id: str) -> Session:
        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFound("session not found")
            return _snapshot(session)

    def add_message(self, session_id: str, message: Message) -> None:
        with self._lock.write():
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFound("session not found")
            session.messages.append(message)
            session.updated_at = utcnow()

    def get_messages(self, session_id: str) -> List[Message]:
        """Transcript without the system prompt."""
        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFound("session not found")
            return [m for m in session.messages if m.role is not Role.SYSTEM]


def _snapshot(session: Session) -> Session:
    return replace(session, messages=list(session.messages))


class ContextStore:
    """Recent messages of a user's last session, per language and level."""

    MAX_MESSAGES = 20

    def __init__(self):
        self._lock = RWLock()
        self._contexts: Dict[Tuple[str, str, int], List[Message]] = {}

    def get(self, user_id: str, language: str, level: int) -> List[Message]:
        with self._lock.read():
            return list(self._contexts.get((user_id, language, level), []))

    def save(self, user_id: str, language: str, level: int, messages: List[Message]) -> None:
        kept = [m for m in messages if m.role is not Role.SYSTEM][-self.MAX_MESSAGES:]
        with self._lock.write():
            self._contexts[(user_id, language, level)] = kept
