"""Server-side accounts: registration, password and identity-provider login.

Passwords are stored as bcrypt hashes. Sessions are opaque random bearer
tokens mapped to user ids; a token is never derived from the user id.
"""

import asyncio
import logging
import secrets
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import bcrypt
import pydantic

from .errors import StorageError, ValidationError
from .kv import KeyValue
from .models import Identity, User, utcnow_iso
from .profile import normalize_role
from .store import Records, generate_id

logger = logging.getLogger(__name__)

USERS_KEY = "db_users"
SESSIONS_KEY = "db_sessions"


def _default_name(email: str) -> str:
    return email.split("@")[0]


class Accounts:
    """Accounts persisted under ``db_users`` with sessions under ``db_sessions``."""

    def __init__(self, kv: KeyValue, bcrypt_rounds: int = 12):
        self.users = Records(kv, USERS_KEY)
        self.sessions = Records(kv, SESSIONS_KEY)
        self.bcrypt_rounds = bcrypt_rounds

    # --- helpers ---
    @staticmethod
    def _load(doc: Dict[str, Any]) -> User:
        try:
            return User.model_validate(doc)
        except pydantic.ValidationError as exc:
            raise StorageError(f"Stored user is invalid: {exc}") from exc

    async def _read_users(self) -> List[Dict[str, Any]]:
        return await self.users.read() or []

    async def _hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    @staticmethod
    async def _verify(password: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        return await asyncio.to_thread(
            bcrypt.checkpw, password.encode("utf-8"), hashed.encode("utf-8")
        )

    async def _issue_token(self, user: User) -> str:
        token = secrets.token_urlsafe(32)
        async with self.sessions.lock:
            sessions = await self.sessions.read() or []
            sessions.append(
                {"token": token, "user_id": user.id, "created_date": utcnow_iso()}
            )
            await self.sessions.write(sessions)
        return token

    async def _insert(self, user: User):
        async with self.users.lock:
            docs = await self._read_users()
            if any(doc.get("email") == user.email for doc in docs):
                raise ValidationError("User already exists")
            docs.append(user.model_dump(mode="json"))
            await self.users.write(docs)

    async def find_by_email(self, email: str) -> Optional[User]:
        for doc in await self._read_users():
            if doc.get("email") == email:
                return self._load(doc)
        return None

    # --- operations ---
    async def register(
        self, email: str, password: str, full_name: Optional[str] = None
    ) -> Tuple[User, str]:
        if not email or not password:
            raise ValidationError("Email and password required")
        if await self.find_by_email(email) is not None:
            raise ValidationError("User already exists")
        user = User(
            id=f"u_{generate_id()}",
            email=email,
            full_name=(full_name or "").strip() or _default_name(email),
            provider="password",
            password_hash=await self._hash(password),
            created_date=utcnow_iso(),
        )
        await self._insert(user)
        logger.info("Registered user %s", user.id)
        return user, await self._issue_token(user)

    async def login(self, email: str, password: str) -> Optional[Tuple[User, str]]:
        """Returns the user and a fresh token, or None for bad credentials."""
        if not email or not password:
            return None
        user = await self.find_by_email(email)
        if user is None or not await self._verify(password, user.password_hash):
            return None
        return user, await self._issue_token(user)

    async def login_with_identity(
        self, identity: Union[Identity, Mapping[str, Any]], provider: str = "google"
    ) -> Tuple[User, str, bool]:
        """Signs in with an external identity, creating the account on first use.

        Returns ``(user, token, is_new_user)``.
        """
        if not isinstance(identity, Identity):
            try:
                identity = Identity.model_validate(identity)
            except pydantic.ValidationError as exc:
                raise ValidationError(f"Invalid identity: {exc}") from exc
        if not identity.email:
            raise ValidationError(f"Email required for {provider} login")

        user = await self.find_by_email(identity.email)
        is_new = user is None
        if is_new:
            user = User(
                id=f"u_{provider}_{generate_id()}",
                email=identity.email,
                full_name=identity.display_name or _default_name(identity.email),
                photo_url=identity.photo_url,
                provider=provider,
                uid=identity.uid,
                created_date=utcnow_iso(),
            )
            try:
                await self._insert(user)
            except ValidationError:
                # Another request created it in the meantime.
                user = await self.find_by_email(identity.email)
                is_new = False
            else:
                logger.info("Created %s user %s", provider, user.id)
        return user, await self._issue_token(user), is_new

    async def authenticate(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        sessions = await self.sessions.read() or []
        user_id = next((s.get("user_id") for s in sessions if s.get("token") == token), None)
        if user_id is None:
            return None
        for doc in await self._read_users():
            if doc.get("id") == user_id:
                return self._load(doc)
        return None

    async def update_user(
        self, token: Optional[str], data: Mapping[str, Any]
    ) -> Optional[User]:
        """Applies profile fields to the token's user; None if the token is unknown.

        Fields with an unusable value are ignored rather than rejected.
        """
        user = await self.authenticate(token)
        if user is None:
            return None
        changes: Dict[str, Any] = {}
        full_name = data.get("full_name")
        if isinstance(full_name, str) and full_name.strip():
            changes["full_name"] = full_name.strip()
        role = data.get("role")
        if isinstance(role, str):
            try:
                changes["role"] = normalize_role(role)
            except ValidationError:
                logger.warning("Ignoring unknown role %r for user %s", role, user.id)
        nickname = data.get("nickname")
        if isinstance(nickname, str):
            changes["nickname"] = nickname.strip()
        bio = data.get("bio")
        if isinstance(bio, str):
            changes["bio"] = bio

        async with self.users.lock:
            docs = await self._read_users()
            for idx, doc in enumerate(docs):
                if doc.get("id") == user.id:
                    break
            else:
                return None
            docs[idx] = {**doc, **changes}
            await self.users.write(docs)
            return self._load(docs[idx])

    async def revoke(self, token: str) -> bool:
        async with self.sessions.lock:
            sessions = await self.sessions.read() or []
            remaining = [s for s in sessions if s.get("token") != token]
            if len(remaining) == len(sessions):
                return False
            await self.sessions.write(remaining)
        return True
