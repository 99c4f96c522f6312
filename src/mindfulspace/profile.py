"""Local profile of the signed-in user, kept as independent scalar keys.

The identity-provider session itself lives elsewhere; this module only maps a
minimal profile (name, role, bio) and a cached auth token onto the adapter.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ValidationError
from .kv import KeyValue
from .models import CLIENT, EXPERT, Identity, Profile

logger = logging.getLogger(__name__)

NAME_KEY = "nickname"
ROLE_KEY = "user-role"
BIO_KEY = "user-bio"
TOKEN_KEY = "auth-token"
SESSION_KEYS = (NAME_KEY, ROLE_KEY, BIO_KEY, TOKEN_KEY)

ROLE_ALIASES = {"both": EXPERT}
ROLES = (CLIENT, EXPERT)


def normalize_role(role: str) -> str:
    """Maps an incoming role onto the closed set of profile roles.

    Raises
    ------
    ValidationError
        If ``role`` is neither a known role nor an alias of one.
    """
    normalized = ROLE_ALIASES.get(role, role)
    if normalized not in ROLES:
        raise ValidationError(f"Unknown role: {role!r}")
    return normalized


def pick_full_name(data: Mapping[str, Any]) -> Optional[str]:
    """Returns the first non-blank of ``full_name`` and its legacy alias ``nickname``."""
    for name in ("full_name", "nickname"):
        value = data.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class ProfileStore:
    def __init__(self, kv: KeyValue):
        self.kv = kv

    async def get_profile(self) -> Profile:
        name = await self.kv.get(NAME_KEY)
        role = await self.kv.get(ROLE_KEY)
        bio = await self.kv.get(BIO_KEY)
        if role not in ROLES:
            role = CLIENT
        return Profile(full_name=name, role=role, bio=bio)

    async def update_profile(self, data: Union[Profile, Mapping[str, Any]]) -> Dict[str, Any]:
        """Writes each supplied field on its own; absent fields are left untouched.

        Returns the normalized partial that was written.
        """
        if isinstance(data, Profile):
            data = data.model_dump(exclude_unset=True)
        if not isinstance(data, Mapping):
            raise ValidationError("Profile update must be an object")

        written: Dict[str, Any] = {}
        full_name = pick_full_name(data)
        role = data.get("role")
        if role is not None:
            if not isinstance(role, str):
                raise ValidationError("role must be a string")
            role = normalize_role(role)
        bio = data.get("bio")
        if bio is not None and not isinstance(bio, str):
            raise ValidationError("bio must be a string")

        if full_name is not None:
            await self.kv.set(NAME_KEY, full_name)
            written["full_name"] = full_name
        if role is not None:
            await self.kv.set(ROLE_KEY, role)
            written["role"] = role
        if bio is not None:
            await self.kv.set(BIO_KEY, bio)
            written["bio"] = bio
        return written

    async def setup_from_identity(self, identity: Union[Identity, Mapping[str, Any]]) -> Profile:
        """Seeds the profile name from an identity-provider record."""
        if not isinstance(identity, Identity):
            identity = Identity.model_validate(identity)
        name = identity.display_name
        if not (name and name.strip()) and identity.email:
            name = identity.email.split("@")[0]
        if name:
            await self.update_profile({"full_name": name})
        return await self.get_profile()

    async def get_token(self) -> Optional[str]:
        return await self.kv.get(TOKEN_KEY)

    async def set_token(self, token: str):
        await self.kv.set(TOKEN_KEY, token)

    async def logout(self):
        """Forgets the local profile and cached token in one batch."""
        await self.kv.remove(SESSION_KEYS)
        logger.info("Cleared local session")
