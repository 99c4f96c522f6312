"""
Tests for server-side accounts.

Accounts are the only place credentials are handled, so we check that
passwords never hit storage in clear text and that tokens are opaque.
"""

import json

import pytest

from mindfulspace.auth import SESSIONS_KEY, USERS_KEY, Accounts
from mindfulspace.errors import ValidationError


@pytest.fixture
def accounts(kv) -> Accounts:
    return Accounts(kv, bcrypt_rounds=4)


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_returns_user_and_token(self, accounts):
        user, token = await accounts.register("ana@x.com", "s3cret", "Ana")
        assert user.email == "ana@x.com"
        assert user.full_name == "Ana"
        assert user.role == "client"
        assert token and token != user.id

    @pytest.mark.asyncio
    async def test_password_is_hashed(self, accounts, kv):
        await accounts.register("ana@x.com", "s3cret")
        raw = await kv.get(USERS_KEY)
        assert "s3cret" not in raw
        assert json.loads(raw)[0]["password_hash"].startswith("$2")

    @pytest.mark.asyncio
    async def test_default_name_from_email(self, accounts):
        user, _ = await accounts.register("bea@x.com", "pw")
        assert user.full_name == "bea"

    @pytest.mark.parametrize("email,password", [("", "pw"), ("a@x.com", ""), (None, None)])
    @pytest.mark.asyncio
    async def test_missing_credentials_rejected(self, accounts, kv, email, password):
        with pytest.raises(ValidationError):
            await accounts.register(email, password)
        assert await kv.get(USERS_KEY) is None

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, accounts):
        await accounts.register("ana@x.com", "pw")
        with pytest.raises(ValidationError, match="already exists"):
            await accounts.register("ana@x.com", "other")


class TestLogin:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, accounts):
        registered, _ = await accounts.register("ana@x.com", "pw")
        user, token = await accounts.login("ana@x.com", "pw")
        assert user.id == registered.id
        assert (await accounts.authenticate(token)).id == registered.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, accounts):
        await accounts.register("ana@x.com", "pw")
        assert await accounts.login("ana@x.com", "nope") is None

    @pytest.mark.asyncio
    async def test_unknown_email(self, accounts):
        assert await accounts.login("ghost@x.com", "pw") is None

    @pytest.mark.asyncio
    async def test_identity_account_has_no_password(self, accounts):
        await accounts.login_with_identity({"email": "g@x.com", "name": "G"})
        assert await accounts.login("g@x.com", "anything") is None


class TestIdentityLogin:
    @pytest.mark.asyncio
    async def test_first_login_creates_user(self, accounts):
        user, token, is_new = await accounts.login_with_identity(
            {"email": "g@x.com", "name": "Gabi", "photoUrl": "p.png", "uid": "g-1"}
        )
        assert is_new is True
        assert user.provider == "google"
        assert user.full_name == "Gabi"
        assert user.photo_url == "p.png"
        assert user.id.startswith("u_google_")
        assert token

    @pytest.mark.asyncio
    async def test_second_login_reuses_user(self, accounts):
        first, _, _ = await accounts.login_with_identity({"email": "g@x.com"})
        second, _, is_new = await accounts.login_with_identity({"email": "g@x.com"})
        assert is_new is False
        assert second.id == first.id

    @pytest.mark.asyncio
    async def test_email_required(self, accounts):
        with pytest.raises(ValidationError):
            await accounts.login_with_identity({"name": "No email"})


class TestTokens:
    @pytest.mark.asyncio
    async def test_unknown_token(self, accounts):
        assert await accounts.authenticate("bogus") is None
        assert await accounts.authenticate(None) is None

    @pytest.mark.asyncio
    async def test_user_id_is_not_a_token(self, accounts):
        user, _ = await accounts.register("ana@x.com", "pw")
        assert await accounts.authenticate(user.id) is None

    @pytest.mark.asyncio
    async def test_revoke(self, accounts, kv):
        _, token = await accounts.register("ana@x.com", "pw")
        assert await accounts.revoke(token) is True
        assert await accounts.authenticate(token) is None
        assert await accounts.revoke(token) is False
        assert json.loads(await kv.get(SESSIONS_KEY)) == []


class TestUpdateUser:
    @pytest.mark.asyncio
    async def test_updates_profile_fields(self, accounts):
        _, token = await accounts.register("ana@x.com", "pw")
        user = await accounts.update_user(
            token, {"full_name": " Ana L ", "role": "both", "nickname": " ana ", "bio": "Hi"}
        )
        assert user.full_name == "Ana L"
        assert user.role == "expert"
        assert user.nickname == "ana"
        assert user.bio == "Hi"

    @pytest.mark.asyncio
    async def test_invalid_values_are_ignored(self, accounts):
        _, token = await accounts.register("ana@x.com", "pw", "Ana")
        user = await accounts.update_user(token, {"full_name": "   ", "role": "admin"})
        assert user.full_name == "Ana"
        assert user.role == "client"

    @pytest.mark.asyncio
    async def test_unknown_token(self, accounts):
        assert await accounts.update_user("bogus", {"full_name": "X"}) is None

    @pytest.mark.asyncio
    async def test_password_hash_survives_update(self, accounts):
        _, token = await accounts.register("ana@x.com", "pw")
        await accounts.update_user(token, {"bio": "Hi"})
        assert await accounts.login("ana@x.com", "pw") is not None
