"""SessionManager tests — the auth lifecycle without HTTP or a database.

Learn: The manager only talks to a CredentialStore, so these tests run
it against MemoryCredentialStore. That keeps each state transition
(register → refresh → logout) observable through the store's dicts.
"""

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from structlog.testing import capture_logs

from pocketbook.auth.jwt import (
    InvalidSignatureError,
    TokenCodec,
    TokenExpiredError,
    TokenKind,
)
from pocketbook.auth.password import PasswordHasher
from pocketbook.errors import (
    DuplicateEmail,
    InternalError,
    InvalidCredentials,
    InvalidCurrentPassword,
    InvalidOrExpiredToken,
    InvalidToken,
    NotFound,
    Unauthorized,
    ValidationError,
)
from pocketbook.services.auth_service import SessionManager
from pocketbook.store import ConstraintViolation, MemoryCredentialStore, StoreError

ACCESS_SECRET = "unit-access-secret"
REFRESH_SECRET = "unit-refresh-secret"
PASSWORD = "password123"


@pytest.fixture()
def codec():
    return TokenCodec(ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture()
def store():
    return MemoryCredentialStore()


@pytest.fixture()
def manager(store, codec):
    return SessionManager(store=store, codec=codec, hasher=PasswordHasher(rounds=4))


# ═══════════════════════════════════════════════════════════
# Register
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_then_login_same_user(manager):
    registered = await manager.register("ana@example.com", PASSWORD, "Ana")
    logged_in = await manager.login("ana@example.com", PASSWORD)

    assert registered.user.id == logged_in.user.id
    assert registered.user.display_name == "Ana"


@pytest.mark.asyncio
async def test_register_stores_hash_not_password(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    stored = store.users[result.user.id]
    assert stored.password_hash != PASSWORD
    assert stored.password_hash.startswith("$2")


@pytest.mark.asyncio
async def test_register_persists_refresh_token(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    record = store.refresh_tokens[result.tokens.refresh_token]
    assert record.user_id == result.user.id
    assert record.expires_at > datetime.now(timezone.utc) + timedelta(days=6)


@pytest.mark.asyncio
async def test_register_duplicate_email_creates_nothing(manager, store):
    await manager.register("ana@example.com", PASSWORD, "Ana")
    with pytest.raises(DuplicateEmail):
        await manager.register("ana@example.com", "another-password", "Other Ana")
    assert await store.count_users() == 1


@pytest.mark.asyncio
async def test_register_validation_lists_fields(manager, store):
    with pytest.raises(ValidationError) as exc:
        await manager.register("nope", "short", "")
    assert set(exc.value.detail["fields"]) == {"email", "password", "display_name"}
    assert store.users == {}


@pytest.mark.asyncio
async def test_register_password_at_minimum_length(manager):
    result = await manager.register("ana@example.com", "x" * 8, "Ana")
    assert result.tokens.access_token


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(manager):
    await manager.register("ana@example.com", PASSWORD, "Ana")

    with pytest.raises(InvalidCredentials) as wrong_password:
        await manager.login("ana@example.com", "not-the-password")
    with pytest.raises(InvalidCredentials) as unknown_email:
        await manager.login("ghost@example.com", PASSWORD)

    assert wrong_password.value.to_dict() == unknown_email.value.to_dict()


@pytest.mark.asyncio
async def test_login_email_is_case_sensitive(manager):
    await manager.register("ana@example.com", PASSWORD, "Ana")
    with pytest.raises(InvalidCredentials):
        await manager.login("ANA@example.com", PASSWORD)


@pytest.mark.asyncio
async def test_each_login_adds_a_session(manager, store):
    await manager.register("ana@example.com", PASSWORD, "Ana")
    await manager.login("ana@example.com", PASSWORD)
    await manager.login("ana@example.com", PASSWORD)
    assert len(store.refresh_tokens) == 3


# ═══════════════════════════════════════════════════════════
# Refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_is_single_use(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    old = result.tokens.refresh_token

    new = await manager.refresh(old)
    assert old not in store.refresh_tokens
    assert new.refresh_token in store.refresh_tokens

    with pytest.raises(InvalidOrExpiredToken):
        await manager.refresh(old)


class SlowLookupStore(MemoryCredentialStore):
    """Yields to the event loop after reading a token, like a real database."""

    async def get_refresh_token(self, token):
        record = await super().get_refresh_token(token)
        await asyncio.sleep(0)
        return record


@pytest.mark.asyncio
async def test_concurrent_refresh_only_one_wins(codec):
    """Both redemptions find the row; only the one whose delete lands wins."""
    store = SlowLookupStore()
    manager = SessionManager(store=store, codec=codec, hasher=PasswordHasher(rounds=4))
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    token = result.tokens.refresh_token

    outcomes = await asyncio.gather(
        manager.refresh(token), manager.refresh(token), return_exceptions=True
    )
    wins = [o for o in outcomes if not isinstance(o, Exception)]
    losses = [o for o in outcomes if isinstance(o, InvalidOrExpiredToken)]
    assert len(wins) == 1
    assert len(losses) == 1
    # The loser minted nothing: one live token, the winner's
    assert list(store.refresh_tokens) == [wins[0].refresh_token]


@pytest.mark.asyncio
async def test_refresh_expired_row(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    token = result.tokens.refresh_token
    store.refresh_tokens[token] = replace(
        store.refresh_tokens[token],
        expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
    )

    with pytest.raises(InvalidOrExpiredToken):
        await manager.refresh(token)


@pytest.mark.asyncio
async def test_refresh_forged_token_on_record(manager, store):
    """A row that exists but whose signature doesn't verify is invalid_token."""
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    forged = TokenCodec("other-access", "other-refresh").sign(
        {"sub": str(result.user.id)}, TokenKind.REFRESH
    )
    await store.create_refresh_token(
        forged, result.user.id, datetime.now(timezone.utc) + timedelta(days=1)
    )

    with pytest.raises(InvalidToken):
        await manager.refresh(forged)
    # The forged row is left alone, not consumed
    assert forged in store.refresh_tokens


@pytest.mark.asyncio
async def test_refresh_subject_mismatch(manager, store, codec):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    token = codec.sign({"sub": str(uuid.uuid4())}, TokenKind.REFRESH)
    await store.create_refresh_token(
        token, result.user.id, datetime.now(timezone.utc) + timedelta(days=1)
    )

    with pytest.raises(InvalidToken):
        await manager.refresh(token)


@pytest.mark.asyncio
async def test_refresh_unknown_token(manager):
    with pytest.raises(InvalidOrExpiredToken):
        await manager.refresh("not-a-token")


# ═══════════════════════════════════════════════════════════
# Logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_logout_then_refresh_fails(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    token = result.tokens.refresh_token

    await manager.logout(token)
    assert token not in store.refresh_tokens
    with pytest.raises(InvalidOrExpiredToken):
        await manager.refresh(token)


@pytest.mark.asyncio
async def test_logout_twice_and_unknown(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    await manager.logout(result.tokens.refresh_token)
    await manager.logout(result.tokens.refresh_token)
    await manager.logout("never-issued")


@pytest.mark.asyncio
async def test_logout_leaves_other_sessions(manager, store):
    first = await manager.register("ana@example.com", PASSWORD, "Ana")
    second = await manager.login("ana@example.com", PASSWORD)

    await manager.logout(first.tokens.refresh_token)
    assert second.tokens.refresh_token in store.refresh_tokens


# ═══════════════════════════════════════════════════════════
# Authenticate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_authenticate_returns_identity(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    identity = manager.authenticate(result.tokens.access_token)
    assert identity.user_id == result.user.id
    assert identity.email == "ana@example.com"


def test_authenticate_expired(manager, codec):
    token = codec.sign(
        {"sub": str(uuid.uuid4()), "email": "ana@example.com"},
        TokenKind.ACCESS,
        now=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    with pytest.raises(Unauthorized) as exc:
        manager.authenticate(token)
    assert exc.value.reason == "expired"
    assert isinstance(exc.value.__cause__, TokenExpiredError)


def test_authenticate_wrong_secret(manager):
    token = TokenCodec("other-access", "other-refresh").sign(
        {"sub": str(uuid.uuid4())}, TokenKind.ACCESS
    )
    with pytest.raises(Unauthorized) as exc:
        manager.authenticate(token)
    assert exc.value.reason == "invalid_signature"
    assert isinstance(exc.value.__cause__, InvalidSignatureError)


def test_authenticate_expired_and_forged_render_the_same(manager, codec):
    expired = codec.sign(
        {"sub": str(uuid.uuid4())},
        TokenKind.ACCESS,
        now=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    forged = TokenCodec("x-access", "x-refresh").sign(
        {"sub": str(uuid.uuid4())}, TokenKind.ACCESS
    )
    errors = []
    for token in (expired, forged):
        with pytest.raises(Unauthorized) as exc:
            manager.authenticate(token)
        errors.append(exc.value.to_dict())
    assert errors[0] == errors[1]


@pytest.mark.asyncio
async def test_authenticate_rejects_refresh_token(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    with pytest.raises(Unauthorized):
        manager.authenticate(result.tokens.refresh_token)


def test_authenticate_non_uuid_subject(manager, codec):
    token = codec.sign({"sub": "42"}, TokenKind.ACCESS)
    with pytest.raises(Unauthorized):
        manager.authenticate(token)


@pytest.mark.asyncio
async def test_authenticate_never_touches_store(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    store.users.clear()
    store.refresh_tokens.clear()
    # Still valid: access tokens live until they expire
    assert manager.authenticate(result.tokens.access_token).user_id == result.user.id


# ═══════════════════════════════════════════════════════════
# Profile / password
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_change_password(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    await manager.change_password(result.user.id, PASSWORD, "new-password-1")

    with pytest.raises(InvalidCredentials):
        await manager.login("ana@example.com", PASSWORD)
    await manager.login("ana@example.com", "new-password-1")


@pytest.mark.asyncio
async def test_change_password_keeps_sessions(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    await manager.change_password(result.user.id, PASSWORD, "new-password-1")
    assert result.tokens.refresh_token in store.refresh_tokens


@pytest.mark.asyncio
async def test_change_password_wrong_current(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    with pytest.raises(InvalidCurrentPassword):
        await manager.change_password(result.user.id, "wrong-password", "new-password-1")


@pytest.mark.asyncio
async def test_change_password_too_short(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    with pytest.raises(ValidationError) as exc:
        await manager.change_password(result.user.id, PASSWORD, "short")
    assert "new_password" in exc.value.detail["fields"]


@pytest.mark.asyncio
async def test_get_profile_unknown_user(manager):
    with pytest.raises(NotFound):
        await manager.get_profile(uuid.uuid4())


@pytest.mark.asyncio
async def test_update_profile(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    profile = await manager.update_profile(
        result.user.id, display_name="  Ana B  ", email="anab@example.com"
    )
    assert profile.display_name == "Ana B"
    assert profile.email == "anab@example.com"
    assert profile.updated_at >= result.user.updated_at


@pytest.mark.asyncio
async def test_update_profile_nothing_to_change(manager):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    profile = await manager.update_profile(result.user.id)
    assert profile == result.user


@pytest.mark.asyncio
async def test_update_profile_email_taken(manager):
    await manager.register("ana@example.com", PASSWORD, "Ana")
    bob = await manager.register("bob@example.com", PASSWORD, "Bob")
    with pytest.raises(DuplicateEmail):
        await manager.update_profile(bob.user.id, email="ana@example.com")


# ═══════════════════════════════════════════════════════════
# Store failures
# ═══════════════════════════════════════════════════════════


class BrokenStore(MemoryCredentialStore):
    async def get_user_by_email(self, email):
        raise StoreError("connection reset")


@pytest.mark.asyncio
async def test_store_failure_becomes_internal_error(codec):
    manager = SessionManager(BrokenStore(), codec, PasswordHasher(rounds=4))
    with capture_logs() as logs, pytest.raises(InternalError) as exc:
        await manager.login("ana@example.com", PASSWORD)
    assert isinstance(exc.value.__cause__, StoreError)

    # Logged once, with the traceback, where the failure happened
    [entry] = [e for e in logs if e["event"] == "auth.internal_error"]
    assert entry["exc_info"]
    assert entry["operation"] == "login"


# ═══════════════════════════════════════════════════════════
# End-to-end scenario
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_login_refresh_reuse_scenario(manager):
    registered = await manager.register("a@x.com", "password123", "A")
    logged_in = await manager.login("a@x.com", "password123")

    assert logged_in.user.id == registered.user.id
    assert logged_in.tokens != registered.tokens

    rotated = await manager.refresh(logged_in.tokens.refresh_token)
    assert rotated.refresh_token != logged_in.tokens.refresh_token
    with pytest.raises(InvalidOrExpiredToken):
        await manager.refresh(logged_in.tokens.refresh_token)

    # The registration session is untouched by the rotation
    await manager.refresh(registered.tokens.refresh_token)


@pytest.mark.asyncio
async def test_logout_unknown_token_leaves_other_users(manager, store):
    ana = await manager.register("ana@example.com", PASSWORD, "Ana")
    bob = await manager.register("bob@example.com", PASSWORD, "Bob")

    await manager.logout("never-issued")
    assert ana.tokens.refresh_token in store.refresh_tokens
    assert bob.tokens.refresh_token in store.refresh_tokens


# ═══════════════════════════════════════════════════════════
# Email format
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("email", ["a@x.com\n", "a@x.com ", "a b@x.com", "@x.com", "a@x"])
async def test_register_rejects_malformed_email(manager, store, email):
    with pytest.raises(ValidationError) as exc:
        await manager.register(email, PASSWORD, "A")
    assert "email" in exc.value.detail["fields"]
    assert store.users == {}


@pytest.mark.asyncio
async def test_update_profile_rejects_trailing_newline(manager, store):
    result = await manager.register("ana@example.com", PASSWORD, "Ana")
    with pytest.raises(ValidationError):
        await manager.update_profile(result.user.id, email="ana@example.com\n")
    assert store.users[result.user.id].email == "ana@example.com"


# ═══════════════════════════════════════════════════════════
# Lost races on the unique email constraint
# ═══════════════════════════════════════════════════════════


class RacingStore(MemoryCredentialStore):
    """Email lookups miss, as if a rival request committed right after them."""

    def __init__(self):
        super().__init__()
        self.blind = False

    async def get_user_by_email(self, email):
        if self.blind:
            return None
        return await super().get_user_by_email(email)


@pytest.fixture()
def racing_store():
    return RacingStore()


@pytest.fixture()
def racing_manager(racing_store, codec):
    return SessionManager(store=racing_store, codec=codec, hasher=PasswordHasher(rounds=4))


@pytest.mark.asyncio
async def test_register_race_maps_constraint_to_duplicate(racing_manager, racing_store):
    await racing_manager.register("ana@example.com", PASSWORD, "Ana")
    racing_store.blind = True

    with pytest.raises(DuplicateEmail) as exc:
        await racing_manager.register("ana@example.com", PASSWORD, "Other Ana")
    assert isinstance(exc.value.__cause__, ConstraintViolation)
    assert await racing_store.count_users() == 1
    assert len(racing_store.refresh_tokens) == 1


@pytest.mark.asyncio
async def test_update_profile_race_maps_constraint_to_duplicate(
    racing_manager, racing_store
):
    await racing_manager.register("ana@example.com", PASSWORD, "Ana")
    bob = await racing_manager.register("bob@example.com", PASSWORD, "Bob")
    racing_store.blind = True

    with pytest.raises(DuplicateEmail) as exc:
        await racing_manager.update_profile(bob.user.id, email="ana@example.com")
    assert isinstance(exc.value.__cause__, ConstraintViolation)
    assert racing_store.users[bob.user.id].email == "bob@example.com"
    assert await racing_store.count_users() == 2
