import pytest

from knowme.core.exceptions import DuplicateKey, InvalidCredentials
from knowme.core.security import hash_password, redact_token, verify_password
from knowme.models.profile import ProfileUpdate
from knowme.models.user import UserTier
from knowme.services.accounts import AccountService
from knowme.services.profiles import ProfileService


@pytest.fixture
def accounts(store) -> AccountService:
    return AccountService(store)


def test_password_hash_round_trip():
    encoded = hash_password("s3cret", "pepper", iterations=1000)
    assert encoded.startswith("pbkdf2_sha256$1000$")
    assert verify_password("s3cret", encoded, "pepper")
    assert not verify_password("s3cret", encoded, "other")
    assert not verify_password("wrong", encoded, "pepper")
    assert not verify_password("s3cret", None)


def test_redact_token():
    assert redact_token("abcdefghijklmnop") != "abcdefghijklmnop"


async def test_signup_creates_profile_card(accounts, store):
    user = await accounts.signup("Alice Johnson", " Alice@Example.com ", "pw", UserTier.PREMIUM)
    assert user.email == "alice@example.com"
    assert user.is_premium
    profile = await store.profiles.get_by_user(user.id)
    assert profile.full_name == "Alice Johnson"
    assert profile.first_name == "Alice"


async def test_signup_rejects_taken_email(accounts):
    await accounts.signup("Alice", "alice@example.com", "pw")
    with pytest.raises(DuplicateKey):
        await accounts.signup("Alice Again", "ALICE@example.com", "pw")


async def test_login_and_logout(accounts):
    await accounts.signup("Bob", "bob@example.com", "pw")
    user, token = await accounts.login("BOB@example.com", "pw")
    assert (await accounts.current_user(token)).id == user.id

    await accounts.logout(token)
    assert await accounts.current_user(token) is None


async def test_login_with_bad_password(accounts):
    await accounts.signup("Bob", "bob@example.com", "pw")
    with pytest.raises(InvalidCredentials):
        await accounts.login("bob@example.com", "nope")
    with pytest.raises(InvalidCredentials):
        await accounts.login("nobody@example.com", "pw")


async def test_change_password(accounts):
    user = await accounts.signup("Bob", "bob@example.com", "old")
    await accounts.change_password(user, "new")
    await accounts.login("bob@example.com", "new")
    with pytest.raises(InvalidCredentials):
        await accounts.login("bob@example.com", "old")


async def test_update_own_profile(accounts, store):
    user = await accounts.signup("Carol White", "carol@example.com", "pw")
    profiles = ProfileService(store)
    updated = await profiles.update_own(
        user.id,
        ProfileUpdate(short_bio="Designer", phonetic_text="KAIR-ul", links=["https://example.com", ""]),
    )
    assert updated.short_bio == "Designer"
    assert updated.phonetic_text == "KAIR-ul"
    assert updated.links == ["https://example.com"]
    assert updated.user_id == user.id
