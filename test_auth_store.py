"""Auth store: status machine, error capture, profile composition."""

import asyncio

import pytest

from odyssea.app.state.auth_store import AuthStore, is_profile_complete
from odyssea.app.state.profile_store import UserProfileStore
from odyssea.shared.domain.models import AuthStatus, UserProfile
from odyssea.shared.domain.profiles import UserProfileService
from odyssea.shared.infrastructure.remote import paths


def make_auth(remote, identity, bus=None, storage=None):
    profiles = UserProfileStore(UserProfileService(remote), event_bus=bus, storage=storage)
    return AuthStore(identity, profiles, event_bus=bus, storage=storage)


def record_statuses(auth):
    seen = []

    def listener():
        if not seen or seen[-1] != auth.status:
            seen.append(auth.status)

    auth.subscribe(listener)
    return seen


@pytest.mark.asyncio
async def test_sign_in_with_valid_credentials(remote, identity):
    identity.add_account("ana@example.com", "secret123", display_name="Ana")
    auth = make_auth(remote, identity)
    statuses = record_statuses(auth)

    assert await auth.sign_in("ana@example.com", "secret123") is True

    assert statuses == [AuthStatus.CHECKING, AuthStatus.AUTHENTICATED]
    assert auth.status == AuthStatus.AUTHENTICATED
    assert auth.user.email == "ana@example.com"
    assert auth.profile.display_name == "Ana"
    assert auth.error is None
    # Profile was created on first sign-in
    assert auth.user.uid in remote.documents(paths.USERS)


@pytest.mark.asyncio
async def test_sign_in_with_invalid_credentials(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity)

    assert await auth.sign_in("ana@example.com", "wrong-password") is False

    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert auth.error == "Invalid email or password."
    assert auth.user is None
    assert auth.profile is None


@pytest.mark.asyncio
async def test_network_failure_is_captured(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    identity.offline = True
    auth = make_auth(remote, identity)

    assert await auth.sign_in("ana@example.com", "secret123") is False
    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert "connection" in auth.error


@pytest.mark.asyncio
async def test_profile_load_failure_resolves_unauthenticated(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity)
    remote.fail_next_reads(1)

    assert await auth.sign_in("ana@example.com", "secret123") is False
    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert auth.error
    assert auth.profile is None


@pytest.mark.asyncio
async def test_sign_up_sets_display_name_before_profile(remote, identity):
    auth = make_auth(remote, identity)

    assert await auth.sign_up("  Ana Souza ", "ana@example.com", "secret123") is True

    assert auth.status == AuthStatus.AUTHENTICATED
    assert auth.user.display_name == "Ana Souza"
    doc = remote.documents(paths.USERS)[auth.user.uid]
    assert doc["displayName"] == "Ana Souza"
    assert auth.profile.display_name == "Ana Souza"


@pytest.mark.asyncio
async def test_sign_up_weak_password(remote, identity):
    auth = make_auth(remote, identity)
    assert await auth.sign_up("Ana", "ana@example.com", "123") is False
    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert auth.error == "Password must be at least 6 characters."


@pytest.mark.asyncio
async def test_sign_out_clears_even_if_provider_fails(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity)
    await auth.sign_in("ana@example.com", "secret123")
    identity.sign_out_error = RuntimeError("offline")

    await auth.sign_out()

    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert auth.user is None
    assert auth.profile is None
    assert auth.error is None


@pytest.mark.asyncio
async def test_init_listener_is_idempotent_and_follows_identity(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity)

    assert auth.init_listener() is True
    assert auth.init_listener() is False
    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert not auth.is_initializing

    # A session restored by the provider itself (e.g. another screen)
    await identity.sign_in("ana@example.com", "secret123")
    assert auth.status == AuthStatus.CHECKING
    await auth.wait_for_tasks()
    assert auth.status == AuthStatus.AUTHENTICATED
    assert auth.profile is not None

    await identity.sign_out()
    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert auth.profile is None

    auth.dispose()
    assert auth.init_listener() is True


@pytest.mark.asyncio
async def test_update_profile_requires_authentication(remote, identity):
    auth = make_auth(remote, identity)
    assert await auth.update_profile({"bio": "hi"}) is False
    assert remote.writes == []


@pytest.mark.asyncio
async def test_update_profile_uses_server_copy(remote, identity):
    identity.add_account("ana@example.com", "secret123", display_name="Ana")
    auth = make_auth(remote, identity)
    await auth.sign_in("ana@example.com", "secret123")
    assert not auth.is_profile_complete(auth.profile)

    assert await auth.update_profile({"home_country": " Brasil ", "bio": "Viajante"}) is True

    assert auth.profile.home_country == "Brasil"
    assert auth.profile.bio == "Viajante"
    assert is_profile_complete(auth.profile)


@pytest.mark.asyncio
async def test_update_profile_failure_records_error(remote, identity):
    identity.add_account("ana@example.com", "secret123", display_name="Ana")
    auth = make_auth(remote, identity)
    await auth.sign_in("ana@example.com", "secret123")
    remote.fail_next_writes(1)

    assert await auth.update_profile({"bio": "x"}) is False
    assert auth.error
    assert auth.status == AuthStatus.AUTHENTICATED


@pytest.mark.asyncio
async def test_update_avatar_updates_identity_and_profile(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity)
    await auth.sign_in("ana@example.com", "secret123")

    url = await auth.update_avatar(b"\x89PNG...")

    assert url.startswith("memory://odyssea-local/profilePhotos/")
    assert auth.user.photo_url == url
    assert auth.profile.avatar_url == url
    assert identity.current_user.photo_url == url
    assert remote.documents(paths.USERS)[auth.user.uid]["avatarUrl"] == url


@pytest.mark.asyncio
async def test_profile_update_finishing_after_sign_out_is_discarded(remote, identity):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity)
    await auth.sign_in("ana@example.com", "secret123")

    remote.pause_writes()
    pending = asyncio.create_task(auth.update_profile({"bio": "late"}))
    await asyncio.sleep(0)
    await auth.sign_out()
    remote.resume_writes()

    assert await pending is False
    assert auth.profile is None
    assert auth.status == AuthStatus.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_profile_load_finishing_after_sign_out_is_discarded(remote, identity, storage):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity, storage=storage)

    # The first sign-in creates the profile document; hold that write
    remote.pause_writes()
    pending = asyncio.create_task(auth.sign_in("ana@example.com", "secret123"))
    await asyncio.sleep(0)
    assert auth.status == AuthStatus.CHECKING
    await auth.sign_out()
    remote.resume_writes()

    assert await pending is False
    assert auth.profile is None
    assert auth.profile_store.profile is None
    assert auth.status == AuthStatus.UNAUTHENTICATED
    assert storage.get("user-profile-store") == {"profile": None}


@pytest.mark.asyncio
async def test_user_is_cached_between_runs(remote, identity, storage):
    identity.add_account("ana@example.com", "secret123")
    auth = make_auth(remote, identity, storage=storage)
    await auth.sign_in("ana@example.com", "secret123")
    uid = auth.user.uid

    restored = make_auth(remote, identity, storage=storage)
    restored.hydrate()
    restored.profile_store.hydrate()

    assert restored.user.uid == uid
    assert restored.profile.uid == uid
    assert restored.status == AuthStatus.IDLE


@pytest.mark.parametrize(
    "display_name, home_country, expected",
    [
        ("Ana", "Brasil", True),
        ("  ", "Brasil", False),
        ("Ana", "", False),
        ("Ana", None, False),
    ],
)
def test_is_profile_complete(display_name, home_country, expected):
    profile = UserProfile(uid="u1", display_name=display_name, home_country=home_country)
    assert is_profile_complete(profile) is expected
    assert is_profile_complete(None) is False
