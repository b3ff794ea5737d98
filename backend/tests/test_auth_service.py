import pytest
from sqlalchemy.exc import OperationalError

from todoapi.core.exceptions import (
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    ResourceNotFoundError,
)
from todoapi.core.security import AccessTokenClaims, AccessTokenCodec, InvalidToken
from todoapi.core.database import SessionLocal
from todoapi.models.user import User
from todoapi.services.auth_service import AuthSessionService
from todoapi.services.credential_store import CredentialStore

REFRESH_TTL = 7 * 24 * 3600


def _service(db_session, clock):
    codec = AccessTokenCodec("service-test-secret-0123456789abcdef", access_ttl_seconds=900, clock=clock)
    return AuthSessionService(
        CredentialStore(db_session),
        codec=codec,
        refresh_ttl_seconds=REFRESH_TTL,
        clock=clock,
    )


def _reload(db_session, user_id):
    db_session.expire_all()
    return db_session.query(User).filter(User.id == user_id).one()


class _StubStore:
    """Store double for paths the database constraints make unreachable."""

    def __init__(self, user=None, fail_on_clear=False):
        self.user = user
        self.fail_on_clear = fail_on_clear
        self.lookups = 0
        self.cleared = False
        self.rolled_back = False

    def find_by_refresh_token(self, token):
        self.lookups += 1
        return self.user

    def clear_refresh_token_if_current(self, user_id, expected_token):
        if self.fail_on_clear:
            raise OperationalError("UPDATE users", {}, Exception("database is locked"))
        self.cleared = expected_token == self.user.refresh_token
        return self.cleared

    def rollback(self):
        self.rolled_back = True


def test_login_issues_tokens_and_persists_refresh_token(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)

    tokens = service.login("a@example.com", "pw")

    claims = service.codec.verify(tokens.access_token)
    assert isinstance(claims, AccessTokenClaims)
    assert claims.subject == user.id
    assert claims.email == "a@example.com"
    assert tokens.expires_in == 900

    stored = _reload(db_session, user.id)
    assert stored.refresh_token == tokens.refresh_token
    assert stored.refresh_token_expires_at == int(clock() * 1000) + REFRESH_TTL * 1000


def test_login_normalises_email(db_session, make_user, clock):
    make_user()
    tokens = _service(db_session, clock).login("  A@Example.COM ", "pw")
    assert tokens.refresh_token


def test_unknown_email_and_wrong_password_fail_identically(db_session, make_user, clock):
    make_user()
    service = _service(db_session, clock)

    with pytest.raises(InvalidCredentialsError) as unknown:
        service.login("nobody@example.com", "pw")
    with pytest.raises(InvalidCredentialsError) as wrong:
        service.login("a@example.com", "not-pw")

    assert unknown.value.message == wrong.value.message
    assert unknown.value.status_code == wrong.value.status_code == 401


def test_second_login_replaces_earlier_refresh_token(db_session, make_user, clock):
    make_user()
    service = _service(db_session, clock)

    first = service.login("a@example.com", "pw")
    second = service.login("a@example.com", "pw")

    assert first.refresh_token != second.refresh_token
    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(first.refresh_token)
    assert service.refresh(second.refresh_token).refresh_token


def test_refresh_rotates_token(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")
    clock.advance(30)

    refreshed = service.refresh(login.refresh_token)

    assert refreshed.refresh_token != login.refresh_token
    assert isinstance(service.codec.verify(refreshed.access_token), AccessTokenClaims)
    stored = _reload(db_session, user.id)
    assert stored.refresh_token == refreshed.refresh_token
    assert stored.refresh_token_expires_at == int(clock() * 1000) + REFRESH_TTL * 1000


def test_rotated_token_cannot_be_replayed(db_session, make_user, clock):
    make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")

    service.refresh(login.refresh_token)

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(login.refresh_token)
    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(login.refresh_token)


@pytest.mark.parametrize("presented", [None, "", "   "])
def test_blank_refresh_token_fails_without_touching_storage(presented, clock):
    store = _StubStore()
    service = AuthSessionService(store, refresh_ttl_seconds=REFRESH_TTL, clock=clock)

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(presented)
    assert store.lookups == 0


def test_unknown_refresh_token_fails(db_session, make_user, clock):
    make_user()
    with pytest.raises(InvalidRefreshTokenError):
        _service(db_session, clock).refresh("f" * 64)


def test_expired_refresh_token_is_cleared_and_rejected(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")

    clock.advance(REFRESH_TTL + 1)

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(login.refresh_token)
    stored = _reload(db_session, user.id)
    assert stored.refresh_token is None
    assert stored.refresh_token_expires_at is None


def test_refresh_token_valid_up_to_its_expiry_instant(db_session, make_user, clock):
    make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")

    clock.advance(REFRESH_TTL)

    assert service.refresh(login.refresh_token).refresh_token


def test_missing_expiry_counts_as_expired(clock):
    user = User(id="u-1", name="A", email="a@example.com", password_hash="x",
                refresh_token="t" * 64, refresh_token_expires_at=None)
    store = _StubStore(user=user)
    service = AuthSessionService(store, refresh_ttl_seconds=REFRESH_TTL, clock=clock)

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh("t" * 64)
    assert store.cleared


def test_failed_cleanup_still_reports_unauthenticated(clock):
    user = User(id="u-1", name="A", email="a@example.com", password_hash="x",
                refresh_token="t" * 64, refresh_token_expires_at=int(clock() * 1000) - 1)
    store = _StubStore(user=user, fail_on_clear=True)
    service = AuthSessionService(store, refresh_ttl_seconds=REFRESH_TTL, clock=clock)

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh("t" * 64)
    assert store.rolled_back


def test_only_one_of_two_racing_refreshes_succeeds(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")

    winner = _service(db_session, clock)
    outcomes = {}
    lookup = service.store.find_by_refresh_token

    def lookup_then_lose_race(token):
        found = lookup(token)
        # the other request completes its rotation between our read and write
        outcomes["winner"] = winner.refresh(token)
        return found

    service.store.find_by_refresh_token = lookup_then_lose_race

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(login.refresh_token)

    stored = _reload(db_session, user.id)
    assert stored.refresh_token == outcomes["winner"].refresh_token


def test_logout_clears_refresh_token_and_expiry_together(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")

    service.logout(user.id)

    stored = _reload(db_session, user.id)
    assert stored.refresh_token is None
    assert stored.refresh_token_expires_at is None
    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(login.refresh_token)


def test_access_token_outlives_logout(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)
    login = service.login("a@example.com", "pw")

    service.logout(user.id)

    assert isinstance(service.codec.verify(login.access_token), AccessTokenClaims)
    clock.advance(900)
    assert service.codec.verify(login.access_token) == InvalidToken("expired")


def test_logout_unknown_user_is_not_found(db_session, clock):
    with pytest.raises(ResourceNotFoundError):
        _service(db_session, clock).logout("missing-user")


def test_expired_cleanup_spares_session_started_meanwhile(db_session, make_user, clock):
    user = make_user()
    service = _service(db_session, clock)
    stale = service.login("a@example.com", "pw")
    clock.advance(REFRESH_TTL + 1)

    newer = {}
    lookup = service.store.find_by_refresh_token

    def lookup_then_login_elsewhere(token):
        found = lookup(token)
        # another device logs in between our read and the cleanup
        other = SessionLocal()
        try:
            newer["tokens"] = _service(other, clock).login("a@example.com", "pw")
        finally:
            other.close()
        return found

    service.store.find_by_refresh_token = lookup_then_login_elsewhere

    with pytest.raises(InvalidRefreshTokenError):
        service.refresh(stale.refresh_token)

    stored = _reload(db_session, user.id)
    assert stored.refresh_token == newer["tokens"].refresh_token
    assert stored.refresh_token_expires_at is not None
    assert service.refresh(newer["tokens"].refresh_token).refresh_token
