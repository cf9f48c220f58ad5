import pytest

from shiftboard.auth import AuthService
from shiftboard.errors import AuthError, ValidationFailed


def test_sign_up_and_restore_session() -> None:
    auth = AuthService()
    session = auth.sign_up("Owner@Example.com ", "secret1")
    assert session.user.email == "owner@example.com"
    assert auth.get_session(session.access_token) == session.user


def test_duplicate_email_rejected() -> None:
    auth = AuthService()
    auth.sign_up("a@example.com", "secret1")
    with pytest.raises(ValidationFailed):
        auth.sign_up("a@example.com", "another1")


@pytest.mark.parametrize(("email", "password"), [("", "secret1"), ("a@b.c", "12345")])
def test_credentials_validated(email: str, password: str) -> None:
    with pytest.raises(ValidationFailed):
        AuthService().sign_up(email, password)


def test_sign_in_and_out() -> None:
    auth = AuthService()
    auth.sign_up("a@example.com", "secret1")
    with pytest.raises(AuthError):
        auth.sign_in("a@example.com", "secret2")

    session = auth.sign_in("a@example.com", "secret1")
    auth.sign_out(session.access_token)
    with pytest.raises(AuthError):
        auth.get_session(session.access_token)


def test_delete_account_drops_every_session() -> None:
    auth = AuthService()
    first = auth.sign_up("a@example.com", "secret1")
    second = auth.sign_in("a@example.com", "secret1")

    auth.delete_account(first.access_token)

    for token in (first.access_token, second.access_token):
        with pytest.raises(AuthError):
            auth.get_session(token)
    with pytest.raises(AuthError):
        auth.sign_in("a@example.com", "secret1")


def test_delete_account_requires_a_valid_token() -> None:
    with pytest.raises(AuthError):
        AuthService().delete_account("forged")
