import hashlib
import hmac
import logging
import secrets
import uuid

from pydantic import BaseModel

from shiftboard.errors import AuthError, ValidationFailed

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 6
_PBKDF2_ROUNDS = 200_000


class User(BaseModel):
    id: str
    email: str


class AuthSession(BaseModel):
    access_token: str
    user: User


class _Account(BaseModel):
    user: User
    salt: bytes
    password_hash: bytes


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS
    )


class AuthService:
    """
    Email/password accounts with bearer-token sessions, held in memory.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, _Account] = {}
        self._sessions: dict[str, User] = {}

    @staticmethod
    def _check_credentials(email: str, password: str) -> str:
        email = email.strip().lower()
        if not email or not password:
            raise ValidationFailed("enter an email address and a password")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationFailed(
                f"password must be at least {PASSWORD_MIN_LENGTH} characters"
            )
        return email

    def _open_session(self, user: User) -> AuthSession:
        token = secrets.token_urlsafe(32)
        self._sessions[token] = user
        return AuthSession(access_token=token, user=user)

    def sign_up(self, email: str, password: str) -> AuthSession:
        email = self._check_credentials(email, password)
        if email in self._accounts:
            raise ValidationFailed("an account with this email already exists")

        salt = secrets.token_bytes(16)
        user = User(id=str(uuid.uuid4()), email=email)
        self._accounts[email] = _Account(
            user=user, salt=salt, password_hash=_hash_password(password, salt)
        )
        logger.info("signed up user %s", user.id)
        return self._open_session(user)

    def sign_in(self, email: str, password: str) -> AuthSession:
        email = self._check_credentials(email, password)
        account = self._accounts.get(email)
        if account is None or not hmac.compare_digest(
            account.password_hash, _hash_password(password, account.salt)
        ):
            raise AuthError("invalid email or password")
        return self._open_session(account.user)

    def sign_out(self, token: str) -> None:
        self._sessions.pop(token, None)

    def get_session(self, token: str | None) -> User:
        user = self._sessions.get(token or "")
        if user is None:
            raise AuthError("not signed in")
        return user

    def delete_account(self, token: str | None) -> User:
        """Verify the caller's token, then remove the account and its sessions."""
        user = self.get_session(token)
        self._accounts.pop(user.email, None)
        for t, u in list(self._sessions.items()):
            if u.id == user.id:
                del self._sessions[t]
        logger.info("deleted account %s", user.id)
        return user
