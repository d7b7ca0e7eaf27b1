"""Authentication service - orchestrates signup, login and token lifecycle."""

import logging
from datetime import timedelta
from uuid import UUID

from pydantic import ValidationError

from auth.config import AuthConfig
from auth.database import RefreshTokenDatabase, UserDatabase
from auth.exceptions import (
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidEmailError,
    InvalidTokenError,
    RateLimitedError,
    RefreshTokenNotFoundError,
    RefreshTokenRevokedError,
    TokenExpiredError,
    WeakPasswordError,
)
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.random_tokens import generate_token
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.tokens import TokenSigner, hash_token
from auth.types import (
    AuthenticatedUser,
    ClientContext,
    SignupRequest,
    TokenClaims,
    TokenPair,
    User,
)
from clients.email_client import EmailGatewayClient, EmailGatewayError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_NO_CLIENT = ClientContext()


def normalize_email(email: str) -> str:
    """Trim and lowercase. Every lookup and insert goes through this."""
    return email.strip().lower()


class AuthService:
    """Orchestrates password, email-verification and magic link authentication.

    Handles:
    - Signup (with best-effort verification email)
    - Password login (with enumeration resistance and rate limiting)
    - Email verification and magic link redemption (single-use)
    - Refresh token rotation, logout, logout-all

    Holds no mutable state of its own. Everything durable lives in Postgres
    and Valkey, and the invariants that must survive concurrent requests
    (single-use redemption, single-use rotation) are enforced there with
    conditional updates.
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserDatabase,
        refresh_tokens: RefreshTokenDatabase,
        signer: TokenSigner,
        passwords: PasswordHasher,
        rate_limiter: RateLimiter,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._users = users
        self._refresh_tokens = refresh_tokens
        self._signer = signer
        self._passwords = passwords
        self._rate_limiter = rate_limiter
        self._email_client = email_client
        self._security_logger = security_logger

    def _audit_committed(self, event: SecurityEvent, **fields) -> None:
        """Record an event for a store change that has already committed.

        The change stands even when the audit write fails, so that failure is
        logged instead of raised.
        """
        try:
            self._security_logger.log(event, **fields)
        except Exception as e:
            logger.error(f"Security event {event.value} not recorded: {e}")

    # ------------------------------------------------------------------
    # Signup and verification
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str) -> User:
        """Register a new, unverified user and email them a verification link.

        A failed verification email is logged and swallowed; the account
        exists either way and the user can ask for a new link.

        Raises:
            InvalidEmailError: Malformed email.
            WeakPasswordError: Password too short (or too long for bcrypt).
            AlreadyRegisteredError: Email already has an account.
        """
        email = normalize_email(email)
        try:
            SignupRequest(email=email, password=password)
        except ValidationError as e:
            raise InvalidEmailError("Invalid email address") from e

        self._check_password(password)

        verification_token = generate_token()
        user = self._users.create_user(
            email=email,
            password_hash=self._passwords.hash(password),
            verification_token=verification_token,
            verification_expires_at=now_utc() + timedelta(hours=self._config.verification_expiry_hours),
        )

        self._audit_committed(
            SecurityEvent.USER_SIGNED_UP,
            email=user.email,
            user_id=user.id,
        )

        self._send_verification_email(user.email, verification_token)

        return user

    def _check_password(self, password: str) -> None:
        if len(password) < self._config.min_password_length:
            raise WeakPasswordError(
                f"Password must be at least {self._config.min_password_length} characters"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise WeakPasswordError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    def _send_verification_email(self, email: str, token: str) -> None:
        try:
            self._email_client.send_verification_email(email=email, token=token)
        except EmailGatewayError as e:
            logger.warning(f"Verification email to {email} not sent: {e}")

    def resend_verification(self, email: str) -> None:
        """Issue a fresh verification link, replacing the previous one.

        Unknown and already-verified emails return normally with no side
        effect, so the response reveals nothing about the account.

        Raises:
            EmailGatewayError: If the email can't be sent.
        """
        user = self._users.get_user_by_email(normalize_email(email))
        if user is None or user.email_verified:
            return

        token = generate_token()
        expires_at = now_utc() + timedelta(hours=self._config.verification_expiry_hours)
        if not self._users.set_verification_token(user.id, token, expires_at):
            return

        self._email_client.send_verification_email(email=user.email, token=token)

    def verify_email(self, token: str, client: ClientContext | None = None) -> AuthenticatedUser:
        """Redeem a verification token. Doubles as a login.

        Raises:
            TokenExpiredError: Token exists but is past its expiry.
            InvalidTokenError: No such token (never issued, or already used).
        """
        client = client or _NO_CLIENT

        user = self._users.verify_email(token)
        if user is None:
            if self._users.verification_token_exists(token):
                raise TokenExpiredError("Verification link has expired")
            raise InvalidTokenError("Invalid verification link")

        self._audit_committed(
            SecurityEvent.EMAIL_VERIFIED,
            email=user.email,
            user_id=user.id,
            client=client,
        )

        return self._start_session(user, client)

    # ------------------------------------------------------------------
    # Password login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, client: ClientContext | None = None) -> AuthenticatedUser:
        """Authenticate with email and password.

        Unknown email and wrong password raise the same error after the same
        amount of bcrypt work.

        Raises:
            RateLimitedError: Too many attempts for this email.
            InvalidCredentialsError: Unknown email or wrong password.
            EmailNotVerifiedError: Correct password, unverified email.
        """
        client = client or _NO_CLIENT
        email = normalize_email(email)

        try:
            self._rate_limiter.check_rate_limit(email)
        except RateLimitedError:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                email=email,
                client=client,
            )
            raise

        user = self._users.get_user_by_email(email)

        if user is None:
            self._passwords.verify_dummy(password)
            self._log_login_failure(email, None, client, "user_not_found")
            raise InvalidCredentialsError("Invalid email or password")

        if not self._passwords.verify(password, user.password_hash):
            self._log_login_failure(email, user.id, client, "bad_password")
            raise InvalidCredentialsError("Invalid email or password")

        if not user.email_verified:
            self._log_login_failure(email, user.id, client, "email_not_verified")
            raise EmailNotVerifiedError("Email address has not been verified")

        self._rate_limiter.reset_rate_limit(email)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=user.email,
            user_id=user.id,
            client=client,
        )

        return self._start_session(user, client)

    def _log_login_failure(
        self,
        email: str,
        user_id: UUID | None,
        client: ClientContext,
        reason: str,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.LOGIN_FAILED,
            email=email,
            user_id=user_id,
            client=client,
            details={"reason": reason},
        )

    # ------------------------------------------------------------------
    # Magic links
    # ------------------------------------------------------------------

    def request_magic_link(self, email: str) -> None:
        """Email a 15-minute single-use login link.

        Unknown emails return normally with nothing stored and nothing sent.
        That path skips a database write and a gateway round trip, so response
        timing can still hint at which emails are registered; callers that
        need to hide this should answer asynchronously.

        Raises:
            EmailGatewayError: If the email can't be sent.
        """
        user = self._users.get_user_by_email(normalize_email(email))
        if user is None:
            return

        token = generate_token()
        expires_at = now_utc() + timedelta(minutes=self._config.magic_link_expiry_minutes)
        if not self._users.set_magic_link_token(user.email, token, expires_at):
            return

        self._audit_committed(
            SecurityEvent.MAGIC_LINK_REQUESTED,
            email=user.email,
            user_id=user.id,
        )

        self._email_client.send_magic_link_email(email=user.email, token=token)

    def login_with_magic_link(self, token: str, client: ClientContext | None = None) -> AuthenticatedUser:
        """Redeem a magic link token.

        The token is cleared by the same conditional update that finds it, so
        of two concurrent redemptions exactly one gets a session.

        Raises:
            TokenExpiredError: Token exists but is past its expiry.
            InvalidTokenError: No such token (never issued, reissued, or used).
        """
        client = client or _NO_CLIENT

        user = self._users.redeem_magic_link_token(token)
        if user is None:
            if self._users.magic_link_token_exists(token):
                self._security_logger.log(
                    SecurityEvent.MAGIC_LINK_EXPIRED,
                    client=client,
                )
                raise TokenExpiredError("Magic link has expired")
            raise InvalidTokenError("Invalid magic link")

        self._audit_committed(
            SecurityEvent.MAGIC_LINK_REDEEMED,
            email=user.email,
            user_id=user.id,
            client=client,
        )

        return self._start_session(user, client)

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    def _store_expiry(self, tokens: TokenPair):
        return tokens.expires_at + timedelta(days=self._config.refresh_store_grace_days)

    def _start_session(self, user: User, client: ClientContext) -> AuthenticatedUser:
        """Issue a token pair and persist its refresh token."""
        tokens = self._signer.issue(user.id, user.email, user.role)
        self._refresh_tokens.create(
            user_id=user.id,
            token_hash=hash_token(tokens.refresh_token),
            expires_at=self._store_expiry(tokens),
            user_agent=client.user_agent,
            ip_address=client.ip_address,
        )
        return AuthenticatedUser(user=user, tokens=tokens)

    def refresh(self, refresh_token: str, client: ClientContext | None = None) -> AuthenticatedUser:
        """Exchange a refresh token for a new pair. The old token is revoked.

        Raises:
            TokenExpiredError: Signed claim or stored record has expired.
            InvalidTokenError: Bad signature or format.
            WrongTokenTypeError: An access token was presented.
            RefreshTokenNotFoundError: No stored record for this token.
            RefreshTokenRevokedError: Already rotated, logged out, or lost a
                race with a concurrent rotation of the same token.
        """
        client = client or _NO_CLIENT

        claims = self._signer.validate_refresh(refresh_token)
        token_hash = hash_token(refresh_token)

        stored = self._refresh_tokens.get_by_token_hash(token_hash)
        if stored is None:
            raise RefreshTokenNotFoundError("Refresh token not recognized")
        if stored.user_id != claims.user_id:
            raise InvalidTokenError("Refresh token does not match its record")
        if stored.is_revoked:
            self._log_reuse(stored.user_id, client)
            raise RefreshTokenRevokedError("Refresh token has been revoked")
        if stored.expires_at <= now_utc():
            raise TokenExpiredError("Refresh token has expired")

        user = self._users.get_user_by_id(stored.user_id)
        if user is None:
            raise RefreshTokenNotFoundError("Refresh token owner no longer exists")

        tokens = self._signer.issue(user.id, user.email, user.role)
        rotated = self._refresh_tokens.rotate(
            old_token_hash=token_hash,
            user_id=user.id,
            new_token_hash=hash_token(tokens.refresh_token),
            expires_at=self._store_expiry(tokens),
            user_agent=client.user_agent,
            ip_address=client.ip_address,
        )
        if rotated is None:
            self._log_reuse(user.id, client)
            raise RefreshTokenRevokedError("Refresh token has been revoked")

        self._audit_committed(
            SecurityEvent.REFRESH_TOKEN_ROTATED,
            email=user.email,
            user_id=user.id,
            client=client,
        )

        return AuthenticatedUser(user=user, tokens=tokens)

    def _log_reuse(self, user_id: UUID, client: ClientContext) -> None:
        self._security_logger.log(
            SecurityEvent.REFRESH_TOKEN_REUSED,
            user_id=user_id,
            client=client,
        )

    def logout(self, refresh_token: str) -> None:
        """Revoke one refresh token.

        Safe to call with an unknown or already-revoked token.
        """
        token_hash = hash_token(refresh_token)
        stored = self._refresh_tokens.get_by_token_hash(token_hash)
        if stored is None:
            return

        if self._refresh_tokens.revoke(token_hash):
            self._audit_committed(SecurityEvent.LOGGED_OUT, user_id=stored.user_id)

    def logout_all(self, user_id: UUID) -> int:
        """Revoke every active refresh token for the user. Returns how many."""
        revoked = self._refresh_tokens.revoke_all_for_user(user_id)
        self._audit_committed(
            SecurityEvent.LOGGED_OUT_ALL,
            user_id=user_id,
            details={"revoked": revoked},
        )
        return revoked

    def authenticate(self, access_token: str) -> TokenClaims:
        """Validate an access token presented on an API request.

        Raises:
            TokenExpiredError, InvalidTokenError, WrongTokenTypeError
        """
        return self._signer.validate_access(access_token)
