"""
Authentication Gateway.

Single orchestrator for every staff authentication concern: sign-in
with account lockout, sign-out, password change, email change and the
super-admin password reset.

Authentication is local-first: credentials are checked against the
salted hashes held by ``AccountRepository`` and never wait on the
network.  Successful credential mutations are mirrored to the remote
``admin-auth`` function on the background dispatcher; the mirror's
outcome is logged and otherwise ignored.

Errors
------
- ``AuthError``: bad or missing credentials, locked account, missing
  session, insufficient role.  Lockout and invalid credentials differ
  only in the message.
- ``ValidationError``: a new password or email that breaks the policy.
"""

from __future__ import annotations

import math
import re
import threading
from datetime import datetime, timedelta
from typing import Mapping, Optional

from cityreport.config import AppConfig
from cityreport.errors import AuthError, CityReportError, ValidationError
from cityreport.logger import StructuredLogger
from cityreport.models.account import AdminUser, AuthAccount
from cityreport.models.auth_models import ValidationResult
from cityreport.models.enums import AdminRole, SecurityEventKind
from cityreport.models.session import Session
from cityreport.repositories.account_repository import AccountRepository
from cityreport.services.base_service import BaseService
from cityreport.services.dispatcher import Dispatcher
from cityreport.services.remote_gateway import RemoteGateway
from cityreport.services.security_audit import SecurityAuditService
from cityreport.services.session_manager import SessionManager
from cityreport.utils.general import Clock, utc_now
from cityreport.utils.string_helpers import is_valid_email

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_SYMBOL_RE: re.Pattern[str] = re.compile(r"[@$!%*?&]")

_INVALID_CREDENTIALS: str = "Invalid email or password."
_SESSION_REQUIRED: str = "Session expired. Please sign in again."


class AuthGateway(BaseService):
    """Centralised authentication service.

    Parameters
    ----------
    accounts:
        Staff accounts and their credential hashes.
    sessions:
        Persisted session owner.
    audit:
        Security event sink.
    config:
        Password policy, lockout and sign-in tunables.
    logger:
        Structured JSON logger.
    gateway:
        Remote mirror for credential mutations; ``None`` keeps them
        local-only.
    dispatcher:
        Runs the remote mirror off the caller's thread.
    clock:
        Source of the current UTC time.
    """

    def __init__(
        self,
        accounts: AccountRepository,
        sessions: SessionManager,
        audit: SecurityAuditService,
        config: AppConfig,
        logger: StructuredLogger,
        gateway: Optional[RemoteGateway] = None,
        dispatcher: Optional[Dispatcher] = None,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger)
        self._accounts = accounts
        self._sessions = sessions
        self._audit = audit
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._clock = clock

        self._max_attempts: int = config.MAX_LOGIN_ATTEMPTS
        self._lockout = timedelta(seconds=config.LOCKOUT_DURATION_S)
        self._min_length: int = config.PASSWORD_MIN_LENGTH
        self._signin_min_length: int = config.SIGNIN_MIN_PASSWORD_LENGTH
        self._common_passwords: tuple[str, ...] = tuple(
            item.lower() for item in config.COMMON_PASSWORDS
        )

        # Serialises the read-modify-write of lockout counters.
        self._attempt_lock: threading.Lock = threading.Lock()

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return email.strip().lower()

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Check the basic ``local@domain.tld`` shape of *email*."""
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Email is required.",
            )
        if not is_valid_email(email):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address.",
            )
        return ValidationResult(is_valid=True)

    def validate_password(self, password: str) -> ValidationResult:
        """Enforce the policy for newly chosen passwords.

        Policy: minimum length (12 by default), at least one lowercase
        letter, one uppercase letter, one digit and one of ``@$!%*?&``,
        and no well-known password as a substring (case-insensitive).
        """
        if len(password) < self._min_length:
            return ValidationResult(
                is_valid=False,
                error_message=(
                    f"Password must be at least {self._min_length} characters."
                ),
            )
        if not re.search(r"[a-z]", password):
            return ValidationResult(
                is_valid=False,
                error_message="Password must contain at least one lowercase letter.",
            )
        if not re.search(r"[A-Z]", password):
            return ValidationResult(
                is_valid=False,
                error_message="Password must contain at least one uppercase letter.",
            )
        if not re.search(r"\d", password):
            return ValidationResult(
                is_valid=False,
                error_message="Password must contain at least one digit.",
            )
        if not _SYMBOL_RE.search(password):
            return ValidationResult(
                is_valid=False,
                error_message=(
                    "Password must contain at least one special character "
                    "(@$!%*?&)."
                ),
            )
        lowered = password.lower()
        if any(common in lowered for common in self._common_passwords):
            return ValidationResult(
                is_valid=False,
                error_message="Password is too common.",
            )
        return ValidationResult(is_valid=True)

    # ==================================================================
    # Sign-in / sign-out
    # ==================================================================

    def sign_in(self, email: str, password: str) -> AdminUser:
        """Authenticate a staff member and open a session.

        Raises:
            AuthError: On malformed input, unknown or inactive account,
                active lockout, or wrong password.
        """
        if not email or not password:
            raise AuthError("Email and password are required.")

        email_check = self.validate_email(email)
        if not email_check.is_valid:
            raise AuthError(email_check.error_message or "Invalid email format.")

        if len(password) < self._signin_min_length:
            raise AuthError("Password is too short.")

        normalized = self.normalize_email(email)

        with self._attempt_lock:
            account = self._accounts.get_by_email(normalized)
            if account is None or not account.is_active:
                self._audit.record(
                    SecurityEventKind.LOGIN_FAILED,
                    normalized,
                    "unknown or inactive account",
                )
                raise AuthError(_INVALID_CREDENTIALS)

            now = self._clock()
            if account.locked_until is not None and account.locked_until > now:
                remaining = self._minutes_until(account.locked_until)
                self._audit.record(
                    SecurityEventKind.LOGIN_FAILED, normalized, "account locked",
                )
                raise AuthError(
                    f"Account locked. Try again in {remaining} minute(s)."
                )

            if not self._accounts.verify_password(normalized, password):
                self._register_failure(account)

            account = self._accounts.save(account.model_copy(update={
                "failed_attempts": 0,
                "locked_until": None,
                "last_login_at": now,
            }))

        self._audit.record(SecurityEventKind.LOGIN_SUCCESS, normalized)
        self._logger.info(
            "Sign-in succeeded for %s.", normalized,
            extra={"event": "LOGIN_SUCCESS", "user_id": account.id},
        )

        user = account.to_user()
        self._sessions.create(user)
        return user

    def sign_out(self) -> None:
        """End the current session, if any."""
        self._sessions.destroy(reason="logout")

    # ==================================================================
    # Credential mutations
    # ==================================================================

    def change_password(self, current_password: str, new_password: str) -> None:
        """Replace the signed-in user's password, then end the session.

        Raises:
            AuthError: No valid session, or *current_password* is wrong.
            ValidationError: *new_password* breaks the policy.
        """
        session = self._require_session()
        email = session.user.email

        try:
            account = self._require_account(session.user.id)
            if not self._accounts.verify_password(account.email, current_password):
                raise AuthError("Current password is incorrect.")
            self._check_password_policy(new_password)
            if new_password == current_password:
                raise ValidationError(
                    "New password must differ from the current password."
                )

            self._accounts.set_password(account.email, new_password)
            self._accounts.save(account.model_copy(update={
                "failed_attempts": 0,
                "locked_until": None,
            }))
        except CityReportError as exc:
            self._audit.record(
                SecurityEventKind.PASSWORD_CHANGE_FAILED, email, str(exc),
            )
            raise

        self._audit.record(SecurityEventKind.PASSWORD_CHANGED, email)
        self._mirror("change_password", {
            "userId": account.id,
            "currentPassword": current_password,
            "newPassword": new_password,
        })
        self._sessions.destroy(reason="password_changed")

    def change_email(self, new_email: str, password: str) -> AdminUser:
        """Move the signed-in account to *new_email*, keeping the session.

        Raises:
            AuthError: No valid session, or *password* is wrong.
            ValidationError: *new_email* is malformed or already in use.
        """
        session = self._require_session()
        old_email = session.user.email

        try:
            email_check = self.validate_email(new_email)
            if not email_check.is_valid:
                raise ValidationError(
                    email_check.error_message or "Invalid email format."
                )
            normalized = self.normalize_email(new_email)

            account = self._require_account(session.user.id)
            holder = self._accounts.get_by_email(normalized)
            if holder is not None and holder.id != account.id:
                raise ValidationError("This email address is already in use.")
            if not self._accounts.verify_password(account.email, password):
                raise AuthError("Password is incorrect.")

            renamed = self._accounts.rename_email(account.id, normalized)
            if renamed is None:
                raise AuthError("Account not found.")
        except CityReportError as exc:
            self._audit.record(
                SecurityEventKind.EMAIL_CHANGE_FAILED, old_email, str(exc),
            )
            raise

        user = renamed.to_user()
        self._sessions.update_user(user)
        self._audit.record(
            SecurityEventKind.EMAIL_CHANGED, old_email, f"{old_email} -> {normalized}",
        )
        self._mirror("change_email", {
            "userId": account.id,
            "newEmail": normalized,
            "password": password,
        })
        return user

    def reset_password(self, target_user_id: str, new_password: str) -> None:
        """Super-admin only: set another account's password and unlock it.

        Raises:
            AuthError: No valid session or the caller is not super-admin,
                or the target account does not exist.
            ValidationError: *new_password* breaks the policy.
        """
        session = self._require_session()
        admin = session.user
        if admin.role != AdminRole.SUPER_ADMIN:
            self._audit.record(
                SecurityEventKind.PASSWORD_RESET_FAILED,
                admin.email,
                f"not authorised to reset password for user {target_user_id}",
            )
            raise AuthError("Not authorised.")

        try:
            self._check_password_policy(new_password)
            target = self._accounts.get_by_id(target_user_id)
            if target is None:
                raise AuthError("Target account not found.")

            self._accounts.set_password(target.email, new_password)
            self._accounts.save(target.model_copy(update={
                "failed_attempts": 0,
                "locked_until": None,
            }))
        except CityReportError as exc:
            self._audit.record(
                SecurityEventKind.PASSWORD_RESET_FAILED,
                admin.email,
                f"failed to reset password for user {target_user_id}: {exc}",
            )
            raise

        self._audit.record(
            SecurityEventKind.PASSWORD_RESET_BY_ADMIN,
            admin.email,
            f"reset password for user {target_user_id}",
        )
        self._mirror("reset_user_password", {
            "targetUserId": target_user_id,
            "newPassword": new_password,
            "adminId": admin.id,
        })

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _register_failure(self, account: AuthAccount) -> None:
        """Count one wrong password and raise; locks at the threshold.

        Caller holds ``_attempt_lock``.
        """
        attempts = account.failed_attempts + 1
        updates: dict[str, object] = {"failed_attempts": attempts}
        locked = attempts >= self._max_attempts
        if locked:
            updates["locked_until"] = self._clock() + self._lockout
        self._accounts.save(account.model_copy(update=updates))

        self._audit.record(
            SecurityEventKind.LOGIN_FAILED,
            account.email,
            f"wrong password (attempt {attempts})",
        )
        if locked:
            minutes = int(self._lockout.total_seconds() // 60)
            self._audit.record(
                SecurityEventKind.ACCOUNT_LOCKED,
                account.email,
                f"locked for {minutes} minutes after {attempts} failed attempts",
            )
            self._logger.warning(
                "Account %s locked after %d failed attempts.",
                account.email,
                attempts,
            )
            raise AuthError(
                f"Too many failed attempts. Account locked for {minutes} minutes."
            )
        raise AuthError(_INVALID_CREDENTIALS)

    def _require_session(self) -> Session:
        session = self._sessions.get_current()
        if session is None:
            raise AuthError(_SESSION_REQUIRED)
        return session

    def _require_account(self, account_id: str) -> AuthAccount:
        account = self._accounts.get_by_id(account_id)
        if account is None or not account.is_active:
            raise AuthError("Account not found.")
        return account

    def _check_password_policy(self, password: str) -> None:
        result = self.validate_password(password)
        if not result.is_valid:
            raise ValidationError(result.error_message or "Password rejected.")

    def _minutes_until(self, moment: datetime) -> int:
        remaining = moment - self._clock()
        return max(1, math.ceil(remaining.total_seconds() / 60))

    def _mirror(self, action: str, payload: Mapping[str, object]) -> None:
        """Mirror a credential mutation to ``admin-auth``, detached."""
        if self._gateway is None or self._dispatcher is None:
            return
        if not self._gateway.is_online:
            return

        gateway = self._gateway
        logger = self._logger

        def _send() -> None:
            gateway.invoke_auth(action, payload)
            logger.info(
                "Remote mirror of %s acknowledged.", action,
                extra={"event": "AUTH_MIRROR"},
            )

        self._dispatcher.submit(_send, name=f"auth-mirror-{action}")
