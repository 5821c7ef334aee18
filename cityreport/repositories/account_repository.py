"""
Account Repository.

Staff accounts live under ``admin_accounts``; their credentials are kept
apart under ``admin_credentials`` as a ``{email: encoded_hash}`` map so
that account listings never carry secrets.

Credential encoding::

    pbkdf2_sha256$<iterations>$<salt_hex>$<hash_hex>

The iteration count is stored per credential, so lowering it (tests) or
raising it (hardening) never invalidates existing hashes.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from typing import Optional

from cityreport.errors import ValidationError
from cityreport.logger import StructuredLogger
from cityreport.models.account import AuthAccount
from cityreport.models.enums import AdminRole
from cityreport.repositories.base_repository import EntityRepository
from cityreport.storage.local_store import LocalStore
from cityreport.utils.general import Clock, utc_now

_CREDENTIALS_KEY: str = "admin_credentials"
_HASH_SCHEME: str = "pbkdf2_sha256"
_SALT_BYTES: int = 32
_DEFAULT_ITERATIONS: int = 600_000


def hash_password(password: str, iterations: int = _DEFAULT_ITERATIONS) -> str:
    """Derive an encoded PBKDF2-HMAC-SHA256 credential for *password*."""
    salt: bytes = os.urandom(_SALT_BYTES)
    digest: str = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations=iterations,
    ).hex()
    return f"{_HASH_SCHEME}${iterations}${salt.hex()}${digest}"


def check_password(password: str, encoded: str) -> bool:
    """Constant-time check of *password* against an encoded credential.

    Malformed credentials never match.
    """
    try:
        scheme, iterations, salt_hex, digest_hex = encoded.split("$")
        if scheme != _HASH_SCHEME:
            return False
        candidate = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            bytes.fromhex(salt_hex),
            iterations=int(iterations),
        ).hex()
    except (AttributeError, ValueError):
        return False
    return hmac.compare_digest(candidate, digest_hex)


class AccountRepository(EntityRepository[AuthAccount]):
    """Persistence for staff accounts and their password hashes.

    Parameters
    ----------
    store:
        Authoritative local store.
    logger:
        Structured logger.
    hash_iterations:
        PBKDF2 work factor used for newly stored credentials.
    clock:
        Source of the current UTC time.
    """

    STORAGE_KEY = "admin_accounts"
    MODEL = AuthAccount

    def __init__(
        self,
        store: LocalStore,
        logger: StructuredLogger,
        hash_iterations: int = _DEFAULT_ITERATIONS,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(store, logger, clock)
        self._hash_iterations = hash_iterations

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> Optional[AuthAccount]:
        """Case-insensitive lookup by email address."""
        normalized = email.strip().lower()
        for account in self.get_all():
            if account.email == normalized:
                return account
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, account: AuthAccount) -> AuthAccount:
        """Persist the mutable fields of an existing *account*.

        Unknown accounts are created instead (with a fresh id).
        """
        fields = account.model_dump(exclude={"id", "created_at", "updated_at"})
        saved = self.update(account.id, fields)
        if saved is None:
            saved = self.create(fields)
        return saved

    def rename_email(self, account_id: str, new_email: str) -> Optional[AuthAccount]:
        """Re-key an account and its credential to *new_email*.

        Returns ``None`` when *account_id* is unknown.

        Raises:
            ValidationError: If another account already uses *new_email*.
        """
        account = self.get_by_id(account_id)
        if account is None:
            return None

        normalized = new_email.strip().lower()
        holder = self.get_by_email(normalized)
        if holder is not None and holder.id != account_id:
            raise ValidationError("This email address is already in use.")

        credentials = self._load_credentials()
        encoded = credentials.pop(account.email, None)
        if encoded is not None:
            credentials[normalized] = encoded
            self._store.set(_CREDENTIALS_KEY, credentials)

        return self.update(account_id, {"email": normalized})

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_password(self, email: str, password: str) -> None:
        """Store a fresh salted hash of *password* for *email*."""
        credentials = self._load_credentials()
        credentials[email.strip().lower()] = hash_password(
            password, self._hash_iterations,
        )
        if not self._store.set(_CREDENTIALS_KEY, credentials):
            self._logger.error("Local write of credentials failed.")

    def verify_password(self, email: str, password: str) -> bool:
        encoded = self._load_credentials().get(email.strip().lower())
        if encoded is None:
            return False
        return check_password(password, encoded)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def seed_default_accounts(self) -> list[AuthAccount]:
        """Create the two built-in staff accounts if none exist."""
        accounts = self._seed([
            {
                "email": "admin@ville.fr",
                "role": AdminRole.ADMIN,
                "full_name": "Administrateur Principal",
            },
            {
                "email": "super.admin@ville.fr",
                "role": AdminRole.SUPER_ADMIN,
                "full_name": "Super Administrateur",
            },
        ])
        if accounts:
            self.set_password("admin@ville.fr", "admin123")
            self.set_password("super.admin@ville.fr", "superadmin123")
        return accounts

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load_credentials(self) -> dict[str, str]:
        data = self._store.get(_CREDENTIALS_KEY, {})
        if not isinstance(data, dict):
            self._logger.error("Credential map is corrupt; treating as empty.")
            return {}
        return {
            str(email): value for email, value in data.items()
            if isinstance(value, str)
        }
