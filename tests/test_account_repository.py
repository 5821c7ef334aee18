"""Tests for staff account persistence and password hashing."""

import pytest

from cityreport.errors import ValidationError
from cityreport.models.enums import AdminRole
from cityreport.repositories.account_repository import (
    AccountRepository,
    check_password,
    hash_password,
)


class TestPasswordHashing:
    """The encoded PBKDF2 credential format."""

    def test_encoding_shape(self):
        encoded = hash_password("admin123", iterations=1000)
        scheme, iterations, salt_hex, digest_hex = encoded.split("$")
        assert scheme == "pbkdf2_sha256"
        assert iterations == "1000"
        assert len(bytes.fromhex(salt_hex)) == 32
        assert len(digest_hex) == 64

    def test_salts_differ(self):
        assert hash_password("same", 1000) != hash_password("same", 1000)

    def test_check(self):
        encoded = hash_password("Sup3r!Secret", 1000)
        assert check_password("Sup3r!Secret", encoded) is True
        assert check_password("sup3r!secret", encoded) is False

    @pytest.mark.parametrize("encoded", ["", "plaintext", "md5$1$00$00", "pbkdf2_sha256$x$zz$00"])
    def test_malformed_credentials_never_match(self, encoded):
        assert check_password("anything", encoded) is False


class TestAccountRepository:
    """Lookups, credential storage, renaming and seeding."""

    def test_default_accounts(self, accounts):
        admin = accounts.get_by_email("admin@ville.fr")
        root = accounts.get_by_email("super.admin@ville.fr")
        assert admin.role == AdminRole.ADMIN
        assert root.role == AdminRole.SUPER_ADMIN
        assert accounts.verify_password("admin@ville.fr", "admin123")
        assert accounts.verify_password("super.admin@ville.fr", "superadmin123")

    def test_seeding_is_idempotent(self, accounts):
        assert accounts.seed_default_accounts() == []
        assert len(accounts.get_all()) == 2

    def test_email_lookup_is_case_insensitive(self, accounts):
        assert accounts.get_by_email("  ADMIN@Ville.FR ") is not None

    def test_credentials_are_not_plaintext(self, accounts, store):
        stored = store.get("admin_credentials", {})
        assert set(stored) == {"admin@ville.fr", "super.admin@ville.fr"}
        assert all("admin123" not in value for value in stored.values())

    def test_set_password(self, accounts):
        accounts.set_password("admin@ville.fr", "N3w!Password")
        assert accounts.verify_password("admin@ville.fr", "N3w!Password")
        assert not accounts.verify_password("admin@ville.fr", "admin123")

    def test_unknown_email_never_verifies(self, accounts):
        assert accounts.verify_password("nobody@ville.fr", "admin123") is False

    def test_save_persists_counters(self, accounts):
        admin = accounts.get_by_email("admin@ville.fr")
        accounts.save(admin.model_copy(update={"failed_attempts": 2}))
        assert accounts.get_by_id(admin.id).failed_attempts == 2

    def test_rename_email_moves_credential(self, accounts):
        admin = accounts.get_by_email("admin@ville.fr")
        renamed = accounts.rename_email(admin.id, "Maire@Ville.fr")

        assert renamed.email == "maire@ville.fr"
        assert accounts.get_by_email("admin@ville.fr") is None
        assert accounts.verify_password("maire@ville.fr", "admin123")
        assert not accounts.verify_password("admin@ville.fr", "admin123")

    def test_rename_to_taken_email_is_rejected(self, accounts):
        admin = accounts.get_by_email("admin@ville.fr")
        with pytest.raises(ValidationError):
            accounts.rename_email(admin.id, "super.admin@ville.fr")

    def test_rename_unknown_account(self, accounts):
        assert accounts.rename_email("missing", "x@ville.fr") is None

    def test_iteration_count_is_configurable(self, store, logger, clock):
        repo = AccountRepository(store=store, logger=logger, hash_iterations=1234, clock=clock)
        repo.set_password("someone@ville.fr", "whatever")
        encoded = store.get("admin_credentials", {})["someone@ville.fr"]
        assert encoded.split("$")[1] == "1234"
