"""Tests for the session and role guard decorators."""

import pytest

from cityreport.errors import AuthError
from cityreport.guards import require_role, require_session
from cityreport.models.enums import AdminRole


class TestGuards:
    """Guarded callables run only for a valid session with the right role."""

    def test_require_session(self, auth, sessions):
        @require_session(sessions)
        def resolve(report_id: str) -> str:
            return f"resolved {report_id}"

        with pytest.raises(AuthError, match="Authentication required"):
            resolve("r1")

        auth.sign_in("admin@ville.fr", "admin123")
        assert resolve("r1") == "resolved r1"
        assert resolve.__name__ == "resolve"

    def test_require_session_after_expiry(self, auth, sessions, clock):
        guarded = require_session(sessions)(lambda: "ok")
        auth.sign_in("admin@ville.fr", "admin123")
        clock.advance(hours=3)
        with pytest.raises(AuthError):
            guarded()

    def test_require_role(self, auth, sessions):
        @require_role(sessions, AdminRole.SUPER_ADMIN)
        def manage_accounts() -> str:
            return "ok"

        with pytest.raises(AuthError, match="Authentication required"):
            manage_accounts()

        auth.sign_in("admin@ville.fr", "admin123")
        with pytest.raises(AuthError, match="Not authorised"):
            manage_accounts()

        auth.sign_out()
        auth.sign_in("super.admin@ville.fr", "superadmin123")
        assert manage_accounts() == "ok"
