"""End-to-end wiring through the create_services composition root."""

import pytest

from cityreport.config import AppConfig
from cityreport.database import DatabaseManager
from cityreport.schema import initialize_schema
from cityreport.services import create_services
from cityreport.services.dispatcher import InlineDispatcher


@pytest.fixture()
def db(logger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=":memory:",
        logger=logger,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture()
def services(db, config, logger, clock):
    return create_services(
        db=db, config=config, dispatcher=InlineDispatcher(logger), clock=clock,
    )


class TestCreateServices:
    """A fresh local-only install is usable immediately."""

    def test_default_accounts_seeded(self, services):
        accounts = services["account_repository"]
        assert accounts.get_by_email("admin@ville.fr") is not None
        assert accounts.get_by_email("super.admin@ville.fr") is not None

    def test_outbox_disabled_by_default(self, services):
        assert services["sync_outbox"] is None
        assert services["sync_worker"] is None

    def test_outbox_enabled(self, db, logger, clock):
        config = AppConfig(
            SUPABASE_URL="",
            PASSWORD_HASH_ITERATIONS=1000,
            SYNC_OUTBOX_ENABLED=True,
        )
        services = create_services(
            db=db, config=config, dispatcher=InlineDispatcher(logger), clock=clock,
        )
        reports = services["report_repository"]
        report = reports.create({"category": "routes", "description": "pothole"})

        pending = services["sync_outbox"].pending()
        assert [entry["entity_id"] for entry in pending] == [report.id]

    def test_sign_in_and_report_flow(self, services):
        auth = services["auth_gateway"]
        sessions = services["session_manager"]
        reports = services["report_repository"]

        user = auth.sign_in("admin@ville.fr", "admin123")
        report = reports.create({"category": "eclairage", "description": "lampadaire"})
        reports.update(report.id, {"status": "resolved"})

        assert sessions.current_user() == user
        assert reports.get_statistics().resolved == 1
        assert services["remote_gateway"].is_online is False

    def test_state_survives_new_container(self, db, config, logger, services, clock):
        services["report_repository"].create({"category": "routes", "description": "x"})
        services["auth_gateway"].sign_in("admin@ville.fr", "admin123")

        reopened = create_services(
            db=db, config=config, dispatcher=InlineDispatcher(logger), clock=clock,
        )

        assert len(reopened["report_repository"].get_all()) == 1
        assert reopened["session_manager"].is_authenticated()
        assert len(reopened["account_repository"].get_all()) == 2
