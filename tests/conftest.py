"""Shared pytest fixtures for the CityReport core tests.

Everything runs against an in-memory store, a controllable clock, an
inline dispatcher and a fake remote gateway.  No test touches the
network.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

import pytest

# Ensure project root is on sys.path so 'cityreport' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from cityreport.config import AppConfig  # noqa: E402
from cityreport.errors import SyncError  # noqa: E402
from cityreport.logger import StructuredLogger  # noqa: E402
from cityreport.models.auth_models import RemoteAuthResponse  # noqa: E402
from cityreport.models.report import Report  # noqa: E402
from cityreport.models.security_event import SecurityEvent  # noqa: E402
from cityreport.repositories.account_repository import AccountRepository  # noqa: E402
from cityreport.services.auth_service import AuthGateway  # noqa: E402
from cityreport.services.dispatcher import InlineDispatcher  # noqa: E402
from cityreport.services.security_audit import SecurityAuditService  # noqa: E402
from cityreport.services.session_manager import SessionManager  # noqa: E402
from cityreport.storage.local_store import LocalStore, MemoryBackend  # noqa: E402

FAST_HASH_ITERATIONS = 1_000
START_TIME = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Frozen clock that only moves when told to."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeRemoteGateway:
    """Records every remote call; fails on demand with ``SyncError``."""

    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.fail = False
        self.reachable = True
        self.health_checks = 0
        self.pushed: list[Report] = []
        self.invocations: list[tuple[str, dict[str, object]]] = []
        self.auth_calls: list[tuple[str, dict[str, object]]] = []
        self.events: list[SecurityEvent] = []

    @property
    def is_online(self) -> bool:
        return self.online

    def check_connection(self) -> bool:
        self.health_checks += 1
        return self.online and self.reachable

    def _check(self, name: str) -> None:
        if not self.online:
            raise SyncError(f"{name}: remote mirror not configured")
        if self.fail:
            raise SyncError(f"{name}: HTTP 503")

    def invoke(self, function_name: str, body: Mapping[str, object]) -> object:
        self._check(function_name)
        self.invocations.append((function_name, dict(body)))
        return {"success": True}

    def push_report(self, report: Report) -> None:
        self._check("citizen-reports")
        self.pushed.append(report)

    def invoke_auth(self, action: str, payload: Mapping[str, object]) -> RemoteAuthResponse:
        self._check("admin-auth")
        self.auth_calls.append((action, dict(payload)))
        return RemoteAuthResponse(success=True)

    def forward_security_event(self, event: SecurityEvent) -> None:
        self._check("security-audit")
        self.events.append(event)


class FailingBackend:
    """Backend whose every operation fails like a full or locked disk."""

    def read(self, key: str) -> Optional[str]:
        from cityreport.errors import StorageError
        raise StorageError(f"read of '{key}' failed: disk I/O error")

    def write(self, key: str, value: str) -> None:
        from cityreport.errors import StorageError
        raise StorageError(f"write of '{key}' failed: database or disk is full")

    def delete(self, key: str) -> None:
        from cityreport.errors import StorageError
        raise StorageError(f"delete of '{key}' failed: disk I/O error")


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def logger(tmp_path_factory: pytest.TempPathFactory) -> StructuredLogger:
    """Structured logger writing to a throwaway file."""
    log_dir = tmp_path_factory.mktemp("logs")
    return StructuredLogger(name="cityreport.tests", log_file=str(log_dir / "test.log"))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture()
def store(backend: MemoryBackend, logger: StructuredLogger) -> LocalStore:
    return LocalStore(backend, logger)


@pytest.fixture()
def failing_store(logger: StructuredLogger) -> LocalStore:
    """Store whose backend rejects every read and write."""
    return LocalStore(FailingBackend(), logger)


@pytest.fixture()
def dispatcher(logger: StructuredLogger) -> InlineDispatcher:
    return InlineDispatcher(logger)


@pytest.fixture()
def remote() -> FakeRemoteGateway:
    return FakeRemoteGateway()


@pytest.fixture()
def config() -> AppConfig:
    """Defaults, local-only, with a low hash iteration count."""
    return AppConfig(
        SUPABASE_URL="",
        PASSWORD_HASH_ITERATIONS=FAST_HASH_ITERATIONS,
        SYNC_BASE_INTERVAL_S=0.01,
        SYNC_MAX_INTERVAL_S=0.05,
    )


# ---------------------------------------------------------------------------
# Security fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def audit(
    store: LocalStore,
    logger: StructuredLogger,
    remote: FakeRemoteGateway,
    dispatcher: InlineDispatcher,
    clock: FakeClock,
) -> SecurityAuditService:
    return SecurityAuditService(
        store=store,
        logger=logger,
        gateway=remote,  # type: ignore[arg-type]
        dispatcher=dispatcher,
        clock=clock,
    )


@pytest.fixture()
def sessions(
    store: LocalStore,
    audit: SecurityAuditService,
    logger: StructuredLogger,
    clock: FakeClock,
) -> SessionManager:
    return SessionManager(
        store=store,
        audit=audit,
        logger=logger,
        absolute_ttl_s=8 * 60 * 60,
        inactivity_ttl_s=2 * 60 * 60,
        clock=clock,
    )


@pytest.fixture()
def accounts(
    store: LocalStore,
    logger: StructuredLogger,
    clock: FakeClock,
) -> AccountRepository:
    """Account repository holding the two default staff accounts."""
    repo = AccountRepository(
        store=store,
        logger=logger,
        hash_iterations=FAST_HASH_ITERATIONS,
        clock=clock,
    )
    repo.seed_default_accounts()
    return repo


@pytest.fixture()
def auth(
    accounts: AccountRepository,
    sessions: SessionManager,
    audit: SecurityAuditService,
    config: AppConfig,
    logger: StructuredLogger,
    remote: FakeRemoteGateway,
    dispatcher: InlineDispatcher,
    clock: FakeClock,
) -> AuthGateway:
    return AuthGateway(
        accounts=accounts,
        sessions=sessions,
        audit=audit,
        config=config,
        logger=logger,
        gateway=remote,  # type: ignore[arg-type]
        dispatcher=dispatcher,
        clock=clock,
    )
