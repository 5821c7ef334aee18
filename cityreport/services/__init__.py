"""
Business Logic Services Package.

Services depend on the Repository layer for data access and receive
every collaborator through ``__init__``.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the application layer can consume
without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from cityreport.config import AppConfig
from cityreport.database import DatabaseManager
from cityreport.logger import get_logger
from cityreport.repositories.account_repository import AccountRepository
from cityreport.repositories.alert_repository import AlertRepository
from cityreport.repositories.contact_repository import ContactRepository
from cityreport.repositories.report_repository import ReportRepository
from cityreport.services.auth_service import AuthGateway
from cityreport.services.dispatcher import BackgroundDispatcher, Dispatcher
from cityreport.services.pollers import PollerRegistry
from cityreport.services.remote_gateway import RemoteGateway
from cityreport.services.security_audit import SecurityAuditService
from cityreport.services.session_manager import SessionManager
from cityreport.services.sync_worker import SyncAgent, SyncOutbox, SyncWorkerService
from cityreport.storage.local_store import LocalStore, SQLiteBackend
from cityreport.utils.general import Clock, utc_now


class ServiceContainer(TypedDict, total=False):
    """Typed container for all application services.

    ``sync_outbox`` and ``sync_worker`` are ``None`` unless the durable
    outbox is enabled.
    """

    # --- Infrastructure ---
    store: LocalStore
    dispatcher: Dispatcher
    remote_gateway: RemoteGateway
    pollers: PollerRegistry

    # --- Repositories ---
    report_repository: ReportRepository
    alert_repository: AlertRepository
    contact_repository: ContactRepository
    account_repository: AccountRepository

    # --- Sync ---
    sync_agent: SyncAgent
    sync_outbox: Optional[SyncOutbox]
    sync_worker: Optional[SyncWorkerService]

    # --- Security ---
    security_audit: SecurityAuditService
    session_manager: SessionManager
    auth_gateway: AuthGateway


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    store: Optional[LocalStore] = None,
    dispatcher: Optional[Dispatcher] = None,
    clock: Clock = utc_now,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    entry point calls this once at startup; the default staff accounts
    are seeded here so that a fresh install can sign in immediately.

    Args:
        db: Initialised DatabaseManager with the ``kv_store`` schema ready.
        config: Application configuration.
        store: Override for the local store (defaults to SQLite via *db*).
        dispatcher: Override for the background dispatcher.
        clock: Source of the current UTC time.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("cityreport.services")

    # ------------------------------------------------------------------
    # 1. Infrastructure
    # ------------------------------------------------------------------
    if store is None:
        store = LocalStore(SQLiteBackend(db), get_logger("cityreport.storage"))
    if dispatcher is None:
        dispatcher = BackgroundDispatcher(logger=get_logger("cityreport.dispatcher"))
    remote_gateway = RemoteGateway(db=db, logger=get_logger("cityreport.remote"))
    pollers = PollerRegistry(logger=get_logger("cityreport.pollers"))

    # ------------------------------------------------------------------
    # 2. Sync (optional durable outbox)
    # ------------------------------------------------------------------
    sync_logger = get_logger("cityreport.sync")
    sync_outbox: Optional[SyncOutbox] = None
    sync_worker: Optional[SyncWorkerService] = None
    if config.SYNC_OUTBOX_ENABLED:
        sync_outbox = SyncOutbox(store=store, logger=sync_logger, clock=clock)
        sync_worker = SyncWorkerService(
            outbox=sync_outbox,
            gateway=remote_gateway,
            config=config,
            logger=sync_logger,
        )
    sync_agent = SyncAgent(
        gateway=remote_gateway,
        dispatcher=dispatcher,
        logger=sync_logger,
        outbox=sync_outbox,
    )

    # ------------------------------------------------------------------
    # 3. Repositories (data-access layer)
    # ------------------------------------------------------------------
    report_repository = ReportRepository(
        store=store,
        logger=logger,
        sync_agent=sync_agent,
        clock=clock,
    )
    alert_repository = AlertRepository(store=store, logger=logger, clock=clock)
    contact_repository = ContactRepository(store=store, logger=logger, clock=clock)
    account_repository = AccountRepository(
        store=store,
        logger=logger,
        hash_iterations=config.PASSWORD_HASH_ITERATIONS,
        clock=clock,
    )

    # ------------------------------------------------------------------
    # 4. Security services
    # ------------------------------------------------------------------
    security_logger = get_logger("cityreport.security")
    security_audit = SecurityAuditService(
        store=store,
        logger=security_logger,
        gateway=remote_gateway,
        dispatcher=dispatcher,
        clock=clock,
    )
    session_manager = SessionManager(
        store=store,
        audit=security_audit,
        logger=security_logger,
        absolute_ttl_s=config.SESSION_ABSOLUTE_TTL_S,
        inactivity_ttl_s=config.SESSION_INACTIVITY_TTL_S,
        clock=clock,
    )
    auth_gateway = AuthGateway(
        accounts=account_repository,
        sessions=session_manager,
        audit=security_audit,
        config=config,
        logger=security_logger,
        gateway=remote_gateway,
        dispatcher=dispatcher,
        clock=clock,
    )

    # ------------------------------------------------------------------
    # 5. Bootstrap data
    # ------------------------------------------------------------------
    account_repository.seed_default_accounts()

    return ServiceContainer(
        store=store,
        dispatcher=dispatcher,
        remote_gateway=remote_gateway,
        pollers=pollers,
        report_repository=report_repository,
        alert_repository=alert_repository,
        contact_repository=contact_repository,
        account_repository=account_repository,
        sync_agent=sync_agent,
        sync_outbox=sync_outbox,
        sync_worker=sync_worker,
        security_audit=security_audit,
        session_manager=session_manager,
        auth_gateway=auth_gateway,
    )
