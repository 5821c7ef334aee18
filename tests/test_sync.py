"""Tests for fire-and-forget report sync, the optional outbox, the
background dispatcher and the remote gateway."""

import threading

import pytest

from cityreport.database import DatabaseManager
from cityreport.errors import SyncError
from cityreport.models.enums import OutboxStatus
from cityreport.repositories.report_repository import ReportRepository
from cityreport.services.dispatcher import BackgroundDispatcher
from cityreport.services.remote_gateway import RemoteGateway
from cityreport.services.sync_worker import SyncAgent, SyncOutbox, SyncWorkerService


@pytest.fixture()
def outbox(store, logger, clock):
    return SyncOutbox(store=store, logger=logger, clock=clock)


@pytest.fixture()
def agent(remote, dispatcher, logger):
    return SyncAgent(gateway=remote, dispatcher=dispatcher, logger=logger)


@pytest.fixture()
def reports(store, logger, clock, agent):
    return ReportRepository(store=store, logger=logger, sync_agent=agent, clock=clock)


# ===========================================================================
# 1. SyncAgent
# ===========================================================================
class TestSyncAgent:
    """Pushes never block or fail the caller."""

    def test_created_report_is_pushed(self, reports, remote):
        report = reports.create({"category": "routes", "description": "pothole"})
        assert remote.pushed == [report]

    def test_remote_failure_is_swallowed(self, reports, remote):
        remote.fail = True
        report = reports.create({"category": "routes", "description": "pothole"})

        assert remote.pushed == []
        assert reports.get_by_id(report.id) == report

    def test_offline_is_swallowed(self, reports, remote):
        remote.online = False
        report = reports.create({"category": "routes", "description": "pothole"})
        assert reports.get_by_id(report.id) is not None

    def test_no_retry_without_outbox(self, reports, remote, store):
        remote.fail = True
        reports.create({"category": "routes", "description": "pothole"})
        assert store.get("sync_outbox", []) == []

    def test_scheduling_failure_is_swallowed(self, remote, logger, store, clock):
        class BrokenDispatcher:
            def submit(self, fn, name="task"):
                raise RuntimeError("can't start new thread")

        agent = SyncAgent(gateway=remote, dispatcher=BrokenDispatcher(), logger=logger)
        repo = ReportRepository(store=store, logger=logger, sync_agent=agent, clock=clock)
        report = repo.create({"category": "routes", "description": "pothole"})
        assert repo.get_by_id(report.id) is not None


# ===========================================================================
# 2. Durable outbox
# ===========================================================================
class TestOutbox:
    """Failed pushes are queued and replayed when the outbox is enabled."""

    @pytest.fixture()
    def worker(self, outbox, remote, config, logger):
        return SyncWorkerService(outbox=outbox, gateway=remote, config=config, logger=logger)

    @pytest.fixture()
    def queued_reports(self, store, logger, clock, remote, dispatcher, outbox):
        agent = SyncAgent(gateway=remote, dispatcher=dispatcher, logger=logger, outbox=outbox)
        return ReportRepository(store=store, logger=logger, sync_agent=agent, clock=clock)

    def test_failed_push_is_enqueued(self, queued_reports, remote, outbox):
        remote.fail = True
        report = queued_reports.create({"category": "routes", "description": "pothole"})

        pending = outbox.pending()
        assert len(pending) == 1
        assert pending[0]["entity_id"] == report.id
        assert pending[0]["target"] == "citizen-reports"
        assert pending[0]["payload"]["description"] == "pothole"

    def test_replay_marks_synced(self, queued_reports, remote, outbox, worker):
        remote.fail = True
        queued_reports.create({"category": "routes", "description": "pothole"})
        remote.fail = False

        assert worker.process_pending() == 1
        assert outbox.pending() == []
        assert outbox.all_entries()[0]["status"] == OutboxStatus.SYNCED
        assert remote.invocations[0][0] == "citizen-reports"

    def test_permanently_failed_after_max_retries(self, queued_reports, remote, outbox, worker):
        remote.fail = True
        queued_reports.create({"category": "routes", "description": "pothole"})

        for _ in range(SyncOutbox._MAX_RETRY_COUNT):
            assert worker.process_pending() == 0

        entry = outbox.all_entries()[0]
        assert entry["status"] == OutboxStatus.PERMANENTLY_FAILED
        assert entry["attempts"] == SyncOutbox._MAX_RETRY_COUNT
        assert outbox.pending() == []

    def test_malformed_entry_is_not_replayed(self, store, outbox, worker, remote):
        store.set("sync_outbox", [{
            "id": "bad",
            "target": "drop-table",
            "payload": {},
            "status": "pending",
            "attempts": 0,
        }])
        assert worker.process_pending() == 0
        assert remote.invocations == []

    def test_unreachable_remote_skips_cycle_and_backs_off(
        self, queued_reports, remote, outbox, worker,
    ):
        remote.fail = True
        queued_reports.create({"category": "routes", "description": "pothole"})
        remote.fail = False
        remote.reachable = False

        assert worker.run_cycle() == 0
        assert remote.health_checks == 1
        assert remote.invocations == []
        assert outbox.all_entries()[0]["attempts"] == 0
        assert worker._calculate_backoff_interval() == pytest.approx(0.02)

    def test_reachable_remote_replays_and_resets_backoff(
        self, queued_reports, remote, outbox, worker,
    ):
        remote.fail = True
        queued_reports.create({"category": "routes", "description": "pothole"})
        remote.fail = False
        remote.reachable = False
        worker.run_cycle()
        remote.reachable = True

        assert worker.run_cycle() == 1
        assert outbox.pending() == []
        assert worker._calculate_backoff_interval() == pytest.approx(0.01)

    def test_local_only_mode_skips_health_check(self, remote, worker):
        remote.online = False
        assert worker.run_cycle() == 0
        assert remote.health_checks == 0
        assert worker._calculate_backoff_interval() == pytest.approx(0.01)

    def test_backoff_doubles_and_caps(self, worker):
        assert worker._calculate_backoff_interval() == pytest.approx(0.01)
        worker._consecutive_failures = 1
        assert worker._calculate_backoff_interval() == pytest.approx(0.02)
        worker._consecutive_failures = 10
        assert worker._calculate_backoff_interval() == pytest.approx(0.05)

    def test_worker_start_stop(self, worker):
        worker.start()
        worker.start()
        assert worker.is_running
        worker.stop()
        assert not worker.is_running
        worker.stop()


# ===========================================================================
# 3. BackgroundDispatcher
# ===========================================================================
class TestBackgroundDispatcher:
    """Detached execution with failures logged, never raised."""

    def test_runs_task_off_thread(self, logger):
        dispatcher = BackgroundDispatcher(logger)
        seen = []
        dispatcher.submit(lambda: seen.append(threading.current_thread().name), name="named-task")

        assert dispatcher.wait_idle(timeout=5)
        assert seen == ["named-task"]
        dispatcher.shutdown()

    def test_failing_task_does_not_propagate(self, logger):
        dispatcher = BackgroundDispatcher(logger)

        def explode():
            raise RuntimeError("remote went away")

        dispatcher.submit(explode, name="explode")
        assert dispatcher.wait_idle(timeout=5)
        assert dispatcher.pending == 0
        dispatcher.shutdown()

    def test_submit_after_shutdown_is_dropped(self, logger):
        dispatcher = BackgroundDispatcher(logger)
        dispatcher.shutdown()
        ran = []
        dispatcher.submit(lambda: ran.append(True))
        assert dispatcher.wait_idle(timeout=1)
        assert ran == []

    def test_caller_does_not_wait_for_push(self, store, logger, clock, remote):
        dispatcher = BackgroundDispatcher(logger)
        release = threading.Event()
        original_push = remote.push_report

        def slow_push(report):
            release.wait(timeout=5)
            original_push(report)

        remote.push_report = slow_push
        agent = SyncAgent(gateway=remote, dispatcher=dispatcher, logger=logger)
        repo = ReportRepository(store=store, logger=logger, sync_agent=agent, clock=clock)

        report = repo.create({"category": "routes", "description": "pothole"})
        assert remote.pushed == []

        release.set()
        assert dispatcher.wait_idle(timeout=5)
        assert remote.pushed == [report]
        dispatcher.shutdown()


# ===========================================================================
# 4. RemoteGateway
# ===========================================================================
class _Query:
    """Chainable stand-in for a Supabase table query."""

    def __init__(self, client):
        self._client = client

    def select(self, *columns):
        return self

    def limit(self, count):
        return self

    def execute(self):
        self._client.executed += 1
        if self._client.down:
            raise ConnectionError("connection refused")
        return {"data": []}


class _Functions:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def invoke(self, function_name, invoke_options):
        self.calls.append((function_name, invoke_options["body"]))
        return self.reply


class _Client:
    def __init__(self, down=False, reply=None):
        self.down = down
        self.tables = []
        self.executed = 0
        self.functions = _Functions(reply)

    def table(self, name):
        self.tables.append(name)
        return _Query(self)


class TestRemoteGateway:
    """Connectivity check and local-only behaviour of the real gateway."""

    @pytest.fixture()
    def db(self, logger):
        manager = DatabaseManager(
            supabase_url="",
            supabase_key="",
            sqlite_path=":memory:",
            logger=logger,
        )
        yield manager
        manager.close()

    def test_local_only_is_not_reachable(self, db, logger):
        gateway = RemoteGateway(db, logger)
        assert gateway.is_online is False
        assert gateway.check_connection() is False

    def test_local_only_invoke_raises(self, db, logger):
        with pytest.raises(SyncError):
            RemoteGateway(db, logger).invoke("citizen-reports", {})

    def test_reachable_remote(self, db, logger):
        client = _Client()
        db._supabase = client

        assert RemoteGateway(db, logger).check_connection() is True
        assert client.tables == ["admin_users"]
        assert client.executed == 1

    def test_unreachable_remote_does_not_raise(self, db, logger):
        db._supabase = _Client(down=True)
        gateway = RemoteGateway(db, logger)

        assert gateway.is_online is True
        assert gateway.check_connection() is False

    def test_remote_login_action(self, db, logger):
        client = _Client(reply={"success": True, "message": "ok"})
        db._supabase = client

        response = RemoteGateway(db, logger).invoke_auth(
            "login", {"email": "admin@ville.fr", "password": "admin123"},
        )

        assert response.success is True
        assert client.functions.calls == [(
            "admin-auth",
            {"action": "login", "email": "admin@ville.fr", "password": "admin123"},
        )]

    def test_rejected_remote_login_raises(self, db, logger):
        db._supabase = _Client(reply={"success": False, "message": "Invalid credentials"})

        with pytest.raises(SyncError, match="Invalid credentials"):
            RemoteGateway(db, logger).invoke_auth(
                "login", {"email": "admin@ville.fr", "password": "wrong"},
            )
