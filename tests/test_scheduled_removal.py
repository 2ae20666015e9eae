"""
Tests for the scheduled data removal worker.

Verifies:
- Due deletion duties erase the payload but leave the access counter alone
- One bad agreement, target or artifact never stops the scan
- The worker is a no-op unless usage control is enforced internally
- Background start/stop
"""

import json
import threading

from dataspace_broker.config import Settings
from dataspace_broker.db.audit_service import AuditService
from dataspace_broker.db.models import ArtifactModel
from dataspace_broker.db.services import AgreementService, ArtifactService
from dataspace_broker.worker.removal import ScheduledDataRemoval

from helpers import FIXED_NOW, make_contract

TARGET = "https://provider/artifacts/7"
PAST_DUTY = [{"action": "delete", "at": "2021-01-01T00:00:00Z"}]
FUTURE_DUTY = [{"action": "delete", "at": "2030-01-01T00:00:00Z"}]


def seed_artifact(db_session, remote_id=TARGET, value=b"hello", num_accessed=0, **kwargs):
    artifact = ArtifactService(db_session).create_artifact(
        title="Weather data", remote_id=remote_id, value=value, **kwargs
    )
    artifact.num_accessed = num_accessed
    db_session.commit()
    return artifact.id


def seed_agreement(db_session, value, remote_id="https://provider/agreements/1"):
    return AgreementService(db_session).create_agreement(value, remote_id=remote_id).id


def make_worker(session_factory, settings, **kwargs):
    return ScheduledDataRemoval(
        session_factory=session_factory,
        clock=lambda: FIXED_NOW,
        settings=settings,
        **kwargs,
    )


def load_artifact(session_factory, artifact_id):
    session = session_factory()
    artifact = session.get(ArtifactModel, artifact_id)
    snapshot = (artifact.data.value, artifact.byte_size, artifact.check_sum, artifact.num_accessed)
    session.close()
    return snapshot


class TestScanAgreements:
    """Tests for a single enforcement pass."""

    def test_due_duty_erases_payload(self, db_session, session_factory, settings):
        artifact_id = seed_artifact(db_session, num_accessed=2)
        seed_agreement(
            db_session,
            make_contract(TARGET, pattern="USAGE_UNTIL_DELETION", post_duties=PAST_DUTY),
        )
        db_session.close()
        worker = make_worker(session_factory, settings)

        result = worker.run_once()

        assert result.erased == [artifact_id]
        assert result.duties_due == 1
        assert result.failures == 0
        assert load_artifact(session_factory, artifact_id) == (b"", 0, 0, 2)

    def test_erase_is_audited_as_system(self, db_session, session_factory, settings):
        artifact_id = seed_artifact(db_session)
        seed_agreement(db_session, make_contract(TARGET, post_duties=PAST_DUTY))
        db_session.close()
        worker = make_worker(session_factory, settings)

        worker.run_once()

        session = session_factory()
        entries = AuditService(session).query_by_action("data_erased")
        assert len(entries) == 1
        assert entries[0].entity_id == artifact_id
        assert entries[0].actor_kind == "system"
        assert entries[0].actor_id == worker.worker_id
        session.close()

    def test_future_duty_keeps_payload(self, db_session, session_factory, settings):
        artifact_id = seed_artifact(db_session)
        seed_agreement(db_session, make_contract(TARGET, post_duties=FUTURE_DUTY))
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.erased == []
        assert result.duties_due == 0
        assert load_artifact(session_factory, artifact_id)[0] == b"hello"

    def test_relative_duty_counts_from_issue_date(self, db_session, session_factory, settings):
        artifact_id = seed_artifact(db_session)
        seed_agreement(
            db_session,
            make_contract(TARGET, post_duties=[{"after": "P10D"}], issued="2024-03-01T00:00:00Z"),
        )
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.erased == [artifact_id]

    def test_access_bound_duty(self, db_session, session_factory, settings):
        worn = seed_artifact(db_session, remote_id="https://provider/artifacts/1", num_accessed=3)
        fresh = seed_artifact(db_session, remote_id="https://provider/artifacts/2", num_accessed=1)
        duty = [{"action": "delete", "after_accesses": 3}]
        seed_agreement(db_session, make_contract("https://provider/artifacts/1", post_duties=duty))
        seed_agreement(
            db_session,
            make_contract("https://provider/artifacts/2", post_duties=duty),
            remote_id="https://provider/agreements/2",
        )
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.erased == [worn]
        assert load_artifact(session_factory, fresh)[0] == b"hello"
        assert load_artifact(session_factory, worn)[3] == 3

    def test_already_erased_payload_is_skipped(self, db_session, session_factory, settings):
        seed_artifact(db_session, value=b"")
        seed_agreement(db_session, make_contract(TARGET, post_duties=PAST_DUTY))
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.duties_due == 1
        assert result.erased == []

    def test_rules_without_duties_are_ignored(self, db_session, session_factory, settings):
        artifact_id = seed_artifact(db_session)
        seed_agreement(db_session, make_contract(TARGET, pattern="N_TIMES_USAGE"))
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.agreements_scanned == 1
        assert result.duties_due == 0
        assert load_artifact(session_factory, artifact_id)[0] == b"hello"


class TestScanResilience:
    """Failures are logged per agreement and per rule, and the scan continues."""

    def test_malformed_agreement_does_not_stop_scan(self, db_session, session_factory, settings):
        seed_agreement(db_session, "not a contract", remote_id="https://provider/agreements/0")
        artifact_id = seed_artifact(db_session)
        seed_agreement(db_session, make_contract(TARGET, post_duties=PAST_DUTY))
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.agreements_scanned == 2
        assert result.failures == 1
        assert result.erased == [artifact_id]

    def test_unknown_target_is_skipped(self, db_session, session_factory, settings):
        seed_agreement(
            db_session, make_contract("https://provider/artifacts/404", post_duties=PAST_DUTY)
        )
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.duties_due == 1
        assert result.erased == []
        assert result.failures == 0

    def test_remote_artifact_erase_failure_is_counted(self, db_session, session_factory, settings):
        seed_artifact(
            db_session,
            remote_id="https://provider/artifacts/remote",
            value=None,
            access_url="https://backend/data",
        )
        local_id = seed_artifact(db_session)
        document = {
            "issued": "2024-03-01T00:00:00Z",
            "permissions": [
                {"target": "https://provider/artifacts/remote", "post_duties": PAST_DUTY},
                {"target": TARGET, "post_duties": PAST_DUTY},
            ],
        }
        seed_agreement(db_session, json.dumps(document))
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.failures == 1
        assert result.erased == [local_id]

    def test_relative_duty_without_issue_date_is_counted(
        self, db_session, session_factory, settings
    ):
        seed_artifact(db_session)
        document = {"permissions": [{"target": TARGET, "post_duties": [{"after": "P1D"}]}]}
        seed_agreement(db_session, json.dumps(document))
        db_session.close()

        result = make_worker(session_factory, settings).run_once()

        assert result.failures == 1
        assert result.erased == []

    def test_unexpected_error_is_contained(self, settings):
        def broken_factory():
            raise RuntimeError("database unavailable")

        worker = ScheduledDataRemoval(session_factory=broken_factory, settings=settings)

        assert worker.run_once() is None
        assert worker.state == "idle"


class TestUsageControlMode:
    def test_external_framework_is_noop(self, db_session, session_factory):
        artifact_id = seed_artifact(db_session)
        seed_agreement(db_session, make_contract(TARGET, post_duties=PAST_DUTY))
        db_session.close()
        settings = Settings(usage_control_framework="external")

        result = make_worker(session_factory, settings).run_once()

        assert result is None
        assert load_artifact(session_factory, artifact_id)[0] == b"hello"


class TestWorkerLifecycle:
    """Tests for background start/stop."""

    def test_defaults_from_settings(self, session_factory):
        worker = ScheduledDataRemoval(
            session_factory=session_factory,
            settings=Settings(data_removal_interval_seconds=15),
        )

        assert worker.interval == 15
        assert worker.worker_id.startswith("removal-")
        assert worker.state == "idle"

    def test_start_runs_scan_and_stop_ends_thread(self, session_factory, settings):
        scanned = threading.Event()

        def clock():
            scanned.set()
            return FIXED_NOW

        worker = ScheduledDataRemoval(
            session_factory=session_factory, interval=3600, clock=clock, settings=settings
        )

        worker.start()
        try:
            assert scanned.wait(timeout=5)
            assert worker.running
        finally:
            worker.stop(timeout=5)

        assert not worker.running
        assert worker.state == "idle"

    def test_start_twice_keeps_single_thread(self, session_factory, settings):
        worker = ScheduledDataRemoval(
            session_factory=session_factory, interval=3600, settings=settings
        )

        worker.start()
        try:
            thread = worker._thread
            worker.start()
            assert worker._thread is thread
        finally:
            worker.stop(timeout=5)
