"""
Scheduled data removal.

Enforces deletion duties of stored agreements independently of any request.

Flow per run:
1. Skip unless usage control is enforced internally
2. Load every agreement and extract its rules
3. Evaluate each deletion duty against the current time (and, for access
   bounds, the artifact's access counter)
4. Erase the target artifact's payload through the broker's set_data

A malformed agreement, an unknown target or a failed erase is logged and the
scan moves on. Runs are single-flight: the next run starts a fixed delay
after the previous one finished.
"""
from __future__ import annotations

import io
import logging
import signal
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings, get_settings
from ..contracts.duties import (
    check_rule_for_post_duties,
    get_deletion_duties,
    rule_counts_accesses,
)
from ..contracts.rules import deserialize_contract, extract_rules_from_contract
from ..contracts.schema import Rule
from ..db.base import get_session_local
from ..db.models import LocalDataModel
from ..db.services import AgreementService
from ..exceptions import BrokerError
from ..services.artifacts import ArtifactDataBroker

logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScanResult:
    """Outcome of one scan over all agreements."""

    started_at: datetime
    agreements_scanned: int = 0
    duties_due: int = 0
    erased: List[str] = field(default_factory=list)
    failures: int = 0


class ScheduledDataRemoval:
    """Periodically erases artifact data whose deletion duties are due."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        interval: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the removal worker.

        Args:
            session_factory: Creates a database session per run (default: app engine)
            interval: Seconds between the end of one run and the next (default from config)
            clock: Returns the current time; injectable for tests
            settings: Application settings (default: global settings)
        """
        self.settings = settings or get_settings()
        self.session_factory = session_factory or get_session_local()
        self.interval = interval or self.settings.data_removal_interval_seconds
        self.clock = clock or _utc_now
        self.worker_id = f"removal-{uuid.uuid4().hex[:8]}"
        self.state = "idle"
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = logger.bind(worker_id=self.worker_id)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Run scans on a background thread until stopped."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name=self.worker_id, daemon=True
        )
        self._thread.start()
        self.logger.info("data_removal_started", interval=self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the worker to stop after the current scan and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.logger.info("data_removal_stopped")

    def run_forever(self) -> None:
        """Run scans in the calling thread until SIGINT/SIGTERM."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        self._stop_event.clear()
        self.logger.info("data_removal_started", interval=self.interval)
        self._run_loop()
        self.logger.info("data_removal_stopped")

    def _signal_handler(self, signum, frame) -> None:
        self.logger.info("signal_received", signum=signum)
        self._stop_event.set()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.schedule()
            self._stop_event.wait(self.interval)

    def run_once(self) -> Optional[ScanResult]:
        """Perform a single scan in the calling thread."""
        return self.schedule()

    def schedule(self) -> Optional[ScanResult]:
        """Perform one timer tick. Never raises.

        Returns:
            The scan result, or None if the run was skipped or failed
        """
        if self.settings.usage_control_framework != "internal":
            self.logger.debug(
                "data_removal_skipped", framework=self.settings.usage_control_framework
            )
            return None

        try:
            self.logger.info("scanning_agreements")
            return self.scan_agreements()
        except Exception as e:
            self.logger.exception("data_removal_failed", error=str(e))
            return None

    def scan_agreements(self) -> ScanResult:
        """Check all agreements for artifacts whose data has to be erased."""
        now = self.clock()
        result = ScanResult(started_at=now)
        db = self.session_factory()
        self.state = "scanning"
        try:
            broker = ArtifactDataBroker(db, settings=self.settings, clock=self.clock)
            for agreement in AgreementService(db).get_agreements():
                result.agreements_scanned += 1
                try:
                    contract = deserialize_contract(agreement.value)
                except BrokerError as e:
                    self.logger.warning(
                        "agreement_unreadable", agreement_id=agreement.id, error=e.message
                    )
                    result.failures += 1
                    continue

                for rule in extract_rules_from_contract(contract):
                    self._enforce_rule(db, broker, rule, now, result)
        finally:
            db.close()
            self.state = "idle"

        self.logger.info(
            "agreements_scanned",
            agreements=result.agreements_scanned,
            duties_due=result.duties_due,
            erased=len(result.erased),
            failures=result.failures,
        )
        return result

    def _enforce_rule(
        self,
        db: Session,
        broker: ArtifactDataBroker,
        rule: Rule,
        now: datetime,
        result: ScanResult,
    ) -> None:
        if not get_deletion_duties(rule):
            return

        try:
            artifact_id = broker.identify_by_remote_id(rule.target)
            artifact = broker.artifacts.get_artifact(artifact_id) if artifact_id else None

            num_accessed = None
            if artifact is not None and rule_counts_accesses(rule):
                num_accessed = artifact.num_accessed

            if not check_rule_for_post_duties(rule, now, num_accessed):
                return
            result.duties_due += 1

            if artifact is None:
                self.logger.warning("duty_target_unknown", target=rule.target)
                return

            if isinstance(artifact.data, LocalDataModel) and artifact.data.value == b"":
                self.logger.debug("data_already_removed", artifact_id=artifact_id)
                return

            broker.set_data(
                artifact_id,
                io.BytesIO(b""),
                audit_action="data_erased",
                actor_kind="system",
                actor_id=self.worker_id,
            )
            result.erased.append(artifact_id)
            self.logger.info("data_removed", artifact_id=artifact_id, target=rule.target)
        except BrokerError as e:
            db.rollback()
            self.logger.warning(
                "data_removal_rule_failed", target=rule.target, error=e.message
            )
            result.failures += 1


def run_worker(interval: Optional[int] = None, once: bool = False) -> Optional[ScanResult]:
    """Run the scheduled data removal.

    Args:
        interval: Seconds between runs (default from config)
        once: Perform a single scan and return its result
    """
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    worker = ScheduledDataRemoval(interval=interval, settings=settings)
    if once:
        return worker.run_once()
    worker.run_forever()
    return None
