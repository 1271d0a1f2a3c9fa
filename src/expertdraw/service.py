"""Expert draw service - unified facade for project draws and replacements.

This is the primary interface for programmatic access. It orchestrates:
- Project creation and initial allocation (SelectionEngine)
- Make-up draws for allocated experts (ReplacementEngine)
- Record persistence and per-record serialisation (SelectionRecordStore)
- Operator activity logging (EventLog, best-effort)

All operations produce typed results. Draw failures are reported with
their DrawErrorKind in ``data["error_kind"]`` so callers can branch on
the kind rather than the message.

Ordering: a record is committed to the store before any operator event
is delivered. Event delivery failures never roll back a committed draw;
they come back as ``data["warning"]``. The audit entries inside the
record itself are part of the commit and are never optional.
"""

from __future__ import annotations

import logging
import random
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from expertdraw.directory.roster import CategoryDirectory, ExpertRoster
from expertdraw.draw.allocator import SelectionEngine
from expertdraw.draw.replacement import ReplacementEngine
from expertdraw.draw.sampler import make_rng
from expertdraw.errors import DrawError, RecordNotFound
from expertdraw.models.selection import (
    ProjectInfo,
    ProjectStatus,
    RecordStatus,
    SelectionRecord,
    SelectionRequirement,
)
from expertdraw.persistence.event_log import EventKind, EventLog
from expertdraw.persistence.record_store import RecordFilter, SelectionRecordStore
from expertdraw.policy.resolver import DrawPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _failure(error: DrawError) -> ServiceResult:
    return ServiceResult(
        success=False,
        errors=[str(error)],
        data={"error_kind": error.kind.value},
    )


class ExpertDrawService:
    """Draw and replacement facade.

    Usage:
        policy = DrawPolicy.from_config_dir(config_dir)
        service = ExpertDrawService(policy, roster, categories)

        result = service.draw_experts(
            project_name="Lab renovation", organization_unit="Estates",
            extract_date="2026-03-01", supervisor="Audit Office",
            operator_id="admin",
            requirements=[SelectionRequirement("cat001", 2)],
        )
        record_id = result.data["record_id"]
        result = service.replace_expert(record_id, expert_id, "conflict", "admin")

    Persistence (optional):
        store = SelectionRecordStore(Path("data/records"))
        log = EventLog(Path("data/operator_log.jsonl"))
        service = ExpertDrawService(policy, roster, categories, store, log)
    """

    def __init__(
        self,
        policy: DrawPolicy,
        roster: ExpertRoster,
        categories: CategoryDirectory,
        record_store: Optional[SelectionRecordStore] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._policy = policy
        self._roster = roster
        self._categories = categories
        self._records = record_store if record_store is not None else SelectionRecordStore()
        self._event_log = event_log

        self._selection_engine = SelectionEngine(policy, roster, categories)
        self._replacement_engine = ReplacementEngine(policy, roster)

        # Initialise counter from persisted records to avoid ID collision on restart
        self._project_counter = max(
            (r.project.project_id for r in self._records.list()), default=0,
        )
        self._counter_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Draws
    # ------------------------------------------------------------------

    def draw_experts(
        self,
        project_name: str,
        organization_unit: str,
        extract_date: str,
        supervisor: str,
        operator_id: str,
        requirements: Sequence[SelectionRequirement],
        seed: Optional[str] = None,
    ) -> ServiceResult:
        """Create a project and draw its experts in one step.

        Nothing is stored unless every category requirement is met.
        """
        errors: list[str] = []
        if not project_name or not project_name.strip():
            errors.append("Project name is required")
        if not supervisor or not supervisor.strip():
            errors.append("Supervisor is required")
        if errors:
            return ServiceResult(success=False, errors=errors)

        rng = make_rng(seed)
        try:
            outcome = self._selection_engine.allocate(requirements, rng=rng)
        except DrawError as e:
            logger.info("Draw for project %r rejected: %s", project_name, e)
            return _failure(e)

        project = ProjectInfo(
            project_id=self._next_project_id(),
            project_no=self._project_number(rng),
            project_name=project_name.strip(),
            organization_unit=organization_unit,
            extract_date=extract_date,
            operator_id=operator_id,
            supervisor=supervisor.strip(),
            status=ProjectStatus.COMPLETED,
        )
        record = SelectionRecord(
            record_id=str(uuid.uuid4()),
            project=project,
            entries=outcome.entries,
            log=outcome.log,
        )
        try:
            record = self._records.create(record)
        except OSError as e:
            return ServiceResult(success=False, errors=[f"Persistence failure: {e}"])

        logger.info(
            "Drew %d experts for project %s (record %s)",
            len(record.entries), project.project_no, record.record_id,
        )

        # Record is committed: operator events are best-effort from here on
        warnings = []
        warning = self._deliver(EventKind.SELECTION_CREATED, operator_id, {
            "record_id": record.record_id,
            "project_no": project.project_no,
            "project_name": project.project_name,
            "expert_count": len(record.entries),
        })
        if warning:
            warnings.append(warning)
        for entry, audit in zip(record.entries, record.log):
            warning = self._deliver(EventKind.EXPERT_DRAWN, operator_id, {
                "record_id": record.record_id,
                "category": entry.category_name,
                "expert_name": audit.new_expert_name,
                "timestamp": audit.timestamp_utc.isoformat(),
            })
            if warning:
                warnings.append(warning)

        data: dict[str, Any] = {
            "record_id": record.record_id,
            "project_no": project.project_no,
            "expert_ids": [e.expert_id for e in record.entries],
            "status": record.status.value,
        }
        if warnings:
            data["warning"] = "; ".join(warnings)
        return ServiceResult(success=True, data=data)

    def replace_expert(
        self,
        record_id: str,
        expert_id: str,
        reason: str,
        operator_id: str,
        seed: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ServiceResult:
        """Replace one allocated expert with a fresh draw from the same category.

        Replacements of the same record are serialised by the record
        store. Pass ``expected_version`` to fail instead of amending a
        record that changed since the caller last read it.
        """
        rng = make_rng(seed)
        before_ids: set[str] = set()

        def _mutate(record: SelectionRecord) -> SelectionRecord:
            before_ids.update(record.expert_ids())
            return self._replacement_engine.replace(record, expert_id, reason, rng=rng)

        try:
            record = self._records.update(
                record_id, _mutate, expected_version=expected_version,
            )
        except DrawError as e:
            logger.info("Replacement in record %s rejected: %s", record_id, e)
            return _failure(e)
        except OSError as e:
            return ServiceResult(success=False, errors=[f"Persistence failure: {e}"])

        new_expert_id = next(iter(record.expert_ids() - before_ids))
        audit = record.log[-1]
        logger.info(
            "Replaced %s with %s in record %s",
            audit.replaced_expert_name, audit.new_expert_name, record_id,
        )

        data: dict[str, Any] = {
            "record_id": record_id,
            "replaced_expert_id": expert_id,
            "new_expert_id": new_expert_id,
            "status": record.status.value,
            "version": record.version,
        }
        warning = self._deliver(EventKind.EXPERT_REPLACED, operator_id, {
            "record_id": record_id,
            "replaced_name": audit.replaced_expert_name,
            "new_name": audit.new_expert_name,
            "reason": audit.reason,
            "timestamp": audit.timestamp_utc.isoformat(),
        })
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, record_id: str) -> Optional[SelectionRecord]:
        """Look up a record."""
        try:
            return self._records.get(record_id)
        except RecordNotFound:
            return None

    def list_records(
        self,
        record_filter: Optional[RecordFilter] = None,
    ) -> list[SelectionRecord]:
        return self._records.list(record_filter)

    def record_roster(self, record_id: str) -> Optional[list[dict[str, str]]]:
        """Current allocation of a record with expert details resolved.

        Experts since removed from the roster show their id only.
        """
        record = self.get_record(record_id)
        if record is None:
            return None
        rows = []
        for entry in record.entries:
            expert = self._roster.get(entry.expert_id)
            rows.append({
                "expert_id": entry.expert_id,
                "name": expert.name if expert else entry.expert_id,
                "category": entry.category_name,
                "work_unit": expert.work_unit if expert else "",
                "professional_title": expert.professional_title if expert else "",
                "contact_info": expert.contact_info if expert else "",
            })
        return rows

    def status(self) -> dict[str, Any]:
        """Summary counts for dashboards."""
        records = self._records.list()
        return {
            "policy_version": self._policy.version,
            "experts": {
                "total": self._roster.count,
                "active": self._roster.active_count,
            },
            "categories": self._categories.count,
            "selections": {
                "total": len(records),
                "amended": sum(1 for r in records if r.status == RecordStatus.AMENDED),
            },
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _next_project_id(self) -> int:
        with self._counter_lock:
            self._project_counter += 1
            return self._project_counter

    def _project_number(self, rng: random.Random) -> str:
        """Generate ``<prefix>-<YYYYMMDD>-<random suffix>``."""
        prefix, digits = self._policy.project_number_format()
        suffix = rng.randint(10 ** (digits - 1), 10 ** digits - 1)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"{prefix}-{today}-{suffix}"

    def _deliver(
        self,
        kind: EventKind,
        operator_id: str,
        payload: dict[str, Any],
    ) -> Optional[str]:
        """Append an operator event. Returns a warning string on failure."""
        if self._event_log is None:
            return None
        try:
            self._event_log.record(kind, operator_id, payload)
            return None
        except (ValueError, OSError) as e:
            logger.warning("Operator event %s not delivered: %s", kind.value, e)
            return f"Operator log delivery failed: {e}"
