"""Tests for ExpertDrawService - proves the facade orchestrates correctly."""

import re

import pytest
from pathlib import Path

from expertdraw.directory.roster import CategoryDirectory, ExpertRoster
from expertdraw.errors import DrawErrorKind
from expertdraw.models.expert import Category, Expert
from expertdraw.models.selection import AuditEntryKind, RecordStatus, SelectionRequirement
from expertdraw.persistence.event_log import EventKind, EventLog
from expertdraw.persistence.record_store import RecordFilter, SelectionRecordStore
from expertdraw.policy.resolver import DrawPolicy
from expertdraw.service import ExpertDrawService


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def policy() -> DrawPolicy:
    return DrawPolicy.from_config_dir(CONFIG_DIR)


def _directory() -> tuple[ExpertRoster, CategoryDirectory]:
    """tech: A, B, C; med: D; plus one retired tech expert."""
    roster = ExpertRoster()
    for id, name, category in [
        ("A", "Zhang San", "tech"),
        ("B", "Wu Jiu", "tech"),
        ("C", "Feng Shiyi", "tech"),
        ("D", "Wang Wu", "med"),
    ]:
        roster.register(Expert(
            expert_id=id, name=name, category_id=category,
            work_unit="Pingdingshan University", professional_title="Professor",
        ))
    roster.register(Expert("R", "Zhao Liu", "tech", in_service=False))
    categories = CategoryDirectory(roster)
    categories.add(Category("tech", "Technology"))
    categories.add(Category("med", "Medicine"))
    return roster, categories


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def service(policy: DrawPolicy, event_log: EventLog) -> ExpertDrawService:
    roster, categories = _directory()
    return ExpertDrawService(policy, roster, categories, event_log=event_log)


def _draw(service: ExpertDrawService, **overrides):
    kwargs = dict(
        project_name="Library roof",
        organization_unit="Estates",
        extract_date="2026-03-01",
        supervisor="Audit Office",
        operator_id="admin",
        requirements=[
            SelectionRequirement("tech", 2),
            SelectionRequirement("med", 1),
        ],
    )
    kwargs.update(overrides)
    return service.draw_experts(**kwargs)


class FailingEventLog(EventLog):
    def record(self, event_kind, actor_id, payload):
        raise OSError("log volume offline")


class TestDraw:
    def test_draw_creates_clean_record(self, service: ExpertDrawService) -> None:
        result = _draw(service)
        assert result.success
        assert result.data["status"] == "clean"
        assert len(result.data["expert_ids"]) == 3
        assert "D" in result.data["expert_ids"]

        record = service.get_record(result.data["record_id"])
        assert record is not None
        assert record.status == RecordStatus.CLEAN
        assert len(record.log) == 3
        assert record.project.project_name == "Library roof"

    def test_project_number_format(self, service: ExpertDrawService) -> None:
        result = _draw(service)
        assert re.fullmatch(r"PDSU-\d{8}-\d{4}", result.data["project_no"])

    def test_project_ids_increase(self, service: ExpertDrawService) -> None:
        first = service.get_record(_draw(service).data["record_id"])
        second = service.get_record(_draw(service).data["record_id"])
        assert second.project.project_id == first.project.project_id + 1

    def test_insufficient_pool_stores_nothing(
        self, service: ExpertDrawService, event_log: EventLog,
    ) -> None:
        result = _draw(service, requirements=[
            SelectionRequirement("tech", 2),
            SelectionRequirement("med", 2),
        ])
        assert not result.success
        assert result.data["error_kind"] == DrawErrorKind.INSUFFICIENT_POOL.value
        assert "Medicine" in result.errors[0]
        assert service.list_records() == []
        assert event_log.count == 0

    def test_retired_expert_not_counted(self, service: ExpertDrawService) -> None:
        result = _draw(service, requirements=[SelectionRequirement("tech", 4)])
        assert not result.success
        assert "3 eligible" in result.errors[0]

    def test_invalid_requirement_reported(self, service: ExpertDrawService) -> None:
        result = _draw(service, requirements=[])
        assert not result.success
        assert result.data["error_kind"] == DrawErrorKind.INVALID_REQUIREMENT.value

    def test_blank_project_name_rejected(self, service: ExpertDrawService) -> None:
        result = _draw(service, project_name="  ", supervisor="")
        assert not result.success
        assert len(result.errors) == 2
        assert service.list_records() == []

    def test_seeded_draw_reproducible(self, policy: DrawPolicy) -> None:
        picks = []
        for _ in range(2):
            roster, categories = _directory()
            svc = ExpertDrawService(policy, roster, categories)
            picks.append(_draw(svc, seed="beacon:42").data["expert_ids"])
        assert picks[0] == picks[1]

    def test_operator_events_emitted(
        self, service: ExpertDrawService, event_log: EventLog,
    ) -> None:
        result = _draw(service)
        assert len(event_log.events(EventKind.SELECTION_CREATED)) == 1
        drawn = event_log.events(EventKind.EXPERT_DRAWN)
        assert len(drawn) == 3
        assert {e.payload["category"] for e in drawn} == {"Technology", "Medicine"}
        assert all(e.actor_id == "admin" for e in drawn)
        assert all(e.payload["record_id"] == result.data["record_id"] for e in drawn)

    def test_event_delivery_failure_does_not_roll_back(self, policy: DrawPolicy) -> None:
        roster, categories = _directory()
        svc = ExpertDrawService(policy, roster, categories, event_log=FailingEventLog())
        result = _draw(svc)
        assert result.success
        assert "log volume offline" in result.data["warning"]
        assert svc.get_record(result.data["record_id"]) is not None

    def test_persistence_failure_reported(
        self, policy: DrawPolicy, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        roster, categories = _directory()
        store = SelectionRecordStore()

        def fail(record) -> None:
            raise OSError("read-only filesystem")

        monkeypatch.setattr(store, "_write", fail)
        svc = ExpertDrawService(policy, roster, categories, record_store=store)
        result = _draw(svc)
        assert not result.success
        assert "Persistence failure" in result.errors[0]
        assert svc.list_records() == []


class TestReplace:
    def test_replace_amends_record(
        self, service: ExpertDrawService, event_log: EventLog,
    ) -> None:
        drawn = _draw(service, requirements=[SelectionRequirement("tech", 2)])
        record_id = drawn.data["record_id"]
        old = drawn.data["expert_ids"][0]

        result = service.replace_expert(record_id, old, "conflict of interest", "admin")
        assert result.success
        assert result.data["status"] == "amended"
        assert result.data["version"] == 1
        new = result.data["new_expert_id"]
        assert new not in drawn.data["expert_ids"]

        record = service.get_record(record_id)
        assert new in record.expert_ids()
        assert old not in record.expert_ids()
        assert record.log[-1].kind == AuditEntryKind.REPLACEMENT
        assert record.log[-1].reason == "conflict of interest"

        replaced = event_log.events(EventKind.EXPERT_REPLACED)
        assert len(replaced) == 1
        assert replaced[0].payload["reason"] == "conflict of interest"

    def test_no_replacement_available(self, service: ExpertDrawService) -> None:
        record_id = _draw(service).data["record_id"]
        result = service.replace_expert(record_id, "D", "leave", "admin")
        assert not result.success
        assert result.data["error_kind"] == DrawErrorKind.NO_REPLACEMENT_AVAILABLE.value
        record = service.get_record(record_id)
        assert record.status == RecordStatus.CLEAN
        assert len(record.log) == 3

    def test_unknown_record(self, service: ExpertDrawService) -> None:
        result = service.replace_expert("missing", "A", "conflict", "admin")
        assert not result.success
        assert result.data["error_kind"] == DrawErrorKind.RECORD_NOT_FOUND.value

    def test_expert_not_in_record(self, service: ExpertDrawService) -> None:
        record_id = _draw(service, requirements=[SelectionRequirement("med", 1)]).data["record_id"]
        result = service.replace_expert(record_id, "A", "conflict", "admin")
        assert not result.success
        assert result.data["error_kind"] == DrawErrorKind.ENTRY_NOT_FOUND.value

    def test_blank_reason(self, service: ExpertDrawService) -> None:
        drawn = _draw(service)
        result = service.replace_expert(
            drawn.data["record_id"], drawn.data["expert_ids"][0], "   ", "admin",
        )
        assert not result.success
        assert result.data["error_kind"] == DrawErrorKind.INVALID_REASON.value

    def test_stale_version_conflict(self, service: ExpertDrawService) -> None:
        drawn = _draw(service, requirements=[SelectionRequirement("tech", 1)])
        record_id = drawn.data["record_id"]
        first = service.replace_expert(
            record_id, drawn.data["expert_ids"][0], "conflict", "admin",
            expected_version=0,
        )
        assert first.success
        second = service.replace_expert(
            record_id, first.data["new_expert_id"], "conflict", "admin",
            expected_version=0,
        )
        assert not second.success
        assert second.data["error_kind"] == DrawErrorKind.CONCURRENT_MUTATION_CONFLICT.value


class TestQueries:
    def test_list_records_by_status(self, service: ExpertDrawService) -> None:
        clean_id = _draw(service).data["record_id"]
        drawn = _draw(service, requirements=[SelectionRequirement("tech", 1)])
        service.replace_expert(
            drawn.data["record_id"], drawn.data["expert_ids"][0], "sick", "admin",
        )
        amended = service.list_records(RecordFilter(status=RecordStatus.AMENDED))
        assert [r.record_id for r in amended] == [drawn.data["record_id"]]
        clean = service.list_records(RecordFilter(status=RecordStatus.CLEAN))
        assert [r.record_id for r in clean] == [clean_id]

    def test_record_roster_resolves_details(self, service: ExpertDrawService) -> None:
        record_id = _draw(service, requirements=[SelectionRequirement("med", 1)]).data["record_id"]
        rows = service.record_roster(record_id)
        assert rows == [{
            "expert_id": "D",
            "name": "Wang Wu",
            "category": "Medicine",
            "work_unit": "Pingdingshan University",
            "professional_title": "Professor",
            "contact_info": "",
        }]

    def test_record_roster_unknown_record(self, service: ExpertDrawService) -> None:
        assert service.record_roster("missing") is None

    def test_status_counts(self, service: ExpertDrawService) -> None:
        _draw(service)
        status = service.status()
        assert status["experts"] == {"total": 5, "active": 4}
        assert status["categories"] == 2
        assert status["selections"] == {"total": 1, "amended": 0}


class TestPersistenceWiring:
    def test_restart_keeps_records_and_counter(
        self, policy: DrawPolicy, tmp_path: Path,
    ) -> None:
        roster, categories = _directory()
        svc = ExpertDrawService(
            policy, roster, categories,
            record_store=SelectionRecordStore(tmp_path / "records"),
        )
        first = _draw(svc)

        roster, categories = _directory()
        restarted = ExpertDrawService(
            policy, roster, categories,
            record_store=SelectionRecordStore(tmp_path / "records"),
        )
        assert restarted.get_record(first.data["record_id"]) is not None
        second = _draw(restarted)
        assert restarted.get_record(second.data["record_id"]).project.project_id == 2
