from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.errors import ValidationError
from app.models.audit_log import AuditLog
from app.models.enums import ProjectType, SnapshotType
from app.schemas.snapshot_payloads import AtSnapshotPayload, SignedPayload, decode_payload
from app.services.snapshot_service import (
    build_at_month_snapshot,
    compute_at_period_totals,
    compute_forfait_progress,
    create_manual_snapshot,
    create_snapshot,
    list_snapshots,
)
from app.services.time_entry_service import upsert_time_entry

PROJECT = SimpleNamespace(
    id="p-1",
    at_days_sold_bo=Decimal("10"),
    at_days_sold_site=Decimal("5"),
    at_daily_rate_bo=Decimal("800"),
    at_daily_rate_site=Decimal("900"),
)


def _entry(entry_id, entry_type, hours):
    return SimpleNamespace(id=entry_id, type=entry_type, hours=Decimal(str(hours)))


def test_month_cumulative_and_remaining_totals():
    month = [_entry("a", "BO", 8), _entry("b", "SITE", 4)]
    cumulative = [_entry("x", "BO", 8), _entry("a", "BO", 8), _entry("b", "SITE", 4)]

    payload = compute_at_period_totals(PROJECT, 2026, 3, month, cumulative)

    assert payload.month_totals.bo_days == Decimal("1.0")
    assert payload.month_totals.site_days == Decimal("0.5")
    assert payload.month_totals.amount == Decimal("1250")
    assert payload.cumulative.bo_days == Decimal("2.0")
    assert payload.cumulative.site_days == Decimal("0.5")
    assert payload.remaining.bo_days == Decimal("8.0")
    assert payload.remaining.site_days == Decimal("4.5")
    assert payload.remaining.amount == Decimal("8") * 800 + Decimal("4.5") * 900
    assert payload.alerts.exceeded_sold is False
    assert payload.source.time_entry_ids == ["a", "b"]


def test_exceeded_sold_alert_and_remaining_clamped_at_zero():
    cumulative = [_entry(f"e{i}", "BO", 8) for i in range(12)]

    payload = compute_at_period_totals(PROJECT, 2026, 3, cumulative[-1:], cumulative)

    assert payload.cumulative.bo_days == Decimal("12")
    assert payload.alerts.exceeded_sold is True
    assert payload.remaining.bo_days == Decimal("0")


def test_zero_hour_entries_excluded_from_source_ids():
    month = [_entry("a", "BO", 8), _entry("z", "SITE", 0)]
    payload = compute_at_period_totals(PROJECT, 2026, 3, month, month)
    assert payload.source.time_entry_ids == ["a"]


def test_forfait_progress_counts_delivered_and_validated():
    project = SimpleNamespace(id="f-1", order_amount=Decimal("10000"))
    deliverables = [
        SimpleNamespace(id="d1", status="REMIS", percentage=Decimal("30"), amount=None),
        SimpleNamespace(id="d2", status="VALIDE", percentage=Decimal("20"), amount=Decimal("2500")),
        SimpleNamespace(id="d3", status="NON_REMIS", percentage=Decimal("50"), amount=None),
    ]

    payload = compute_forfait_progress(project, deliverables)

    assert payload.delivered_percentage == Decimal("50")
    assert payload.validated_percentage == Decimal("20")
    assert payload.delivered_amount == Decimal("5500")
    assert payload.remaining_amount == Decimal("4500")
    assert payload.deliverable_ids == ["d1", "d2", "d3"]


def test_build_from_ledger_uses_cumulative_up_to_month(db, make_project):
    project = make_project()
    for month, day, entry_type, hours in [(2, 5, "BO", 8), (3, 2, "BO", 8), (3, 3, "SITE", 4), (4, 1, "BO", 8)]:
        upsert_time_entry(
            db,
            project_id=project.id,
            year=2026,
            month=month,
            day=day,
            entry_type=entry_type,
            hours=hours,
            actor="alice",
        )
    db.commit()

    payload = build_at_month_snapshot(db, project.id, 2026, 3)

    assert payload.month_totals.bo_days == Decimal("1")
    assert payload.cumulative.bo_days == Decimal("2")
    assert payload.cumulative.site_days == Decimal("0.5")
    assert len(payload.source.time_entry_ids) == 2


def test_manual_snapshot_is_stored_decodable_and_audited(db, make_project):
    project = make_project()
    upsert_time_entry(
        db, project_id=project.id, year=2026, month=3, day=2, entry_type="BO", hours=8, actor="alice"
    )
    snapshot = create_manual_snapshot(db, project_id=project.id, year=2026, month=3, actor="alice")
    db.commit()

    assert snapshot.type == SnapshotType.MANUAL.value
    decoded = decode_payload(snapshot.data)
    assert isinstance(decoded, AtSnapshotPayload)
    assert decoded.month_totals.bo_days == Decimal("1")

    assert db.query(AuditLog).filter(AuditLog.action == "SNAPSHOT", AuditLog.entity_id == snapshot.id).count() == 1
    assert [s.id for s in list_snapshots(db, project.id)] == [snapshot.id]


def test_payload_kind_must_match_snapshot_type(db, make_project):
    project = make_project(ProjectType.AT)
    with pytest.raises(ValidationError):
        create_snapshot(
            db,
            project_id=project.id,
            snapshot_type=SnapshotType.MONTH_END,
            computed_by="alice",
            payload=SignedPayload(bordereau_id="b-1"),
        )
