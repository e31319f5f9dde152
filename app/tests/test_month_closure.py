from decimal import Decimal

import pytest

from app.core.errors import PeriodLockedError, ValidationError
from app.models.audit_log import AuditLog
from app.models.enums import SnapshotType
from app.schemas.snapshot_payloads import RectificatifPayload, decode_payload
from app.services.bordereau_service import generate, mark_signed
from app.services.closure_service import admin_unlock, close_month
from app.services.period_lock_service import get_lock, is_locked
from app.services.time_entry_service import upsert_time_entry


def _log_hours(db, project, day, hours, entry_type="BO", month=3):
    return upsert_time_entry(
        db,
        project_id=project.id,
        year=2026,
        month=month,
        day=day,
        entry_type=entry_type,
        hours=hours,
        actor="alice",
    )


def test_close_month_snapshots_then_locks(db, make_project):
    project = make_project()
    _log_hours(db, project, 2, 8)
    _log_hours(db, project, 3, 4, entry_type="SITE")
    db.commit()

    result = close_month(db, project_id=project.id, year=2026, month=3, actor="alice")
    db.commit()

    assert result.snapshot.type == SnapshotType.MONTH_END.value
    assert result.snapshot.year == 2026
    assert result.snapshot.month == 3
    payload = decode_payload(result.snapshot.data)
    assert payload.month_totals.bo_days == Decimal("1")
    assert payload.month_totals.site_days == Decimal("0.5")

    assert result.lock.locked is True
    assert result.lock.reason == "MONTH_CLOSE"
    assert db.query(AuditLog).filter(AuditLog.action == "MONTH_CLOSE").count() == 1

    with pytest.raises(PeriodLockedError):
        _log_hours(db, project, 4, 2)


def test_close_month_flags_exceeded_sold(db, make_project):
    project = make_project(at_days_sold_bo=Decimal("1"))
    _log_hours(db, project, 2, 8)
    _log_hours(db, project, 3, 8)
    db.commit()

    result = close_month(db, project_id=project.id, year=2026, month=3, actor="alice")
    db.commit()

    assert result.snapshot.data["alerts"]["exceeded_sold"] is True


def test_admin_unlock_without_signature_has_no_rectificatif(db, make_project):
    project = make_project()
    close_month(db, project_id=project.id, year=2026, month=3, actor="alice")
    db.commit()

    result = admin_unlock(db, project_id=project.id, year=2026, month=3, actor="admin", reason="late timesheet")
    db.commit()

    assert result.rectificatif_snapshot is None
    assert is_locked(db, project.id, 2026, 3) is False
    audit = db.query(AuditLog).filter(AuditLog.action == "ADMIN_UNLOCK").one()
    assert audit.diff["reason"] == "late timesheet"

    entry = _log_hours(db, project, 4, 2)
    db.commit()
    assert entry.hours == Decimal("2.00")


def test_admin_unlock_after_signature_supersedes_signed_snapshot(db, make_project, file_store):
    project = make_project()
    _log_hours(db, project, 2, 8)
    db.commit()

    rendered = file_store.write(b"%PDF-1.4 x", "ba.pdf", "application/pdf")
    generated = generate(
        db,
        project_id=project.id,
        bordereau_type="BA",
        actor="alice",
        rendered=rendered,
        period_year=2026,
        period_month=3,
    )
    signed = mark_signed(db, bordereau_id=generated.bordereau.id, actor="Adobe Sign", source_ref="agr-9")
    close_month(db, project_id=project.id, year=2026, month=3, actor="alice")
    db.commit()

    result = admin_unlock(db, project_id=project.id, year=2026, month=3, actor="admin", reason="client dispute")
    db.commit()

    rect = result.rectificatif_snapshot
    assert rect is not None
    assert rect.type == SnapshotType.RECTIFICATIF.value
    assert rect.supersedes_snapshot_id == signed.snapshot.id

    payload = decode_payload(rect.data)
    assert isinstance(payload, RectificatifPayload)
    assert payload.reason == "UNLOCK_AFTER_SIGNATURE"
    assert payload.signed_snapshot_id == signed.snapshot.id


def test_admin_unlock_requires_reason(db, make_project):
    project = make_project()
    close_month(db, project_id=project.id, year=2026, month=3, actor="alice")
    db.commit()

    with pytest.raises(ValidationError):
        admin_unlock(db, project_id=project.id, year=2026, month=3, actor="admin", reason=" ")

    db.rollback()
    assert get_lock(db, project.id, 2026, 3).locked is True
