import pytest

from app.core.errors import ValidationError
from app.models.audit_log import AuditLog
from app.models.bordereau import Bordereau
from app.models.enums import BordereauStatus, BordereauType, ProjectType, SnapshotType
from app.models.snapshot import ProjectSituationSnapshot
from app.schemas.snapshot_payloads import ForfaitProgressPayload, RectificatifPayload, decode_payload
from app.services.bordereau_service import generate, mark_signed

FAKE_PDF = b"%PDF-1.4 bordereau"


def _generate(db, file_store, project, bordereau_type="BA", year=2026, month=3):
    rendered = file_store.write(FAKE_PDF, "bordereau.pdf", "application/pdf")
    result = generate(
        db,
        project_id=project.id,
        bordereau_type=bordereau_type,
        actor="alice",
        rendered=rendered,
        period_year=year,
        period_month=month,
    )
    db.commit()
    return result


def _snapshots(db, project, snapshot_type):
    return (
        db.query(ProjectSituationSnapshot)
        .filter(
            ProjectSituationSnapshot.project_id == project.id,
            ProjectSituationSnapshot.type == snapshot_type.value,
        )
        .all()
    )


def test_first_generation_creates_bordereau_version_one(db, make_project, file_store):
    project = make_project()

    result = _generate(db, file_store, project)

    assert result.rectificatif is False
    assert result.bordereau.status == BordereauStatus.GENERATED.value
    assert result.bordereau.type == BordereauType.BA.value
    assert result.version.version_number == 1
    assert result.snapshot.type == SnapshotType.BORDEREAU_GENERATED.value
    assert result.file.checksum is not None
    assert db.query(AuditLog).filter(AuditLog.action == "GENERATE").count() == 1


def test_regeneration_appends_version_to_same_bordereau(db, make_project, file_store):
    project = make_project()

    first = _generate(db, file_store, project)
    second = _generate(db, file_store, project)

    assert second.bordereau.id == first.bordereau.id
    assert second.version.version_number == 2
    assert second.bordereau.snapshot_id == second.snapshot.id
    assert len(_snapshots(db, project, SnapshotType.BORDEREAU_GENERATED)) == 2


def test_type_and_period_keep_bordereaux_apart(db, make_project, file_store):
    project = make_project()

    ba_march = _generate(db, file_store, project, "BA", 2026, 3)
    ba_april = _generate(db, file_store, project, "BA", 2026, 4)
    bl_march = _generate(db, file_store, project, "BL", 2026, 3)

    assert len({ba_march.bordereau.id, ba_april.bordereau.id, bl_march.bordereau.id}) == 3


def test_rectificatif_is_not_a_generation_type(db, make_project, file_store):
    project = make_project()
    with pytest.raises(ValidationError):
        _generate(db, file_store, project, bordereau_type="RECTIFICATIF")


def test_mark_signed_is_idempotent(db, make_project, file_store):
    project = make_project()
    generated = _generate(db, file_store, project)

    first = mark_signed(db, bordereau_id=generated.bordereau.id, actor="Adobe Sign", source_ref="agr-1")
    db.commit()
    second = mark_signed(db, bordereau_id=generated.bordereau.id, actor="Adobe Sign", source_ref="agr-1")
    db.commit()

    assert first.already_signed is False
    assert first.bordereau.status == BordereauStatus.SIGNED.value
    assert first.bordereau.signed_at is not None
    assert first.snapshot.source_ref == "agr-1"

    assert second.already_signed is True
    assert second.snapshot is None
    assert len(_snapshots(db, project, SnapshotType.BORDEREAU_SIGNED)) == 1
    assert db.query(AuditLog).filter(AuditLog.action == "SIGNED").count() == 1


def test_generation_after_signature_opens_rectificatif(db, make_project, file_store):
    project = make_project()
    original = _generate(db, file_store, project)
    signed = mark_signed(db, bordereau_id=original.bordereau.id, actor="alice", source_ref="agr-1")
    db.commit()

    rect = _generate(db, file_store, project)

    assert rect.rectificatif is True
    assert rect.bordereau.id != original.bordereau.id
    assert rect.bordereau.type == BordereauType.RECTIFICATIF.value
    assert rect.bordereau.base_type == BordereauType.BA.value
    assert rect.version.version_number == 1
    assert rect.snapshot.type == SnapshotType.RECTIFICATIF.value
    assert rect.snapshot.supersedes_snapshot_id == signed.snapshot.id

    payload = decode_payload(rect.snapshot.data)
    assert isinstance(payload, RectificatifPayload)
    assert payload.reason == "RECTIFICATIF_BORDEREAU"

    db.expire_all()
    signed_row = db.get(Bordereau, original.bordereau.id)
    assert signed_row.status == BordereauStatus.SIGNED.value
    assert signed_row.is_live is False
    assert len(signed_row.versions) == 1

    again = _generate(db, file_store, project)
    assert again.bordereau.id == rect.bordereau.id
    assert again.version.version_number == 2


def test_forfait_generation_records_progress(db, make_project, file_store):
    project = make_project(ProjectType.FORFAIT)

    result = _generate(db, file_store, project, "BL", None, None)

    payload = decode_payload(result.snapshot.data)
    assert isinstance(payload.situation, ForfaitProgressPayload)
    assert result.bordereau.period_year is None


def test_half_given_period_rejected(db, make_project, file_store):
    project = make_project()
    with pytest.raises(ValidationError):
        _generate(db, file_store, project, "BA", 2026, None)


def test_rectificatif_supersedes_signature_of_its_own_lineage(db, make_project, file_store):
    project = make_project()
    ba = _generate(db, file_store, project, "BA")
    bl = _generate(db, file_store, project, "BL")
    ba_signed = mark_signed(db, bordereau_id=ba.bordereau.id, actor="alice", source_ref="agr-ba")
    db.commit()
    mark_signed(db, bordereau_id=bl.bordereau.id, actor="alice", source_ref="agr-bl")
    db.commit()

    rect = _generate(db, file_store, project, "BA")

    assert rect.rectificatif is True
    assert rect.snapshot.supersedes_snapshot_id == ba_signed.snapshot.id
