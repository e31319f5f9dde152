import pytest
from sqlalchemy.exc import DBAPIError

from app.models.audit_log import AuditLog
from app.services.append_only_guards import install_append_only_guards
from app.services.snapshot_service import create_manual_snapshot
from app import database


def test_snapshot_update_is_blocked(db, make_project):
    project = make_project()
    snapshot = create_manual_snapshot(db, project_id=project.id, year=2026, month=1, actor="alice")
    db.commit()

    snapshot.computed_by = "MUTATED"
    with pytest.raises(DBAPIError):
        db.commit()


def test_snapshot_delete_is_blocked(db, make_project):
    project = make_project()
    snapshot = create_manual_snapshot(db, project_id=project.id, year=2026, month=1, actor="alice")
    db.commit()

    db.delete(snapshot)
    with pytest.raises(DBAPIError):
        db.commit()


def test_audit_log_update_is_blocked(db, make_project):
    make_project()
    entry = db.query(AuditLog).first()
    assert entry is not None

    entry.action = "MUTATED"
    with pytest.raises(DBAPIError):
        db.commit()


def test_installing_guards_twice_is_harmless(db, make_project):
    install_append_only_guards(database.engine)
    install_append_only_guards(database.engine)

    project = make_project()
    create_manual_snapshot(db, project_id=project.id, year=2026, month=1, actor="alice")
    db.commit()
