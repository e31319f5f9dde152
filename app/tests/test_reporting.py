from datetime import date
from decimal import Decimal

from app.models.enums import DeliverableStatus, ProjectType
from app.schemas.project import DeliverableCreate
from app.services import project_service
from app.services.reporting_service import production_by_month
from app.services.time_entry_service import upsert_time_entry


def _month(report, month):
    return report["months"][month - 1]


def _seed(db, make_project):
    at_project = make_project(ProjectType.AT)
    upsert_time_entry(
        db, project_id=at_project.id, year=2026, month=1, day=5, entry_type="BO", hours=8, actor="alice"
    )
    upsert_time_entry(
        db, project_id=at_project.id, year=2026, month=3, day=9, entry_type="SITE", hours=4, actor="alice"
    )
    # other year, ignored
    upsert_time_entry(
        db, project_id=at_project.id, year=2025, month=1, day=5, entry_type="BO", hours=8, actor="alice"
    )

    forfait_project = make_project(ProjectType.FORFAIT)
    submitted = project_service.add_deliverable(
        db,
        project_id=forfait_project.id,
        payload=DeliverableCreate(label="Conception", percentage=Decimal("30")),
        actor="alice",
    )
    project_service.update_deliverable_status(
        db,
        deliverable_id=submitted.id,
        status=DeliverableStatus.REMIS,
        actor="alice",
        submission_date=date(2026, 2, 10),
    )
    project_service.add_deliverable(
        db,
        project_id=forfait_project.id,
        payload=DeliverableCreate(label="Recette", percentage=Decimal("70")),
        actor="alice",
    )
    db.commit()
    return at_project, forfait_project


def test_production_by_month_values_hours_and_deliverables(db, make_project):
    _seed(db, make_project)

    report = production_by_month(db, year=2026)

    assert report["year"] == 2026
    assert [m["month"] for m in report["months"]] == list(range(1, 13))
    assert _month(report, 1)["at"] == Decimal("800.00")
    assert _month(report, 3)["at"] == Decimal("450.00")
    assert _month(report, 2)["forfait"] == Decimal("3000.00")
    assert _month(report, 2)["at"] == Decimal("0.00")
    assert sum(m["forfait"] for m in report["months"]) == Decimal("3000.00")


def test_deliverable_amount_overrides_percentage(db, make_project):
    project = make_project(ProjectType.FORFAIT)
    deliverable = project_service.add_deliverable(
        db,
        project_id=project.id,
        payload=DeliverableCreate(label="Lot 1", percentage=Decimal("50"), amount=Decimal("1234.56")),
        actor="alice",
    )
    project_service.update_deliverable_status(
        db,
        deliverable_id=deliverable.id,
        status=DeliverableStatus.VALIDE,
        actor="alice",
        submission_date=date(2026, 6, 30),
    )
    db.commit()

    report = production_by_month(db, year=2026)
    assert _month(report, 6)["forfait"] == Decimal("1234.56")


def test_project_filter_restricts_report(db, make_project):
    at_project, forfait_project = _seed(db, make_project)

    only_forfait = production_by_month(db, year=2026, project_ids=[forfait_project.id])
    assert all(m["at"] == Decimal("0.00") for m in only_forfait["months"])
    assert _month(only_forfait, 2)["forfait"] == Decimal("3000.00")

    nothing = production_by_month(db, year=2026, project_ids=[])
    assert all(m["at"] == Decimal("0.00") and m["forfait"] == Decimal("0.00") for m in nothing["months"])
