"""Tests des modèles / Model tests."""

from datetime import timedelta

from sqlalchemy import delete, func, select

from eter_reports.database import utc_now
from eter_reports.models.report import Report, ReportStatus, ReportVehicle
from eter_reports.models.user import User, UserRole


def test_report_repr(new_report):
    r = new_report("abc-1", depot="Blida")
    assert "abc-1" in repr(r)
    assert "Blida" in repr(r)


def test_enums():
    assert ReportStatus.SUBMITTED.value == "submitted"
    assert ReportStatus.DRAFT.value == "draft"
    assert UserRole.ADMIN.value == "admin"
    assert UserRole.SUPERVISOR.value == "supervisor"


def test_derived_totals_treat_missing_quantity_as_zero(new_report):
    r = new_report("r1", vehicles=[
        ("AB-1", "Karim", 120.5),
        ("AB-2", " karim ", None),
        ("AB-3", "Samir", 79.5),
    ])
    assert r.total_fuel_delivered == 200.0
    assert r.vehicle_count == 3
    assert r.unique_drivers_count == 2


def test_user_lock_state():
    now = utc_now()
    user = User(username="u", name="U", hashed_password="x", role=UserRole.USER)
    assert not user.is_locked(now)
    user.lock_until = now + timedelta(minutes=5)
    assert user.is_locked(now)
    assert not user.is_locked(now + timedelta(minutes=6))


async def test_vehicle_rows_follow_report_delete(db, add_report):
    await add_report("r1")
    await db.execute(delete(Report).where(Report.id == "r1"))
    remaining = await db.scalar(select(func.count()).select_from(ReportVehicle))
    assert remaining == 0
