"""Tests des services / Service tests."""

from datetime import date, datetime, timedelta

import pytest

from eter_reports.errors import AccountLockedError, AuthenticationError, ConflictError, ValidationFailed
from eter_reports.models.report import ReportStatus
from eter_reports.schemas.report import ReportSubmit
from eter_reports.services import auth_service, pdf_service, report_service, statistics_service
from eter_reports.services.report_criteria import ReportCriteria

ADMIN_PASSWORD = "Admin123"


# --- Critères / Criteria ---
def test_criteria_rejects_inverted_range():
    with pytest.raises(ValidationFailed):
        ReportCriteria(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))
    ReportCriteria(start_date=date(2024, 1, 1), end_date=date(2024, 1, 1))


def test_criteria_range_limit():
    criteria = ReportCriteria(start_date=date(2023, 1, 1), end_date=date(2024, 6, 1))
    with pytest.raises(ValidationFailed):
        criteria.require_range(365)
    with pytest.raises(ValidationFailed):
        ReportCriteria(start_date=date(2024, 1, 1)).require_range(365)


def test_default_window_only_without_dates():
    today = date(2024, 3, 31)
    criteria = ReportCriteria().with_default_window(30, today=today)
    assert criteria.start_date == date(2024, 3, 1)
    assert criteria.end_date == today
    explicit = ReportCriteria(start_date=date(2024, 1, 1))
    assert explicit.with_default_window(30, today=today) is explicit


# --- Statistiques / Statistics ---
async def test_statistics_empty_set_is_all_zero(db):
    stats = await statistics_service.compute_statistics(db, ReportCriteria())
    assert stats.total_reports == 0
    assert stats.total_fuel_delivered == 0
    assert stats.total_vehicles == 0
    assert stats.unique_drivers_count == 0
    assert stats.avg_vehicles_per_report == 0


async def test_statistics_totals(db, add_report):
    await add_report("r1", vehicles=[("AB-1", "Karim", 100.25), ("AB-2", "Samir", None)])
    await add_report("r2", depot="Blida", vehicles=[("AB-3", " KARIM ", 50.0)])
    await add_report("r3", days_ago=60, vehicles=[("AB-4", "Nadia", 999.0)])

    criteria = ReportCriteria().with_default_window(30)
    stats = await statistics_service.compute_statistics(db, criteria)
    assert stats.total_reports == 2
    assert stats.total_fuel_delivered == 150.25
    assert stats.total_vehicles == 3
    assert stats.unique_drivers_count == 2
    assert stats.avg_vehicles_per_report == 1.5


async def test_breakdowns(db, add_report):
    await add_report("r1", vehicles=[("AB-1", "Karim", 100.4)])
    await add_report("r2", vehicles=[("AB-2", "Karim", 200.4), ("AB-3", "Ali", 0)])
    await add_report("r3", depot="Blida", status=ReportStatus.APPROVED)

    by_status = await statistics_service.status_breakdown(db, ReportCriteria())
    assert by_status == {"submitted": 2, "approved": 1}

    by_depot = await statistics_service.depot_breakdown(db, ReportCriteria())
    assert [d.depot for d in by_depot] == ["Dépôt Central", "Blida"]
    assert by_depot[0].form_count == 2
    assert by_depot[0].total_fuel == 301


async def test_search_matches_vehicle_fields(db, add_report):
    await add_report("r1", vehicles=[("ZZ-999", "Mourad", 10)])
    await add_report("r2", vehicles=[("AB-1", "Karim", 10)])

    reports, total = await report_service.list_reports(db, ReportCriteria(search="mour"))
    assert total == 1
    assert reports[0].id == "r1"

    reports, total = await report_service.list_reports(db, ReportCriteria(search="zz-9"))
    assert [r.id for r in reports] == ["r1"]

    _, total = await report_service.list_reports(db, ReportCriteria(search="100%"))
    assert total == 0


# --- Création / Creation ---
async def test_create_report_saves_signatures(db, storage, make_payload):
    data = ReportSubmit(**make_payload(id="rep-1"))
    report, diagnostics = await report_service.create_report(db, data, storage, ip_address="10.0.0.1")
    await db.commit()

    assert report.id == "rep-1"
    assert report.status == ReportStatus.SUBMITTED
    assert report.total_fuel_delivered == 300
    assert diagnostics == []
    assert report.signature_url_responsable.startswith("/uploads/signature_rep-1_responsable_")
    assert storage.exists(report.signature_url_responsable)
    assert storage.exists(report.signature_url_chef)


async def test_create_report_duplicate_id_conflicts(db, storage, make_payload):
    data = ReportSubmit(**make_payload(id="rep-1"))
    await report_service.create_report(db, data, storage)
    await db.commit()

    with pytest.raises(ConflictError) as exc:
        await report_service.create_report(db, data, storage)
    assert exc.value.code == "FORM_ID_EXISTS"


# --- Cycle de vie / Lifecycle ---
async def test_status_transitions(db, add_report, admin_user):
    await add_report("r1")

    report = await report_service.update_status(db, "r1", ReportStatus.APPROVED, admin_user, "ok")
    assert report.status == ReportStatus.APPROVED
    assert report.approved_by_id == admin_user.id
    assert report.reviewed_at is not None
    assert report.notes == "ok"

    report = await report_service.update_status(db, "r1", ReportStatus.REJECTED, admin_user)
    assert report.status == ReportStatus.REJECTED
    assert report.approved_at is None
    assert report.approved_by_id is None

    with pytest.raises(ConflictError) as exc:
        await report_service.update_status(db, "r1", ReportStatus.SUBMITTED, admin_user)
    assert exc.value.code == "INVALID_STATUS_TRANSITION"


async def test_bulk_update_counts_matched_and_updated(db, add_report, admin_user):
    for rid in ("a", "b", "c"):
        await add_report(rid)

    matched, updated = await report_service.bulk_update_status(
        db, ["a", "b", "c", "missing-1", "missing-2"], ReportStatus.APPROVED, admin_user
    )
    assert (matched, updated) == (3, 3)

    matched, updated = await report_service.bulk_update_status(
        db, ["a", "b"], ReportStatus.APPROVED, admin_user
    )
    assert (matched, updated) == (2, 0)


async def test_delete_report_removes_files(db, storage, make_payload, admin_user):
    data = ReportSubmit(**make_payload(id="rep-del"))
    report, _ = await report_service.create_report(db, data, storage)
    await db.commit()
    url = report.signature_url_chef

    await report_service.delete_report(db, "rep-del", admin_user, storage)
    await db.commit()
    assert not storage.exists(url)
    assert await report_service.find_by_ids(db, ["rep-del"]) == []


# --- Verrouillage / Lockout ---
async def test_lockout_after_repeated_failures(db, admin_user):
    now = datetime(2030, 1, 1, 12, 0)

    for attempt in range(1, 5):
        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(db, "admin", "wrong", now=now)
        assert admin_user.login_attempts == attempt
        assert admin_user.lock_until is None

    with pytest.raises(AuthenticationError):
        await auth_service.authenticate(db, "admin", "wrong", now=now)
    assert admin_user.login_attempts == 5
    assert admin_user.lock_until == now + timedelta(minutes=30)

    # Verrouillé même avec le bon mot de passe / Locked even with the right password
    with pytest.raises(AccountLockedError) as exc:
        await auth_service.authenticate(db, "admin", ADMIN_PASSWORD, now=now + timedelta(minutes=10))
    assert exc.value.status_code == 423
    assert "lock_until" in exc.value.details

    later = now + timedelta(minutes=31)
    user = await auth_service.authenticate(db, "Admin", ADMIN_PASSWORD, now=later)
    assert user.login_attempts == 0
    assert user.lock_until is None
    assert user.last_login == later


async def test_failure_after_expired_lock_restarts_counter(db, admin_user):
    now = datetime(2030, 1, 1, 12, 0)
    for _ in range(5):
        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(db, "admin", "wrong", now=now)

    with pytest.raises(AuthenticationError):
        await auth_service.authenticate(db, "admin", "wrong", now=now + timedelta(hours=1))
    assert admin_user.login_attempts == 1
    assert admin_user.lock_until is None


async def test_unknown_user_is_invalid_credentials(db):
    with pytest.raises(AuthenticationError) as exc:
        await auth_service.authenticate(db, "ghost", "whatever")
    assert exc.value.code == "INVALID_CREDENTIALS"


async def test_unique_drivers_fold_accented_case(db, add_report):
    report = await add_report("r1", vehicles=[("AB-1", "Élodie", 10), ("AB-2", " élodie ", 5), ("AB-3", "Éric", 1)])
    stats = await statistics_service.compute_statistics(db, ReportCriteria())
    assert report.unique_drivers_count == 2
    assert stats.unique_drivers_count == 2


async def test_search_ignores_accented_case(db, add_report):
    await add_report("r1", depot="Électricité Sud", vehicles=[("AB-1", "Élodie", 10)])
    await add_report("r2", vehicles=[("AB-2", "Karim", 10)])

    reports, _ = await report_service.list_reports(db, ReportCriteria(search="élodie"))
    assert [r.id for r in reports] == ["r1"]

    reports, _ = await report_service.list_reports(db, ReportCriteria(depot="électricité", depot_partial=True))
    assert [r.id for r in reports] == ["r1"]


async def test_bulk_notes_only_is_not_counted(db, add_report, admin_user):
    await add_report("a", status=ReportStatus.APPROVED)
    await add_report("b")

    matched, updated = await report_service.bulk_update_status(
        db, ["a", "b"], ReportStatus.APPROVED, admin_user, notes="vérifié"
    )
    assert (matched, updated) == (2, 1)
    reports = await report_service.find_by_ids(db, ["a", "b"])
    assert {r.notes for r in reports} == {"vérifié"}


async def test_summary_respects_status(db, add_report):
    await add_report("r1", status=ReportStatus.APPROVED)
    await add_report("r2")
    today = date.today()
    criteria = ReportCriteria(start_date=today, end_date=today, status=ReportStatus.APPROVED)
    _, stats = await pdf_service.generate_summary_pdf(db, criteria)
    assert stats.total_reports == 1
