"""
Service Rapports / Report service.
Persistance, cycle de vie (statuts) et diagnostics de soumission.
Persistence, lifecycle (status workflow) and submission diagnostics.
"""

import logging
import secrets
import time
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.database import utc_now
from eter_reports.errors import AppError, ConflictError, NotFoundError
from eter_reports.models.report import Report, ReportStatus, ReportVehicle
from eter_reports.models.user import User
from eter_reports.schemas.report import Diagnostic, ReportSubmit
from eter_reports.services.audit_service import record_audit
from eter_reports.services.report_criteria import ReportCriteria
from eter_reports.services.signature_storage import SignatureStorage

logger = logging.getLogger(__name__)

STOCK_TOLERANCE = 0.1
STALE_REPORT_DAYS = 365

# Transitions autorisées / Allowed transitions
ALLOWED_TRANSITIONS: dict[ReportStatus, set[ReportStatus]] = {
    ReportStatus.DRAFT: {ReportStatus.SUBMITTED},
    ReportStatus.SUBMITTED: {ReportStatus.APPROVED, ReportStatus.REJECTED},
    ReportStatus.APPROVED: {ReportStatus.REJECTED},
    ReportStatus.REJECTED: {ReportStatus.APPROVED},
}

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_report_id(now_ms: int | None = None) -> str:
    """Identifiant horodaté + aléa / Timestamped id with a random suffix."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{_base36(now_ms)}-{secrets.token_hex(4)}"


def collect_diagnostics(data: ReportSubmit, today: date | None = None) -> list[Diagnostic]:
    """Avertissements non bloquants / Non-blocking warnings (logged, never raised)."""
    today = today or date.today()
    diagnostics = []

    expected_end = data.stock_debut - data.sortie_gasoil
    if abs(data.stock_fin - expected_end) > STOCK_TOLERANCE:
        diagnostics.append(Diagnostic(
            field="stock_fin",
            message=(
                f"Stock inconsistency: start ({data.stock_debut:g}) - output ({data.sortie_gasoil:g}) "
                f"!= end ({data.stock_fin:g})"
            ),
        ))

    if (today - data.date).days > STALE_REPORT_DAYS:
        diagnostics.append(Diagnostic(
            field="date",
            message=f"Report date {data.date.isoformat()} is more than one year old",
        ))

    return diagnostics


# --- Lecture / Read ---
async def get_report(db: AsyncSession, report_id: str) -> Report:
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found", code="REPORT_NOT_FOUND")
    return report


async def list_reports(
    db: AsyncSession, criteria: ReportCriteria, page: int = 1, limit: int = 50
) -> tuple[list[Report], int]:
    """Page de rapports + total / Page of reports plus total count."""
    query = (
        criteria.apply(select(Report))
        .order_by(Report.submitted_at.desc(), Report.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    count_query = select(func.count()).select_from(criteria.apply(select(Report.id)).subquery())

    result = await db.execute(query)
    total = (await db.execute(count_query)).scalar() or 0
    return list(result.scalars().all()), total


async def find_by_ids(db: AsyncSession, report_ids: list[str]) -> list[Report]:
    result = await db.execute(
        select(Report).where(Report.id.in_(report_ids)).order_by(Report.date.desc(), Report.id)
    )
    return list(result.scalars().all())


async def find_by_criteria(db: AsyncSession, criteria: ReportCriteria) -> list[Report]:
    """Tous les rapports correspondants, date décroissante / All matches, newest date first."""
    result = await db.execute(
        criteria.apply(select(Report)).order_by(Report.date.desc(), Report.submitted_at.desc())
    )
    return list(result.scalars().all())


async def find_recent(
    db: AsyncSession, days: int = 7, limit: int = 10, now: datetime | None = None
) -> list[Report]:
    cutoff = (now or utc_now()) - timedelta(days=days)
    result = await db.execute(
        select(Report)
        .where(Report.submitted_at >= cutoff)
        .order_by(Report.submitted_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# --- Création / Creation ---
async def create_report(
    db: AsyncSession,
    data: ReportSubmit,
    storage: SignatureStorage,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[Report, list[Diagnostic]]:
    """Insérer un rapport si l'id est libre / Insert a report if its id is free."""
    report_id = data.id or generate_report_id()

    if await db.get(Report, report_id) is not None:
        raise ConflictError("Form with this ID already exists", code="FORM_ID_EXISTS")

    diagnostics = collect_diagnostics(data)
    for diag in diagnostics:
        logger.warning("Form %s: %s", report_id, diag.message)

    try:
        url_responsable = storage.save(data.signature_responsable, f"{report_id}_responsable")
        url_chef = storage.save(data.signature_chef, f"{report_id}_chef")
    except OSError as exc:
        logger.error("Could not save signatures for form %s: %s", report_id, exc)
        raise AppError("Error saving signatures", code="SIGNATURE_SAVE_ERROR") from exc

    report = Report(
        id=report_id,
        entree=data.entree,
        origine=data.origine,
        depot=data.depot,
        chantier=data.chantier,
        date=data.date,
        stock_debut=data.stock_debut,
        stock_fin=data.stock_fin,
        sortie_gasoil=data.sortie_gasoil,
        debut_index=data.debut_index,
        fin_index=data.fin_index,
        vehicles=[
            ReportVehicle(position=i, **v.model_dump())
            for i, v in enumerate(data.vehicles)
        ],
        signature_responsable=data.signature_responsable,
        signature_url_responsable=url_responsable,
        signature_chef=data.signature_chef,
        signature_url_chef=url_chef,
        status=ReportStatus.SUBMITTED,
        notes=data.notes,
        submitted_at=utc_now(),
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
    )
    db.add(report)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Insertion concurrente du même id / Concurrent insert of the same id
        await db.rollback()
        storage.delete(url_responsable)
        storage.delete(url_chef)
        raise ConflictError("Form with this ID already exists", code="FORM_ID_EXISTS") from exc

    logger.info(
        "Form submitted: %s (depot=%s, vehicles=%d, total_fuel=%s, ip=%s)",
        report.id, report.depot, report.vehicle_count, report.total_fuel_delivered, ip_address,
    )
    return report, diagnostics


# --- Cycle de vie / Lifecycle ---
def apply_status(
    report: Report,
    status: ReportStatus,
    actor: User,
    notes: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Appliquer une transition ; True si le rapport a changé / Apply a transition, True if changed.

    Lève ConflictError si la transition n'est pas autorisée.
    Raises ConflictError when the transition is not allowed.
    """
    now = now or utc_now()
    changed = False

    if status != report.status:
        if status not in ALLOWED_TRANSITIONS.get(report.status, set()):
            raise ConflictError(
                f"Cannot change status from {report.status.value} to {status.value}",
                code="INVALID_STATUS_TRANSITION",
                details={"from": report.status.value, "to": status.value},
            )
        if status == ReportStatus.APPROVED:
            report.approved_at = now
            report.approved_by_id = actor.id
        elif report.status == ReportStatus.APPROVED:
            report.approved_at = None
            report.approved_by_id = None
        report.status = status
        report.reviewed_at = now
        report.reviewed_by_id = actor.id
        changed = True

    if notes is not None and notes != report.notes:
        report.notes = notes
        changed = True

    return changed


async def update_status(
    db: AsyncSession,
    report_id: str,
    status: ReportStatus,
    actor: User,
    notes: str | None = None,
) -> Report:
    report = await get_report(db, report_id)
    old_status = report.status
    if apply_status(report, status, actor, notes):
        record_audit(
            db, "report", report.id, "STATUS_CHANGE",
            {"from": old_status.value, "to": status.value, "notes": notes},
            user=actor.username,
        )
        await db.flush()
    logger.info(
        "Form status updated: %s %s -> %s by %s",
        report.id, old_status.value, report.status.value, actor.username,
    )
    return report


async def bulk_update_status(
    db: AsyncSession,
    report_ids: list[str],
    status: ReportStatus,
    actor: User,
    notes: str | None = None,
) -> tuple[int, int]:
    """Transition indépendante par id / Independent transition per id.

    Retourne (matched, updated) / Returns (matched, updated).
    """
    reports = await find_by_ids(db, list(dict.fromkeys(report_ids)))
    now = utc_now()
    updated = 0
    touched = False
    for report in reports:
        old_status = report.status
        try:
            touched |= apply_status(report, status, actor, notes, now=now)
        except ConflictError as exc:
            logger.info("Bulk update skipped %s: %s", report.id, exc.message)
            continue
        # Seuls les changements de statut comptent / only status changes are counted
        if report.status != old_status:
            updated += 1

    if touched:
        record_audit(
            db, "report", "bulk", "BULK_STATUS_CHANGE",
            {"ids": [r.id for r in reports], "to": status.value, "updated": updated},
            user=actor.username,
        )
        await db.flush()

    logger.info(
        "Bulk update by %s: matched=%d updated=%d status=%s",
        actor.username, len(reports), updated, status.value,
    )
    return len(reports), updated


async def delete_report(
    db: AsyncSession, report_id: str, actor: User, storage: SignatureStorage
) -> None:
    report = await get_report(db, report_id)
    urls = (report.signature_url_responsable, report.signature_url_chef)
    await db.delete(report)
    record_audit(
        db, "report", report_id, "DELETE",
        {"depot": report.depot, "submitted_at": report.submitted_at},
        user=actor.username,
    )
    await db.flush()
    for url in urls:
        storage.delete(url)
    logger.info("Form deleted: %s by %s", report_id, actor.username)
