"""
Routes Rapports journaliers / Daily report routes.
Soumission publique + consultation, statistiques et revue (admin).
Public submission plus admin listing, statistics and review.
"""

import math
from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.api.deps import client_ip, require_admin
from eter_reports.config import settings
from eter_reports.database import get_db
from eter_reports.models.report import ReportStatus
from eter_reports.models.user import User
from eter_reports.rate_limit import limiter
from eter_reports.schemas.auth import MessageResponse
from eter_reports.schemas.report import (
    BulkStatusUpdate,
    BulkUpdateResponse,
    DateRangeResponse,
    Pagination,
    RecentReport,
    ReportListResponse,
    ReportRead,
    ReportSubmit,
    StatisticsResponse,
    StatusUpdate,
    StatusUpdateResponse,
    SubmissionData,
    SubmissionResponse,
)
from eter_reports.services import report_service, statistics_service
from eter_reports.services.report_criteria import ReportCriteria
from eter_reports.services.signature_storage import SignatureStorage, get_storage

router = APIRouter()


@router.post("/submit", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_SUBMIT)
async def submit_form(
    request: Request,
    data: ReportSubmit,
    db: AsyncSession = Depends(get_db),
    storage: SignatureStorage = Depends(get_storage),
):
    """Soumettre un rapport journalier (public) / Submit a daily report (public)."""
    report, diagnostics = await report_service.create_report(
        db, data, storage,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return SubmissionResponse(
        form_id=report.id,
        data=SubmissionData.model_validate(report),
        diagnostics=diagnostics,
    )


@router.get("/", response_model=ReportListResponse)
async def list_forms(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    status: ReportStatus | None = None,
    depot: str | None = Query(None, min_length=1, max_length=100),
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = Query(None, min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Lister les rapports avec filtres / List reports with filters."""
    criteria = ReportCriteria(
        start_date=start_date, end_date=end_date, depot=depot,
        status=status, search=search, depot_partial=True,
    )
    reports, total = await report_service.list_reports(db, criteria, page, limit)
    pages = math.ceil(total / limit)
    return ReportListResponse(
        forms=[ReportRead.model_validate(r) for r in reports],
        pagination=Pagination(
            current=page,
            total=pages,
            count=len(reports),
            total_records=total,
            has_next=page < pages,
            has_prev=page > 1,
        ),
        filters=criteria.as_dict(),
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    start_date: date | None = None,
    end_date: date | None = None,
    depot: str | None = Query(None, min_length=1, max_length=100),
    status: ReportStatus | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Statistiques du tableau de bord / Dashboard statistics."""
    criteria = ReportCriteria(
        start_date=start_date, end_date=end_date, depot=depot, status=status,
    ).with_default_window(settings.STATS_DEFAULT_DAYS)

    stats = await statistics_service.compute_statistics(db, criteria)
    by_status = await statistics_service.status_breakdown(db, criteria)
    by_depot = await statistics_service.depot_breakdown(db, criteria)
    recent = await report_service.find_recent(db)
    today_count = await statistics_service.count_today(db)

    return StatisticsResponse(
        statistics={**stats.model_dump(), "forms_today": today_count},
        breakdowns={
            "by_status": by_status,
            "by_depot": [d.model_dump() for d in by_depot],
        },
        recent_forms=[
            RecentReport(
                id=r.id,
                depot=r.depot,
                date=r.date,
                status=r.status,
                vehicle_count=r.vehicle_count,
                total_fuel=r.total_fuel_delivered,
                submitted_at=r.submitted_at,
            )
            for r in recent
        ],
    )


@router.get("/date-range", response_model=DateRangeResponse)
async def get_forms_by_date_range(
    start_date: date,
    end_date: date,
    depot: str | None = Query(None, min_length=1, max_length=100),
    status: ReportStatus | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    criteria = ReportCriteria(start_date=start_date, end_date=end_date, depot=depot, status=status)
    criteria.require_range(settings.MAX_DATE_RANGE_DAYS)
    reports = await report_service.find_by_criteria(db, criteria)
    return DateRangeResponse(
        forms=[ReportRead.model_validate(r) for r in reports],
        count=len(reports),
        date_range={"start": start_date.isoformat(), "end": end_date.isoformat()},
    )


@router.put("/bulk", response_model=BulkUpdateResponse)
async def bulk_update(
    data: BulkStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Changer le statut de plusieurs rapports / Change the status of several reports."""
    matched, updated = await report_service.bulk_update_status(
        db, data.form_ids, data.status, admin, data.notes
    )
    return BulkUpdateResponse(
        message=f"{updated} forms updated successfully",
        matched=matched,
        updated=updated,
    )


@router.get("/{form_id}", response_model=ReportRead)
async def get_form(
    form_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    report = await report_service.get_report(db, form_id)
    return ReportRead.model_validate(report)


@router.put("/{form_id}/status", response_model=StatusUpdateResponse)
async def update_form_status(
    form_id: str,
    data: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    report = await report_service.update_status(db, form_id, data.status, admin, data.notes)
    return StatusUpdateResponse(form=ReportRead.model_validate(report))


@router.delete("/{form_id}", response_model=MessageResponse)
async def delete_form(
    form_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    storage: SignatureStorage = Depends(get_storage),
):
    await report_service.delete_report(db, form_id, admin, storage)
    return MessageResponse(message="Form deleted successfully")
