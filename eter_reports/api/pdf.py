"""
Routes d'export PDF / PDF export routes (admin).
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field, StringConstraints
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.api.deps import require_admin
from eter_reports.config import settings
from eter_reports.database import get_db
from eter_reports.models.report import ReportStatus
from eter_reports.models.user import User
from eter_reports.services import pdf_service
from eter_reports.services.report_criteria import ReportCriteria
from eter_reports.services.signature_storage import SignatureStorage, get_storage

router = APIRouter()


class MultipleReportsRequest(BaseModel):
    form_ids: list[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]] = Field(
        min_length=1, max_length=settings.MAX_REPORTS_PER_BATCH
    )


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/report/{form_id}")
async def single_report_pdf(
    form_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    storage: SignatureStorage = Depends(get_storage),
):
    """PDF d'un rapport / Single report PDF."""
    content, report = await pdf_service.generate_single_report_pdf(db, form_id, storage)
    return _pdf_response(content, f"rapport_{report.id}_{date.today().isoformat()}.pdf")


@router.post("/reports/multiple")
async def multiple_reports_pdf(
    data: MultipleReportsRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    storage: SignatureStorage = Depends(get_storage),
):
    """PDF de plusieurs rapports avec page de garde / Multi-report PDF with cover page."""
    content, _ = await pdf_service.generate_multiple_reports_pdf(db, data.form_ids, storage)
    return _pdf_response(content, f"rapports_multiples_{date.today().isoformat()}.pdf")


@router.get("/reports/date-range")
async def date_range_pdf(
    start_date: date,
    end_date: date,
    depot: str | None = Query(None, min_length=1, max_length=100),
    status: ReportStatus | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    storage: SignatureStorage = Depends(get_storage),
):
    criteria = ReportCriteria(start_date=start_date, end_date=end_date, depot=depot, status=status)
    criteria.require_range(settings.MAX_DATE_RANGE_DAYS)
    content, _ = await pdf_service.generate_date_range_pdf(db, criteria, storage)
    return _pdf_response(content, f"rapports_{start_date.isoformat()}_{end_date.isoformat()}.pdf")


@router.get("/summary")
async def summary_pdf(
    start_date: date,
    end_date: date,
    depot: str | None = Query(None, min_length=1, max_length=100),
    status: ReportStatus | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Rapport de synthèse / Summary report."""
    criteria = ReportCriteria(start_date=start_date, end_date=end_date, depot=depot, status=status)
    criteria.require_range(settings.MAX_DATE_RANGE_DAYS)
    content, _ = await pdf_service.generate_summary_pdf(db, criteria)
    return _pdf_response(content, f"synthese_{start_date.isoformat()}_{end_date.isoformat()}.pdf")
