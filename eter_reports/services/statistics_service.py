"""
Statistiques des rapports / Report statistics.
Agrégations SQL sur les rapports filtrés par ReportCriteria.
SQL aggregations over reports filtered by ReportCriteria.
"""

from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.database import utc_now
from eter_reports.models.report import Report, ReportVehicle, driver_key
from eter_reports.schemas.report import DepotBreakdown, ReportStatistics
from eter_reports.services.report_criteria import ReportCriteria


def average(total: float, count: int) -> float:
    return round(total / count, 2) if count else 0.0


async def compute_statistics(db: AsyncSession, criteria: ReportCriteria) -> ReportStatistics:
    """Totaux sur les rapports correspondants / Totals over matching reports.

    Un ensemble vide donne des zéros / An empty set yields zeros.
    """
    report_count = (await db.execute(
        criteria.apply(select(func.count(Report.id)))
    )).scalar() or 0

    if report_count == 0:
        return ReportStatistics()

    vehicle_query = criteria.apply(
        select(
            func.count(ReportVehicle.id),
            func.coalesce(func.sum(ReportVehicle.quantite_livree), 0),
        ).join(Report, ReportVehicle.report_id == Report.id)
    )
    vehicles, fuel = (await db.execute(vehicle_query)).one()

    # Casse repliée côté Python : lower() de SQLite ignore les accents
    # Case folded in Python: SQLite lower() leaves accented letters alone
    names = await db.scalars(criteria.apply(
        select(distinct(ReportVehicle.chauffeur)).join(Report, ReportVehicle.report_id == Report.id)
    ))
    drivers = len({driver_key(name) for name in names if name})

    return ReportStatistics(
        total_reports=report_count,
        total_fuel_delivered=round(float(fuel or 0), 2),
        total_vehicles=vehicles or 0,
        unique_drivers_count=drivers or 0,
        avg_vehicles_per_report=average(vehicles or 0, report_count),
    )


async def status_breakdown(db: AsyncSession, criteria: ReportCriteria) -> dict[str, int]:
    result = await db.execute(
        criteria.apply(select(Report.status, func.count(Report.id))).group_by(Report.status)
    )
    return {status.value: count for status, count in result.all()}


async def depot_breakdown(db: AsyncSession, criteria: ReportCriteria) -> list[DepotBreakdown]:
    """Nombre et carburant par dépôt / Count and fuel per depot."""
    form_count = func.count(distinct(Report.id))
    query = criteria.apply(
        select(
            Report.depot,
            form_count,
            func.coalesce(func.sum(ReportVehicle.quantite_livree), 0),
        ).outerjoin(ReportVehicle, ReportVehicle.report_id == Report.id)
    ).group_by(Report.depot).order_by(form_count.desc(), Report.depot)

    result = await db.execute(query)
    return [
        DepotBreakdown(depot=depot, form_count=count, total_fuel=round(float(fuel or 0)))
        for depot, count, fuel in result.all()
    ]


async def count_today(db: AsyncSession, now: datetime | None = None) -> int:
    """Rapports soumis depuis minuit / Reports submitted since midnight."""
    midnight = (now or utc_now()).replace(hour=0, minute=0, second=0, microsecond=0)
    return (await db.execute(
        select(func.count(Report.id)).where(Report.submitted_at >= midnight)
    )).scalar() or 0
