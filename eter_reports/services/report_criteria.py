"""
Critères de filtrage des rapports / Report filter criteria.
Un seul objet valeur partagé par la liste, les exports et les statistiques.
One value object shared by listing, exports and statistics.
"""

from dataclasses import dataclass, replace
from datetime import date, timedelta

from sqlalchemy import Select, and_, or_

from eter_reports.errors import ValidationFailed
from eter_reports.models.report import Report, ReportStatus, ReportVehicle


@dataclass(frozen=True)
class ReportCriteria:
    start_date: date | None = None
    end_date: date | None = None
    depot: str | None = None
    status: ReportStatus | None = None
    search: str | None = None
    # Dépôt : égalité exacte (exports) ou sous-chaîne (liste admin)
    # Depot: exact match (exports) or substring (admin list)
    depot_partial: bool = False

    def __post_init__(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationFailed(
                "Start date must be before end date",
                details=[{"field": "start_date", "message": "Start date must be before end date"}],
            )

    def require_range(self, max_days: int) -> "ReportCriteria":
        """Exiger une plage complète et bornée / Require a complete, bounded range."""
        if self.start_date is None or self.end_date is None:
            raise ValidationFailed(
                "Start date and end date are required",
                details=[{"field": "start_date" if self.start_date is None else "end_date",
                          "message": "Field is required"}],
            )
        if (self.end_date - self.start_date).days > max_days:
            raise ValidationFailed(
                f"Date range cannot exceed {max_days} days",
                details=[{"field": "end_date", "message": f"Date range cannot exceed {max_days} days"}],
            )
        return self

    def with_default_window(self, days: int, today: date | None = None) -> "ReportCriteria":
        """Fenêtre glissante si aucune date / Trailing window when no range is given."""
        if self.start_date or self.end_date:
            return self
        today = today or date.today()
        return replace(self, start_date=today - timedelta(days=days), end_date=today)

    def conditions(self) -> list:
        """Clauses WHERE sur Report / WHERE clauses on Report."""
        clauses = []
        if self.start_date is not None:
            clauses.append(Report.date >= self.start_date)
        if self.end_date is not None:
            clauses.append(Report.date <= self.end_date)
        if self.status is not None:
            clauses.append(Report.status == self.status)
        if self.depot:
            if self.depot_partial:
                clauses.append(Report.depot.ilike(_like_pattern(self.depot), escape="\\"))
            else:
                clauses.append(Report.depot == self.depot)
        if self.search:
            pattern = _like_pattern(self.search)
            clauses.append(or_(
                Report.entree.ilike(pattern, escape="\\"),
                Report.origine.ilike(pattern, escape="\\"),
                Report.depot.ilike(pattern, escape="\\"),
                Report.chantier.ilike(pattern, escape="\\"),
                Report.vehicles.any(or_(
                    ReportVehicle.matricule.ilike(pattern, escape="\\"),
                    ReportVehicle.chauffeur.ilike(pattern, escape="\\"),
                )),
            ))
        return clauses

    def apply(self, query: Select) -> Select:
        clauses = self.conditions()
        return query.where(and_(*clauses)) if clauses else query

    def as_dict(self) -> dict:
        return {
            "status": self.status.value if self.status else None,
            "depot": self.depot,
            "date_range": (
                {"start": self.start_date.isoformat(), "end": self.end_date.isoformat()}
                if self.start_date and self.end_date else None
            ),
            "search": self.search,
        }


def _like_pattern(term: str) -> str:
    """Motif LIKE échappé / Escaped LIKE pattern."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
