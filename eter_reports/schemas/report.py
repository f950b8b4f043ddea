"""
Schémas Rapport / Report schemas.
Soumission publique (avec normalisation), lecture, statut et statistiques.
Public submission (with normalization), read, status and statistics.
"""

from datetime import date, datetime
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, field_validator

from eter_reports.models.report import ReportStatus
from eter_reports.utils.images import decode_data_uri

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
REPORT_ID_PATTERN = r"^[A-Za-z0-9_.\-]{1,64}$"


def clean_text(value):
    """Trim + suppression de < et > / Trim and strip angle brackets."""
    if isinstance(value, str):
        return value.replace("<", "").replace(">", "").strip()
    return value


def _clean_optional(value):
    value = clean_text(value)
    return value or None


def _zero_if_missing(value):
    return 0 if value is None or value == "" else value


def _none_if_blank(value):
    return None if value == "" else value


CleanText = Annotated[str, BeforeValidator(clean_text)]
Amount = Annotated[float, BeforeValidator(_zero_if_missing)]


# Contraintes sur le type interne : None les contourne / Constraints on the inner type, None skips them
def optional_text(max_length: int, pattern: str | None = None):
    return Annotated[
        Annotated[str, StringConstraints(max_length=max_length, pattern=pattern)] | None,
        BeforeValidator(_clean_optional),
    ]


Quantity = Annotated[Annotated[float, Field(ge=0, le=10000)] | None, BeforeValidator(_none_if_blank)]
OptionalTime = optional_text(5, TIME_PATTERN)
OptionalReportId = optional_text(64, REPORT_ID_PATTERN)
Place = optional_text(200)
Notes = optional_text(500)


# --- Soumission / Submission ---
class VehicleInput(BaseModel):
    matricule: Annotated[CleanText, StringConstraints(min_length=1, max_length=20, to_upper=True)]
    chauffeur: Annotated[CleanText, StringConstraints(min_length=1, max_length=100)]
    heure_revif: OptionalTime = None
    quantite_livree: Quantity = None
    lieu_comptage: Place = None


class ReportSubmit(BaseModel):
    """Soumission d'un rapport journalier / Daily report submission."""
    id: OptionalReportId = None
    entree: Annotated[CleanText, StringConstraints(min_length=1, max_length=100)]
    origine: Annotated[CleanText, StringConstraints(min_length=1, max_length=100)]
    depot: Annotated[CleanText, StringConstraints(min_length=1, max_length=100)]
    chantier: Annotated[CleanText, StringConstraints(min_length=1, max_length=100)]
    date: date
    stock_debut: Annotated[Amount, Field(ge=0, le=100000)] = 0
    stock_fin: Annotated[Amount, Field(ge=0, le=100000)] = 0
    sortie_gasoil: Annotated[Amount, Field(ge=0, le=50000)] = 0
    debut_index: Annotated[Amount, Field(ge=0)] = 0
    fin_index: Annotated[Amount, Field(ge=0)] = 0
    vehicles: list[VehicleInput] = Field(min_length=1)
    signature_responsable: str
    signature_chef: str
    notes: Notes = None

    @field_validator("date")
    @classmethod
    def date_not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Report date cannot be in the future")
        return value

    @field_validator("signature_responsable", "signature_chef")
    @classmethod
    def signature_is_image(cls, value: str) -> str:
        if not value:
            raise ValueError("Signature is required")
        decode_data_uri(value)
        return value


# --- Lecture / Read ---
class VehicleRead(BaseModel):
    matricule: str
    chauffeur: str
    heure_revif: str | None = None
    quantite_livree: float | None = None
    lieu_comptage: str | None = None
    model_config = ConfigDict(from_attributes=True)


class ReportRead(BaseModel):
    """Rapport sans les signatures brutes / Report without raw signature payloads."""
    id: str
    entree: str
    origine: str
    depot: str
    chantier: str
    date: date
    stock_debut: float
    stock_fin: float
    sortie_gasoil: float
    debut_index: float
    fin_index: float
    vehicles: list[VehicleRead]
    signature_url_responsable: str | None = None
    signature_url_chef: str | None = None
    status: ReportStatus
    notes: str | None = None
    submitted_at: datetime
    approved_at: datetime | None = None
    approved_by_id: int | None = None
    reviewed_at: datetime | None = None
    reviewed_by_id: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    total_fuel_delivered: float
    vehicle_count: int
    unique_drivers_count: int
    model_config = ConfigDict(from_attributes=True)


class SubmissionData(BaseModel):
    id: str
    submitted_at: datetime
    status: ReportStatus
    total_fuel_delivered: float
    vehicle_count: int
    model_config = ConfigDict(from_attributes=True)


class Diagnostic(BaseModel):
    """Avertissement non bloquant / Non-blocking warning."""
    field: str
    message: str


class SubmissionResponse(BaseModel):
    success: bool = True
    message: str = "Form submitted successfully"
    form_id: str
    data: SubmissionData
    diagnostics: list[Diagnostic] = []


class Pagination(BaseModel):
    current: int
    total: int
    count: int
    total_records: int
    has_next: bool
    has_prev: bool


class ReportListResponse(BaseModel):
    success: bool = True
    forms: list[ReportRead]
    pagination: Pagination
    filters: dict


class DateRangeResponse(BaseModel):
    success: bool = True
    forms: list[ReportRead]
    count: int
    date_range: dict


# --- Statut / Status ---
class StatusUpdate(BaseModel):
    status: ReportStatus
    notes: Notes = None


class BulkStatusUpdate(BaseModel):
    form_ids: list[Annotated[CleanText, StringConstraints(min_length=1, max_length=64)]] = Field(
        min_length=1, max_length=500
    )
    status: ReportStatus
    notes: Notes = None


class StatusUpdateResponse(BaseModel):
    success: bool = True
    message: str = "Form status updated successfully"
    form: ReportRead


class BulkUpdateResponse(BaseModel):
    success: bool = True
    message: str
    matched: int
    updated: int


# --- Statistiques / Statistics ---
class ReportStatistics(BaseModel):
    total_reports: int = 0
    total_fuel_delivered: float = 0
    total_vehicles: int = 0
    unique_drivers_count: int = 0
    avg_vehicles_per_report: float = 0


class DepotBreakdown(BaseModel):
    depot: str
    form_count: int
    total_fuel: int


class RecentReport(BaseModel):
    id: str
    depot: str
    date: date
    status: ReportStatus
    vehicle_count: int
    total_fuel: float
    submitted_at: datetime


class StatisticsResponse(BaseModel):
    success: bool = True
    statistics: dict
    breakdowns: dict
    recent_forms: list[RecentReport]
