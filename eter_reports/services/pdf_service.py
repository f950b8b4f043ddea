"""
Service PDF / PDF report service.
Mise en page ReportLab (canvas bas niveau, coordonnées absolues A4)
et chargement des rapports à exporter.
ReportLab layout (low-level canvas, absolute A4 coordinates)
and loading of the reports to export.

Les positions sont exprimées depuis le haut de la page puis converties.
Positions are measured from the top of the page, then converted.
"""

import io
import logging
from dataclasses import dataclass
from datetime import date

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen.canvas import Canvas
from sqlalchemy.ext.asyncio import AsyncSession

from eter_reports.config import settings
from eter_reports.errors import NotFoundError
from eter_reports.models.report import Report, ReportVehicle
from eter_reports.schemas.report import ReportStatistics
from eter_reports.services import report_service
from eter_reports.services.report_criteria import ReportCriteria
from eter_reports.services.signature_storage import SignatureStorage
from eter_reports.services.statistics_service import compute_statistics

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = A4
MARGIN = 20
CONTENT_W = 555
CONTENT_H = 750

FONT = "Helvetica"
FONT_B = "Helvetica-Bold"
FONT_I = "Helvetica-Oblique"

INFO_ROW_H = 25
VEHICLE_HEADER_H = 25
VEHICLE_ROW_H = 20
VEHICLE_ROWS = 15
VEHICLE_COLUMNS = [
    ("Matricule", 70),
    ("Nom Chauffeur", 90),
    ("Signature", 60),
    ("Heure Revif", 70),
    ("Qté Livrée", 70),
    ("Lieu de Comptage", 80),
    ("Compteur", 75),
]
SIGNATURE_W = 120
SIGNATURE_H = 60

COVER_LIST_LIMIT = 10

SUMMARY_LEFT = 50
SUMMARY_TOP = 50
SUMMARY_PAGE_LIMIT = 750
SUMMARY_HEADER_H = 20
SUMMARY_ROW_H = 15
SUMMARY_COLUMNS = [
    ("Date", 80),
    ("Dépôt", 150),
    ("Véhicules", 80),
    ("Carburant (L)", 100),
    ("Statut", 80),
]


# --- Formatage / Formatting ---
def format_date(value: date | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def format_number(value: float | None) -> str:
    """1500.0 -> "1500", 12.5 -> "12.5", None -> ""."""
    if value is None:
        return ""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def fit_text(text: str, width: float, font: str = FONT, size: float = 8) -> str:
    """Tronquer pour tenir dans la largeur / Truncate to fit the width."""
    if stringWidth(text, font, size) <= width:
        return text
    while text and stringWidth(text + "…", font, size) > width:
        text = text[:-1]
    return text + "…" if text else ""


@dataclass
class VehicleTable:
    """Lignes du tableau véhicules / Vehicle table rows.

    `rows` a toujours VEHICLE_ROWS entrées ; `hidden` > 0 signifie que la
    dernière ligne porte le marqueur de dépassement.
    `rows` always has VEHICLE_ROWS entries; `hidden` > 0 means the last
    row carries the overflow marker.
    """
    rows: list[list[str]]
    hidden: int = 0

    @property
    def overflow_label(self) -> str:
        return f"+ {self.hidden} véhicule(s) supplémentaire(s)" if self.hidden else ""


def vehicle_table(vehicles: list[ReportVehicle]) -> VehicleTable:
    """Répartir les véhicules sur 15 lignes fixes / Lay vehicles out on 15 fixed rows."""
    hidden = 0
    shown = list(vehicles)
    if len(shown) > VEHICLE_ROWS:
        hidden = len(shown) - (VEHICLE_ROWS - 1)
        shown = shown[:VEHICLE_ROWS - 1]

    rows = [
        [
            v.matricule or "",
            v.chauffeur or "",
            "",
            v.heure_revif or "",
            format_number(v.quantite_livree),
            v.lieu_comptage or "",
            "",
        ]
        for v in shown
    ]
    rows.extend([[""] * len(VEHICLE_COLUMNS) for _ in range(VEHICLE_ROWS - len(rows))])
    return VehicleTable(rows=rows, hidden=hidden)


class ReportPdfRenderer:
    """Rendu PDF des rapports / Report PDF rendering.

    Une instance par document / One instance per document.
    """

    def __init__(self, storage: SignatureStorage | None = None, title: str = "Rapport ETER"):
        self.storage = storage
        self.buffer = io.BytesIO()
        self.canvas = Canvas(self.buffer, pagesize=A4, invariant=1)
        self.canvas.setTitle(title)
        self.canvas.setAuthor(settings.PDF_ORGANISATION)

    # --- Primitives (coordonnées depuis le haut / top-down coordinates) ---
    def _rect(self, x: float, y: float, w: float, h: float) -> None:
        self.canvas.rect(x, PAGE_H - y - h, w, h, stroke=1, fill=0)

    def _text(self, x: float, y: float, text: str, font: str = FONT, size: float = 8) -> None:
        self.canvas.setFont(font, size)
        self.canvas.drawString(x, PAGE_H - y - size * 0.8, text)

    def _centered(self, x: float, y: float, width: float, text: str, font: str = FONT, size: float = 8) -> None:
        self.canvas.setFont(font, size)
        self.canvas.drawCentredString(x + width / 2, PAGE_H - y - size * 0.8, fit_text(text, width, font, size))

    def _line(self, x1: float, y: float, x2: float) -> None:
        self.canvas.line(x1, PAGE_H - y, x2, PAGE_H - y)

    def new_page(self) -> None:
        self.canvas.showPage()

    def finish(self) -> bytes:
        self.canvas.save()
        return self.buffer.getvalue()

    # --- Page rapport / Report page ---
    def draw_report(self, report: Report) -> None:
        """Dessiner une page rapport complète / Draw one full report page."""
        y = MARGIN
        self._rect(MARGIN, MARGIN, CONTENT_W, CONTENT_H)

        # En-tête / Header
        self._rect(MARGIN, y, CONTENT_W, 60)
        self._centered(MARGIN + 10, y + 15, CONTENT_W - 20, settings.PDF_ORGANISATION, FONT_B, 12)
        self._centered(MARGIN + 10, y + 35, CONTENT_W - 20, settings.PDF_DEPARTMENT, FONT_I, 10)
        y += 70

        # Titre / Title
        self._rect(MARGIN, y, CONTENT_W, 30)
        self._text(MARGIN + 10, y + 8, "Rapport Journalier", FONT_B, 14)
        self._text(MARGIN + 420, y + 12, fit_text(f"N° {report.id}", CONTENT_W - 410, FONT_B, 10), FONT_B, 10)
        y += 40

        self._draw_info_grid(report, y)
        y += 110

        self._draw_vehicle_table(report, y)
        self._draw_signatures(report, y + 340)

    def _draw_info_grid(self, report: Report, y: float) -> None:
        first_plate = report.vehicles[0].matricule if report.vehicles else ""
        rows = [
            [
                ("Entrée", report.entree, 170),
                ("Origine", report.origine, 170),
                ("Matricule CCG", first_plate, 95),
                ("Date", format_date(report.date), 120),
            ],
            [
                ("Dépôt", report.depot, 170),
                ("Chantier", report.chantier, 170),
                ("Stock Début", format_number(report.stock_debut or 0), 95),
                ("Stock Fin", format_number(report.stock_fin or 0), 60),
                ("Sortie Gasoil", format_number(report.sortie_gasoil or 0), 60),
            ],
            [
                ("", "", 340),
                ("Début Index", format_number(report.debut_index), 95),
                ("Fin Index", format_number(report.fin_index), 120),
            ],
        ]
        for row in rows:
            x = MARGIN
            for label, value, width in row:
                self._rect(x, y, width, INFO_ROW_H)
                if label:
                    self._text(x + 5, y + 3, fit_text(label, width - 10, FONT_B), FONT_B, 8)
                    self._text(x + 5, y + 12, fit_text(value or "", width - 10), FONT, 8)
                x += width
            y += INFO_ROW_H

    def _draw_vehicle_table(self, report: Report, y: float) -> None:
        x = MARGIN
        for header, width in VEHICLE_COLUMNS:
            self._rect(x, y, width, VEHICLE_HEADER_H)
            self._centered(x + 2, y + 8, width - 4, header, FONT_B, 8)
            x += width
        y += VEHICLE_HEADER_H

        table = vehicle_table(report.vehicles)
        table_w = sum(width for _, width in VEHICLE_COLUMNS)
        for index, row in enumerate(table.rows):
            if table.hidden and index == VEHICLE_ROWS - 1:
                self._rect(MARGIN, y, table_w, VEHICLE_ROW_H)
                self._centered(MARGIN + 2, y + 6, table_w - 4, table.overflow_label, FONT_I, 8)
            else:
                x = MARGIN
                for cell, (_, width) in zip(row, VEHICLE_COLUMNS):
                    self._rect(x, y, width, VEHICLE_ROW_H)
                    if cell:
                        self._centered(x + 2, y + 6, width - 4, cell, FONT, 8)
                    x += width
            y += VEHICLE_ROW_H

    def _draw_signatures(self, report: Report, y: float) -> None:
        self._line(MARGIN, y, MARGIN + CONTENT_W)
        self._text(MARGIN + 30, y + 15, "Signature Responsable", FONT, 9)
        self._text(MARGIN + 250, y + 15, f"Total: {format_number(report.total_fuel_delivered)}L", FONT, 9)
        self._text(MARGIN + 450, y + 15, "Signature Chef", FONT, 9)

        self._draw_signature(report, report.signature_url_responsable, MARGIN + 30, y + 30, "responsable")
        self._draw_signature(report, report.signature_url_chef, MARGIN + 420, y + 30, "chef")

    def _draw_signature(self, report: Report, url: str | None, x: float, y: float, role: str) -> None:
        if not url or self.storage is None:
            return
        try:
            # Lecture complète : aucun fichier ne reste ouvert / Full read, no file left open
            image = ImageReader(io.BytesIO(self.storage.read_bytes(url)))
            self.canvas.drawImage(
                image, x, PAGE_H - y - SIGNATURE_H, width=SIGNATURE_W, height=SIGNATURE_H,
                mask="auto", preserveAspectRatio=True,
            )
        except (OSError, ValueError) as exc:
            logger.warning("Could not load %s signature image for form %s: %s", role, report.id, exc)

    # --- Pages de garde / Cover pages ---
    def draw_cover(self, reports: list[Report], exported_on: date) -> None:
        y = 40
        self._centered(MARGIN, y, CONTENT_W, "ETER - Rapports Journaliers", FONT_B, 24)
        y += 34
        self._centered(MARGIN, y, CONTENT_W, "Compilation des Rapports", FONT, 18)
        y += 60
        self._centered(MARGIN, y, CONTENT_W, f"Date d'export: {format_date(exported_on)}", FONT, 14)
        y += 20
        self._centered(MARGIN, y, CONTENT_W, f"Nombre de rapports: {len(reports)}", FONT, 14)
        y += 50

        self._text(MARGIN + 10, y, "Résumé:", FONT_B, 12)
        y += 20
        for index, report in enumerate(reports[:COVER_LIST_LIMIT], start=1):
            line = f"{index}. {report.id} - {report.depot} - {format_date(report.date)}"
            self._text(MARGIN + 10, y, fit_text(line, CONTENT_W - 20, FONT, 10), FONT, 10)
            y += 14
        if len(reports) > COVER_LIST_LIMIT:
            self._text(MARGIN + 10, y, f"... et {len(reports) - COVER_LIST_LIMIT} autres rapports", FONT_I, 10)

    def draw_date_range_cover(
        self, reports: list[Report], start: date, end: date, depot: str | None = None
    ) -> None:
        total_fuel = sum(r.total_fuel_delivered for r in reports)
        total_vehicles = sum(r.vehicle_count for r in reports)
        mean_fuel = round(total_fuel / len(reports)) if reports else 0

        y = 40
        self._centered(MARGIN, y, CONTENT_W, "ETER - Rapports par Période", FONT_B, 24)
        y += 44
        self._centered(MARGIN, y, CONTENT_W, f"Du {format_date(start)} au {format_date(end)}", FONT, 16)
        y += 60
        if depot:
            self._centered(MARGIN, y, CONTENT_W, f"Dépôt: {depot}", FONT, 14)
            y += 20
        self._centered(MARGIN, y, CONTENT_W, f"Nombre de rapports: {len(reports)}", FONT, 14)
        y += 50

        self._text(MARGIN + 10, y, "Statistiques de la période:", FONT_B, 12)
        y += 20
        for line in (
            f"• Total carburant distribué: {round(total_fuel)} L",
            f"• Total véhicules: {total_vehicles}",
            f"• Moyenne par rapport: {mean_fuel} L",
        ):
            self._text(MARGIN + 10, y, line, FONT, 11)
            y += 16

    # --- Synthèse / Summary ---
    def draw_summary(
        self, reports: list[Report], statistics: ReportStatistics, start: date, end: date
    ) -> None:
        y = 30
        self._centered(MARGIN, y, CONTENT_W, "ETER - Rapport de Synthèse", FONT_B, 20)
        y += 28
        self._centered(MARGIN, y, CONTENT_W, f"Période: {format_date(start)} - {format_date(end)}", FONT, 12)
        y += 40

        self._text(SUMMARY_LEFT, y, "Statistiques Générales", FONT_B, 16)
        y += 28
        for label, value in (
            ("Nombre total de rapports", str(statistics.total_reports)),
            ("Carburant total distribué", f"{format_number(statistics.total_fuel_delivered)} L"),
            ("Nombre de véhicules", str(statistics.total_vehicles)),
            ("Conducteurs uniques", str(statistics.unique_drivers_count)),
            ("Moyenne véhicules/rapport", format_number(statistics.avg_vehicles_per_report)),
        ):
            prefix = f"{label}: "
            self._text(SUMMARY_LEFT, y, prefix, FONT, 12)
            self._text(SUMMARY_LEFT + stringWidth(prefix, FONT, 12), y, value, FONT_B, 12)
            y += 16
        y += 24

        self._text(SUMMARY_LEFT, y, "Détail des Rapports", FONT_B, 16)
        y += 28
        y = self._summary_header(y)

        for report in reports:
            if y + SUMMARY_ROW_H > SUMMARY_PAGE_LIMIT:
                self.new_page()
                y = self._summary_header(SUMMARY_TOP)
            cells = [
                format_date(report.date),
                report.depot,
                str(report.vehicle_count),
                str(round(report.total_fuel_delivered)),
                report.status.value,
            ]
            x = SUMMARY_LEFT
            for cell, (_, width) in zip(cells, SUMMARY_COLUMNS):
                self._rect(x, y, width, SUMMARY_ROW_H)
                self._text(x + 2, y + 3, fit_text(cell, width - 4, FONT, 9), FONT, 9)
                x += width
            y += SUMMARY_ROW_H

    def _summary_header(self, y: float) -> float:
        x = SUMMARY_LEFT
        for header, width in SUMMARY_COLUMNS:
            self._rect(x, y, width, SUMMARY_HEADER_H)
            self._text(x + 5, y + 5, header, FONT_B, 10)
            x += width
        return y + SUMMARY_HEADER_H


# --- Documents ---
def render_report(report: Report, storage: SignatureStorage | None = None) -> bytes:
    renderer = ReportPdfRenderer(storage, title=f"Rapport {report.id}")
    renderer.draw_report(report)
    renderer.new_page()
    return renderer.finish()


def render_reports(
    reports: list[Report], storage: SignatureStorage | None = None, exported_on: date | None = None
) -> bytes:
    """Page de garde + une page par rapport / Cover page plus one page per report."""
    renderer = ReportPdfRenderer(storage, title="Rapports Journaliers")
    renderer.draw_cover(reports, exported_on or date.today())
    for report in reports:
        renderer.new_page()
        renderer.draw_report(report)
    renderer.new_page()
    return renderer.finish()


def render_date_range(
    reports: list[Report],
    start: date,
    end: date,
    storage: SignatureStorage | None = None,
    depot: str | None = None,
) -> bytes:
    renderer = ReportPdfRenderer(storage, title="Rapports par Période")
    renderer.draw_date_range_cover(reports, start, end, depot)
    for report in reports:
        renderer.new_page()
        renderer.draw_report(report)
    renderer.new_page()
    return renderer.finish()


def render_summary(
    reports: list[Report], statistics: ReportStatistics, start: date, end: date
) -> bytes:
    renderer = ReportPdfRenderer(title="Rapport de Synthèse")
    renderer.draw_summary(reports, statistics, start, end)
    renderer.new_page()
    return renderer.finish()


# --- Chargement + rendu / Load and render ---
async def generate_single_report_pdf(
    db: AsyncSession, report_id: str, storage: SignatureStorage
) -> tuple[bytes, Report]:
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found", code="REPORT_NOT_FOUND")
    pdf = render_report(report, storage)
    logger.info("PDF generated for form %s (%d bytes)", report.id, len(pdf))
    return pdf, report


async def generate_multiple_reports_pdf(
    db: AsyncSession, report_ids: list[str], storage: SignatureStorage
) -> tuple[bytes, list[Report]]:
    reports = await report_service.find_by_ids(db, report_ids)
    if not reports:
        raise NotFoundError("No reports found", code="REPORTS_NOT_FOUND")
    pdf = render_reports(reports, storage)
    logger.info("Multi-report PDF generated: %d of %d requested", len(reports), len(report_ids))
    return pdf, reports


async def generate_date_range_pdf(
    db: AsyncSession, criteria: ReportCriteria, storage: SignatureStorage
) -> tuple[bytes, list[Report]]:
    reports = await report_service.find_by_criteria(db, criteria)
    if not reports:
        raise NotFoundError("No reports found for the specified date range", code="NO_REPORTS_IN_RANGE")
    pdf = render_date_range(reports, criteria.start_date, criteria.end_date, storage, criteria.depot)
    logger.info(
        "Date range PDF generated: %s to %s, %d reports",
        criteria.start_date, criteria.end_date, len(reports),
    )
    return pdf, reports


async def generate_summary_pdf(
    db: AsyncSession, criteria: ReportCriteria
) -> tuple[bytes, ReportStatistics]:
    reports = await report_service.find_by_criteria(db, criteria)
    statistics = await compute_statistics(db, criteria)
    pdf = render_summary(reports, statistics, criteria.start_date, criteria.end_date)
    logger.info(
        "Summary PDF generated: %s to %s, %d reports",
        criteria.start_date, criteria.end_date, len(reports),
    )
    return pdf, statistics
