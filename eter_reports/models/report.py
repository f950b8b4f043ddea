"""
Modèle Rapport journalier / Daily report model.
Un rapport = un dépôt, une date, des véhicules livrés et deux signatures.
One report = one depot, one date, delivered vehicles and two signatures.
"""

import enum
import datetime as dt

from sqlalchemy import Date, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eter_reports.database import Base, utc_now


def driver_key(name: str) -> str:
    """Clé chauffeur insensible à la casse, accents compris / Case-insensitive driver key, accents included."""
    return name.strip().casefold()


class ReportStatus(str, enum.Enum):
    """Statut du rapport / Report status."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entree: Mapped[str] = mapped_column(String(100), nullable=False)
    origine: Mapped[str] = mapped_column(String(100), nullable=False)
    depot: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    chantier: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    # Comptabilité carburant / Fuel accounting
    stock_debut: Mapped[float] = mapped_column(Float, default=0)
    stock_fin: Mapped[float] = mapped_column(Float, default=0)
    sortie_gasoil: Mapped[float] = mapped_column(Float, default=0)
    debut_index: Mapped[float] = mapped_column(Float, default=0)
    fin_index: Mapped[float] = mapped_column(Float, default=0)

    # Signatures : data-URI brut + chemin du fichier enregistré / raw data-URI + saved file path
    signature_responsable: Mapped[str] = mapped_column(Text, nullable=False)
    signature_url_responsable: Mapped[str | None] = mapped_column(String(255))
    signature_chef: Mapped[str] = mapped_column(Text, nullable=False)
    signature_url_chef: Mapped[str | None] = mapped_column(String(255))

    status: Mapped[ReportStatus] = mapped_column(
        Enum(ReportStatus, values_callable=lambda e: [m.value for m in e]),
        default=ReportStatus.SUBMITTED,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(String(500))

    # Audit
    submitted_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utc_now, index=True)
    approved_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    reviewed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    # Relations
    vehicles: Mapped[list["ReportVehicle"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportVehicle.position",
        lazy="selectin",
    )

    @property
    def total_fuel_delivered(self) -> float:
        """Total livré / Total delivered (missing quantity counts as 0)."""
        return sum((v.quantite_livree or 0) for v in self.vehicles)

    @property
    def vehicle_count(self) -> int:
        return len(self.vehicles)

    @property
    def unique_drivers_count(self) -> int:
        return len({driver_key(v.chauffeur) for v in self.vehicles if v.chauffeur})

    def __repr__(self) -> str:
        return f"<Report {self.id} - {self.depot} - {self.date}>"


class ReportVehicle(Base):
    """Ligne véhicule du rapport / Report vehicle line."""

    __tablename__ = "report_vehicles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    report_id: Mapped[str] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    matricule: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    chauffeur: Mapped[str] = mapped_column(String(100), nullable=False)
    heure_revif: Mapped[str | None] = mapped_column(String(5))  # HH:MM
    quantite_livree: Mapped[float | None] = mapped_column(Float)
    lieu_comptage: Mapped[str | None] = mapped_column(String(200))

    report: Mapped["Report"] = relationship(back_populates="vehicles")

    def __repr__(self) -> str:
        return f"<ReportVehicle {self.matricule} - {self.quantite_livree}L>"
