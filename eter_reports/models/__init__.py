"""
Modèles SQLAlchemy / SQLAlchemy models.
Importer tous les modèles ici pour que create_all les détecte.
Import all models here so create_all can detect them.
"""

from eter_reports.models.audit import AuditLog
from eter_reports.models.report import Report, ReportStatus, ReportVehicle
from eter_reports.models.user import User, UserRole

__all__ = [
    "AuditLog",
    "Report",
    "ReportStatus",
    "ReportVehicle",
    "User",
    "UserRole",
]
