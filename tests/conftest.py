"""Fixtures de test / Test fixtures.

Base SQLite en mémoire partagée par connexion unique, uploads dans tmp_path.
In-memory SQLite shared through a single connection, uploads under tmp_path.
"""

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import eter_reports.models  # noqa: F401
from eter_reports.database import Base, configure_sqlite, get_db, utc_now
from eter_reports.main import app
from eter_reports.models.report import Report, ReportStatus, ReportVehicle
from eter_reports.models.user import User, UserRole
from eter_reports.rate_limit import limiter
from eter_reports.services.signature_storage import SignatureStorage, get_storage
from eter_reports.utils.auth import create_access_token, hash_password

# PNG 1x1 transparent
PNG_DATA_URI = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
ADMIN_PASSWORD = "Admin123"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_sqlite(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return SignatureStorage(tmp_path / "uploads")


@pytest.fixture
async def client(session_factory, storage):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    limiter.enabled = True


async def _create_user(db, username: str, role: UserRole, password: str = ADMIN_PASSWORD) -> User:
    user = User(
        username=username,
        name=username.title(),
        hashed_password=hash_password(password),
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


def _bearer(user: User) -> dict:
    token = create_access_token(user.id, user.username, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_user(db):
    return await _create_user(db, "admin", UserRole.ADMIN)


@pytest.fixture
async def plain_user(db):
    return await _create_user(db, "agent", UserRole.USER)


@pytest.fixture
def admin_headers(admin_user):
    return _bearer(admin_user)


@pytest.fixture
def user_headers(plain_user):
    return _bearer(plain_user)


@pytest.fixture
def make_payload():
    """Corps de soumission valide / Valid submission body."""

    def _make(**overrides) -> dict:
        payload = {
            "entree": "Entrée Nord",
            "origine": "Raffinerie",
            "depot": "Dépôt Central",
            "chantier": "RN5 lot 2",
            "date": date.today().isoformat(),
            "stock_debut": 1000,
            "stock_fin": 700,
            "sortie_gasoil": 300,
            "debut_index": 1200,
            "fin_index": 1500,
            "vehicles": [
                {"matricule": "ab-123", "chauffeur": "Karim", "heure_revif": "07:30",
                 "quantite_livree": 100, "lieu_comptage": "Pompe 1"},
                {"matricule": "cd-456", "chauffeur": "Samir", "heure_revif": "9:15",
                 "quantite_livree": 200},
            ],
            "signature_responsable": PNG_DATA_URI,
            "signature_chef": PNG_DATA_URI,
        }
        payload.update(overrides)
        return payload

    return _make


def build_report(
    report_id: str,
    depot: str = "Dépôt Central",
    report_date: date | None = None,
    vehicles: list[tuple[str, str, float | None]] | None = None,
    status: ReportStatus = ReportStatus.SUBMITTED,
) -> Report:
    """Rapport en mémoire (non persisté) / In-memory report (not persisted)."""
    if vehicles is None:
        vehicles = [("AB-123", "Karim", 100.0)]
    return Report(
        id=report_id,
        entree="Entrée Nord",
        origine="Raffinerie",
        depot=depot,
        chantier="RN5",
        date=report_date or date.today(),
        stock_debut=1000,
        stock_fin=900,
        sortie_gasoil=100,
        debut_index=0,
        fin_index=0,
        signature_responsable=PNG_DATA_URI,
        signature_chef=PNG_DATA_URI,
        status=status,
        submitted_at=utc_now(),
        vehicles=[
            ReportVehicle(position=i, matricule=m, chauffeur=c, quantite_livree=q)
            for i, (m, c, q) in enumerate(vehicles)
        ],
    )


@pytest.fixture
def add_report(db):
    """Persister un rapport de test / Persist a test report."""

    async def _add(report_id: str, days_ago: int = 0, **kwargs) -> Report:
        report = build_report(report_id, report_date=date.today() - timedelta(days=days_ago), **kwargs)
        db.add(report)
        await db.commit()
        return report

    return _add


@pytest.fixture
def new_report():
    return build_report
