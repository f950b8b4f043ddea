"""Tests de validation des soumissions / Submission validation tests."""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from eter_reports.schemas.report import ReportSubmit
from eter_reports.schemas.user import ChangePasswordRequest, UserCreate
from eter_reports.services.report_service import collect_diagnostics, generate_report_id
from eter_reports.utils.images import decode_data_uri


def _error_fields(exc: ValidationError) -> set[str]:
    return {str(err["loc"][0]) for err in exc.errors()}


def test_valid_submission_is_normalized(make_payload):
    data = ReportSubmit(**make_payload(depot="  <b>Dépôt</b> Sud  "))
    assert data.depot == "bDépôt/b Sud"
    assert data.vehicles[0].matricule == "AB-123"
    assert data.vehicles[1].lieu_comptage is None
    assert data.id is None


def test_today_is_accepted_and_future_rejected(make_payload):
    ReportSubmit(**make_payload(date=date.today().isoformat()))
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    with pytest.raises(ValidationError) as exc:
        ReportSubmit(**make_payload(date=tomorrow))
    assert "date" in _error_fields(exc.value)


def test_missing_numbers_default_to_zero(make_payload):
    data = ReportSubmit(**make_payload(stock_debut="", stock_fin=None, sortie_gasoil=""))
    assert data.stock_debut == 0
    assert data.stock_fin == 0
    assert data.sortie_gasoil == 0


@pytest.mark.parametrize("field,value", [
    ("stock_debut", 100001),
    ("sortie_gasoil", 50001),
    ("fin_index", -1),
])
def test_numeric_bounds(make_payload, field, value):
    with pytest.raises(ValidationError) as exc:
        ReportSubmit(**make_payload(**{field: value}))
    assert field in _error_fields(exc.value)


def test_vehicle_rules(make_payload):
    with pytest.raises(ValidationError):
        ReportSubmit(**make_payload(vehicles=[]))

    bad_time = [{"matricule": "X1", "chauffeur": "Ali", "heure_revif": "24:00"}]
    with pytest.raises(ValidationError):
        ReportSubmit(**make_payload(vehicles=bad_time))

    too_much = [{"matricule": "X1", "chauffeur": "Ali", "quantite_livree": 10001}]
    with pytest.raises(ValidationError):
        ReportSubmit(**make_payload(vehicles=too_much))

    no_quantity = [{"matricule": "x1", "chauffeur": "Ali", "quantite_livree": ""}]
    data = ReportSubmit(**make_payload(vehicles=no_quantity))
    assert data.vehicles[0].quantite_livree is None


@pytest.mark.parametrize("signature", [
    "",
    "data:image/gif;base64,R0lGODlhAQABAAAAACw=",
    "data:image/png;base64,!!!not-base64!!!",
    "iVBORw0KGgoAAAANSUhEUg",
])
def test_signature_must_be_image_data_uri(make_payload, signature):
    with pytest.raises(ValidationError) as exc:
        ReportSubmit(**make_payload(signature_chef=signature))
    assert "signature_chef" in _error_fields(exc.value)


def test_signature_is_not_stripped(make_payload):
    payload = make_payload()
    data = ReportSubmit(**payload)
    assert data.signature_responsable == payload["signature_responsable"]


def test_report_id_charset(make_payload):
    assert ReportSubmit(**make_payload(id=" rep-2024.01_a ")).id == "rep-2024.01_a"
    with pytest.raises(ValidationError):
        ReportSubmit(**make_payload(id="../etc/passwd"))


def test_decode_data_uri_extension():
    ext, raw = decode_data_uri("data:image/jpeg;base64,/9j/4AAQ")
    assert ext == "jpg"
    assert raw.startswith(b"\xff\xd8")


def test_stock_imbalance_diagnostic(make_payload):
    balanced = ReportSubmit(**make_payload(stock_debut=1000, sortie_gasoil=300, stock_fin=700.05))
    assert collect_diagnostics(balanced) == []

    off = ReportSubmit(**make_payload(stock_debut=1000, sortie_gasoil=300, stock_fin=650))
    diagnostics = collect_diagnostics(off)
    assert [d.field for d in diagnostics] == ["stock_fin"]


def test_old_report_diagnostic(make_payload):
    today = date.today()
    old = ReportSubmit(**make_payload(date=(today - timedelta(days=400)).isoformat()))
    fields = [d.field for d in collect_diagnostics(old, today=today)]
    assert "date" in fields


def test_generated_report_id_format():
    report_id = generate_report_id(now_ms=36 ** 3)
    base, suffix = report_id.split("-")
    assert base == "1000"
    assert len(suffix) == 8
    assert generate_report_id() != generate_report_id()


def test_user_password_rules():
    UserCreate(username="  Chef.Depot ", password="Secret1", name="Chef")
    with pytest.raises(ValidationError):
        UserCreate(username="chef", password="secret1", name="Chef")
    with pytest.raises(ValidationError):
        UserCreate(username="ab", password="Secret1", name="Chef")
    with pytest.raises(ValidationError):
        ChangePasswordRequest(current_password="x", new_password="Ab1")


def test_username_is_lowercased():
    assert UserCreate(username="  Chef.Depot ", password="Secret1", name="Chef").username == "chef.depot"
