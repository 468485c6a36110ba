from datetime import datetime, timedelta, timezone
from io import BytesIO

import pandas as pd
import pytest

from app.core.spreadsheet import IMPORT_HEADERS
from app.models.audit_log import AuditLog
from app.models.import_token import ImportToken
from app.models.project import Project
from app.services.importer import row_to_project, size_bounds

from helpers import xlsx_bytes

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _row(i, **overrides):
    row = {
        "project_name": f"Project {i}",
        "description": "Waterfront",
        "location": "Dubai Marina",
        "price_start": 1000000 + i,
        "payment_plan": "60/40",
        "handover_date": "2027-12-31",
        "amenities": "Pool, Gym",
        "unit_type": "1BR, 2BR",
        "size_range": "650-1800",
    }
    row.update(overrides)
    return row


def _upload(client, rows, token_id=None, filename="projects.xlsx"):
    files = {"file": (filename, xlsx_bytes(rows, columns=IMPORT_HEADERS), XLSX)}
    if token_id is None:
        return client.post("/imports/preview", files=files)
    return client.post("/imports", files=files, data={"token_id": token_id})


def _token(client, project_count, **extra):
    r = client.post("/import-tokens", json={"project_count": project_count, **extra})
    assert r.status_code == 201
    return r.json()


@pytest.fixture
def developer(auth):
    return auth.login("dev-1", "developer")


def test_import_within_capacity(client, developer, db):
    token = _token(client, 10)

    r = _upload(client, [_row(i) for i in range(8)], token["id"])

    assert r.status_code == 200
    body = r.json()
    assert (body["total"], body["successful"], body["failed"]) == (8, 8, 0)
    assert body["error_messages"] == []

    projects = db.query(Project).all()
    assert len(projects) == 8
    assert {p.entry_type for p in projects} == {"imported"}
    assert {p.status for p in projects} == {"draft"}
    assert {p.import_token_id for p in projects} == {token["id"]}

    used = db.get(ImportToken, token["id"])
    assert used.used_at is not None

    audit = db.query(AuditLog).filter(AuditLog.entity_type == "import_token", AuditLog.action == "consumed").one()
    assert audit.risk_level == "medium"


def test_import_larger_than_capacity_is_refused_before_any_insert(client, developer, db):
    token = _token(client, 5)

    r = _upload(client, [_row(i) for i in range(6)], token["id"])

    assert r.status_code == 409
    assert "capacity" in r.json()["detail"]
    assert db.query(Project).count() == 0
    assert db.get(ImportToken, token["id"]).used_at is None


def test_rows_missing_required_fields_fail_individually(client, developer, db):
    token = _token(client, 3)
    rows = [_row(1), _row(2, location=None), _row(3)]

    body = _upload(client, rows, token["id"]).json()

    assert (body["total"], body["successful"], body["failed"]) == (3, 2, 1)
    assert body["error_messages"] == ["Row 2: Missing required fields (project_name or location)"]
    assert db.query(Project).count() == 2


def test_token_can_only_be_used_once(client, developer):
    token = _token(client, 5)
    assert _upload(client, [_row(1)], token["id"]).status_code == 200

    r = _upload(client, [_row(2)], token["id"])
    assert r.status_code == 409
    assert r.json()["detail"] == "Import token has already been used"


def test_expired_token_is_refused(client, developer, db):
    expired = ImportToken(
        developer_id="dev-1",
        project_count=10,
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    )
    db.add(expired)
    db.commit()

    r = _upload(client, [_row(1)], expired.id)
    assert r.status_code == 409
    assert r.json()["detail"] == "Import token has expired"
    assert db.query(Project).count() == 0


def test_token_of_another_developer_is_not_found(client, auth, db):
    auth.login("dev-2", "developer")
    token = _token(client, 5)

    auth.login("dev-1", "developer")
    assert _upload(client, [_row(1)], token["id"]).status_code == 404
    assert _upload(client, [_row(1)], "no-such-token").status_code == 404


def test_preview_suggests_a_covering_token(client, developer):
    r = _upload(client, [_row(i) for i in range(7)])
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 7
    assert len(body["preview"]) == 5
    assert body["preview"][0]["project_name"] == "Project 0"
    assert body["suggested_token_id"] is None

    _token(client, 3)
    big = _token(client, 10)
    assert _upload(client, [_row(i) for i in range(7)]).json()["suggested_token_id"] == big["id"]


def test_empty_and_invalid_files_are_rejected(client, developer):
    token = _token(client, 5)

    empty = _upload(client, [], token["id"])
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No data found in the Excel file"

    csv = client.post(
        "/imports",
        files={"file": ("projects.csv", b"project_name,location\nA,B\n", "text/csv")},
        data={"token_id": token["id"]},
    )
    assert csv.status_code == 400

    garbage = client.post(
        "/imports",
        files={"file": ("projects.xlsx", b"not a workbook", XLSX)},
        data={"token_id": token["id"]},
    )
    assert garbage.status_code == 400
    assert garbage.json()["detail"].startswith("Failed to parse Excel file")


def test_list_tokens_newest_first(client, developer):
    first = _token(client, 1)
    second = _token(client, 2, valid_hours=48)

    tokens = client.get("/import-tokens").json()
    assert {t["id"] for t in tokens} == {first["id"], second["id"]}
    assert all(t["is_expired"] is False for t in tokens)
    assert all(t["used_at"] is None for t in tokens)


def test_template_has_the_header_contract(client, developer):
    r = client.get("/imports/template")
    assert r.status_code == 200
    assert r.headers["content-type"] == XLSX

    frame = pd.read_excel(BytesIO(r.content), engine="openpyxl")
    assert list(frame.columns) == IMPORT_HEADERS
    assert len(frame) == 1


def test_only_developers_can_import(client, auth):
    auth.login("agent-1", "agent")
    assert client.post("/import-tokens", json={"project_count": 5}).status_code == 403
    assert client.get("/imports/template").status_code == 403


def test_row_mapping():
    project = row_to_project(_row(1, size_range="900", price_start=""), 1, "dev-1", "tok-1")

    assert project.title == "Project 1"
    assert project.price == 0
    assert project.amenities == ["Pool", "Gym"]
    assert project.unit_type_names == ["1BR", "2BR"]
    assert (project.size_range_min, project.size_range_max) == (900, 900)
    assert (project.type, project.contract_type) == ("Apartment", "Sale")
    assert project.creator_type == "developer"
    assert project.import_token_id == "tok-1"


def test_size_bounds():
    assert size_bounds("650-1800") == (650, 1800)
    assert size_bounds("1,200") == (1200, 1200)
    assert size_bounds("650.5-900.75") == (650, 900)
    assert size_bounds("1,100 sqft - 1,450 sqft") == (1100, 1450)
    assert size_bounds("") == (None, None)
