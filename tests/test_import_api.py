import base64

import pytest

from bank_import.models import Transaction

from conftest import ACCOUNT_ID, OTHER_ACCOUNT_ID, OTHER_TOKEN, TOKEN
from helpers import SAMPLE_MOVEMENTS, build_xlsx

URL = "/api/import/bank-statement"
ZERO_COUNTS = {
    "total_rows": 0, "parsed_rows": 0, "inserted": 0,
    "skipped_duplicate": 0, "categorized": 0, "uncategorized": 0,
}


def _auth(token=TOKEN):
    return {"Authorization": f"Bearer {token}"}


def _body(**overrides):
    body = {
        "bank_account_id": ACCOUNT_ID,
        "file_base64": base64.b64encode(build_xlsx(SAMPLE_MOVEMENTS)).decode("ascii"),
    }
    body.update(overrides)
    return body


def _assert_failure(response, message):
    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == message
    assert payload["sample"] == []
    assert {k: payload["summary"][k] for k in ZERO_COUNTS} == ZERO_COUNTS
    assert payload["summary"]["errors"] == [{"row": 0, "message": message}]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_dry_run_preview(client, db):
    response = client.post(URL, json=_body(dry_run=True), headers=_auth())

    assert response.status_code == 200
    payload = response.json()
    assert payload["summary"]["parsed_rows"] == 5
    assert payload["summary"]["inserted"] == 0
    assert len(payload["sample"]) == 3
    assert payload["sample"][0]["raw"]["reference_id"] == "100001"
    assert payload["sample"][0]["posted_at"] == "2025-01-12"
    assert db.query(Transaction).count() == 0


def test_import_then_reimport(client, db):
    first = client.post(URL, json=_body(), headers=_auth())
    assert first.status_code == 200
    summary = first.json()["summary"]
    assert (summary["inserted"], summary["categorized"], summary["uncategorized"]) == (5, 2, 2)
    assert first.json()["sample"][0]["raw"] is None

    second = client.post(URL, json=_body(), headers=_auth())
    assert second.status_code == 200
    assert second.json()["summary"]["inserted"] == 0
    assert second.json()["summary"]["skipped_duplicate"] == 5
    assert db.query(Transaction).count() == 5


@pytest.mark.parametrize(
    "headers, message",
    [
        ({}, "Authorization header is required"),
        ({"Authorization": "Basic dXNlcjpwdw=="}, "Authorization header must be 'Bearer <token>'"),
        ({"Authorization": "Bearer nope"}, "Invalid user"),
        ({"Authorization": "Bearer token-revoked"}, "Invalid user"),
    ],
)
def test_unauthenticated(client, headers, message):
    _assert_failure(client.post(URL, json=_body(), headers=headers), message)


def test_account_of_another_owner(client, db):
    response = client.post(URL, json=_body(bank_account_id=OTHER_ACCOUNT_ID), headers=_auth())
    _assert_failure(response, "Bank account not found or access denied")

    other = client.post(URL, json=_body(), headers=_auth(OTHER_TOKEN))
    _assert_failure(other, "Bank account not found or access denied")
    assert db.query(Transaction).count() == 0


def test_missing_parameters(client):
    _assert_failure(
        client.post(URL, json={"file_base64": "eA=="}, headers=_auth()),
        "bank_account_id is required",
    )
    _assert_failure(
        client.post(URL, json={"bank_account_id": ACCOUNT_ID}, headers=_auth()),
        "Either file_url or file_base64 is required",
    )


def test_unsupported_file(client):
    body = _body(file_base64=base64.b64encode(b"hello").decode("ascii"))
    response = client.post(URL, json=body, headers=_auth())
    assert response.status_code == 400
    assert response.json()["error"].startswith("Unsupported file format")


def test_header_not_found(client):
    content = build_xlsx(SAMPLE_MOVEMENTS, sheet_title="BGRExcelContReport", header=False)
    body = _body(file_base64=base64.b64encode(content).decode("ascii"))
    response = client.post(URL, json=body, headers=_auth())
    assert response.status_code == 400
    assert response.json()["error"].startswith("No header row found")


def test_wrongly_typed_body_gets_failure_shape(client):
    response = client.post(URL, json=_body(dry_run="maybe"), headers=_auth())

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"].startswith("Invalid request: dry_run:")
    assert payload["sample"] == []
    assert {k: payload["summary"][k] for k in ZERO_COUNTS} == ZERO_COUNTS
    assert payload["summary"]["errors"] == [{"row": 0, "message": payload["error"]}]


def test_malformed_json_gets_failure_shape(client):
    response = client.post(
        URL, content=b"{not json", headers={**_auth(), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")
    assert response.json()["sample"] == []
