import uuid
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.constants import CLEAR_ALL_CACHE_CONFIRMATION
from app.crud.ai_response_cache import ai_response_cache as crud_cache
from app.services.ai_cache import ai_cache_service
from tests.helpers.asserts import api_call, assert_error

ADMIN_ONLY_ENDPOINTS = [
    ("GET", "/cache/stats", None),
    ("GET", "/cache/stats/daily", None),
    ("DELETE", "/cache/old?days=30", None),
    ("DELETE", "/cache/all", {"confirm": CLEAR_ALL_CACHE_CONFIRMATION}),
]

@pytest.mark.parametrize("method, path, payload", ADMIN_ONLY_ENDPOINTS)
def test_admin_endpoints_require_authentication(client: TestClient, method, path, payload):
    body = api_call(client, method, path, json=payload, expected_status=401)
    assert_error(body, "UNAUTHORIZED")

@pytest.mark.parametrize("role", ["teacher", "student"])
@pytest.mark.parametrize("method, path, payload", ADMIN_ONLY_ENDPOINTS)
def test_admin_endpoints_reject_other_roles(client: TestClient, auth_headers, role, method, path, payload):
    body = api_call(client, method, path, headers=auth_headers(role), json=payload, expected_status=403)
    assert_error(body, "FORBIDDEN")

def test_garbage_token_is_rejected(client: TestClient):
    headers = {"Authorization": "Bearer not-a-jwt"}
    body = api_call(client, "GET", "/cache/stats", headers=headers, expected_status=401)
    assert body["error"]["message"] == "Could not validate credentials"

def test_stats_endpoint_reports_aggregates(client: TestClient, db_session: Session, auth_headers, store_entry):
    key = store_entry([str(uuid.uuid4())], tokens_used=200, content_size=800)
    ai_cache_service.get_cached_response(db_session, key)

    body = api_call(client, "GET", "/cache/stats", headers=auth_headers("admin"))

    stats = body["data"]
    assert stats["total_entries"] == 1
    assert stats["total_hits"] == 1
    assert stats["total_misses"] == 1
    assert stats["hit_rate"] == 0.5
    assert stats["tokens_saved"] == 200
    assert stats["storage_used"] == 800

def test_daily_stats_endpoint(client: TestClient, auth_headers, store_entry):
    store_entry([str(uuid.uuid4())])

    body = api_call(client, "GET", "/cache/stats/daily?days=7", headers=auth_headers("admin"))

    assert len(body["data"]) == 1
    assert body["data"][0]["cache_misses"] == 1

@pytest.mark.parametrize("role", ["teacher", "admin"])
def test_teacher_and_admin_can_invalidate_a_lecture(client: TestClient, db_session: Session, auth_headers, store_entry, role):
    lecture, other = str(uuid.uuid4()), str(uuid.uuid4())
    store_entry([lecture])
    store_entry([lecture, other])
    store_entry([other])

    body = api_call(client, "DELETE", f"/cache/lecture/{lecture}", headers=auth_headers(role))

    assert body["data"] == {"lecture_id": lecture, "deleted_entries": 2}
    assert crud_cache.count(db_session) == 1

def test_student_cannot_invalidate_a_lecture(client: TestClient, auth_headers):
    body = api_call(client, "DELETE", f"/cache/lecture/{uuid.uuid4()}", headers=auth_headers("student"), expected_status=403)
    assert_error(body, "FORBIDDEN")

def test_malformed_lecture_id_is_a_bad_request(client: TestClient, auth_headers):
    body = api_call(client, "DELETE", "/cache/lecture/not-a-uuid", headers=auth_headers("admin"), expected_status=400)
    assert_error(body, "BAD_REQUEST")
    assert body["path"] == "/cache/lecture/not-a-uuid"

def test_clear_old_cache_defaults_to_thirty_days(client: TestClient, auth_headers, store_entry):
    store_entry([str(uuid.uuid4())])

    body = api_call(client, "DELETE", "/cache/old", headers=auth_headers("admin"))

    assert body["data"] == {"older_than_days": 30, "deleted_entries": 0}

@pytest.mark.parametrize("days", ["0", "-3", "abc"])
def test_clear_old_cache_validates_days(client: TestClient, auth_headers, days):
    body = api_call(client, "DELETE", f"/cache/old?days={days}", headers=auth_headers("admin"), expected_status=422)
    assert_error(body, "VALIDATION_ERROR")

@pytest.mark.parametrize("payload", [None, {}, {"confirm": "yes"}, {"confirm": "delete_all_cache"}])
def test_clear_all_requires_confirmation(client: TestClient, db_session: Session, auth_headers, store_entry, payload):
    store_entry([str(uuid.uuid4())])

    body = api_call(client, "DELETE", "/cache/all", headers=auth_headers("admin"), json=payload, expected_status=400)

    assert_error(body, "BAD_REQUEST")
    assert crud_cache.count(db_session) == 1

def test_clear_all_with_confirmation(client: TestClient, db_session: Session, auth_headers, store_entry):
    for _ in range(3):
        store_entry([str(uuid.uuid4())])

    body = api_call(client, "DELETE", "/cache/all", headers=auth_headers("admin"),
                    json={"confirm": CLEAR_ALL_CACHE_CONFIRMATION})

    assert body["message"] == "All cache entries cleared"
    assert crud_cache.count(db_session) == 0

def test_store_outage_maps_to_service_unavailable(client: TestClient, auth_headers, unavailable_store, monkeypatch):
    monkeypatch.setattr(ai_cache_service, "store", unavailable_store)

    body = api_call(client, "DELETE", f"/cache/lecture/{uuid.uuid4()}", headers=auth_headers("admin"), expected_status=503)

    assert_error(body, "SERVICE_UNAVAILABLE")
    assert body["error"]["details"] == {"error_type": "StoreUnavailableError"}

def test_stats_degrade_to_zeroes_during_outage(client: TestClient, auth_headers, unavailable_store, monkeypatch):
    monkeypatch.setattr(ai_cache_service, "store", unavailable_store)

    body = api_call(client, "GET", "/cache/stats", headers=auth_headers("admin"))

    assert body["data"]["total_entries"] == 0
    assert body["data"]["hit_rate"] == 0.0
