import uuid
import pytest
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidArgumentError
from app.crud.ai_response_cache import ai_response_cache as crud_cache
from app.crud.lecture_content_hash import lecture_content_hash as crud_lecture_hash
from app.services.content_hash import content_hash_service
from app.utils.cache_invalidation import cache_invalidator
from tests.helpers.stores import store_error

LECTURE_TEXT = "Binary search halves the search interval on every step."

def test_hash_ignores_case_and_whitespace():
    assert content_hash_service.generate_hash("  Binary   search\nhalves\tthe interval ") == \
        content_hash_service.generate_hash("binary search halves the interval")

def test_hash_changes_with_content():
    assert content_hash_service.generate_hash("merge sort") != content_hash_service.generate_hash("quick sort")
    assert len(content_hash_service.generate_hash("merge sort")) == 64

def test_content_change_detection(db_session: Session):
    lecture = str(uuid.uuid4())
    assert content_hash_service.has_content_changed(db_session, lecture, LECTURE_TEXT)

    content_hash_service.update_lecture_hash(db_session, lecture, content_hash_service.generate_hash(LECTURE_TEXT))

    assert not content_hash_service.has_content_changed(db_session, lecture, LECTURE_TEXT.upper())
    assert content_hash_service.has_content_changed(db_session, lecture, LECTURE_TEXT + " Complexity is O(log n).")

def test_lookup_failure_counts_as_changed(db_session: Session, monkeypatch):
    def failing_get_hash(db, lecture_id):
        raise store_error()
    monkeypatch.setattr("app.crud.lecture_content_hash.lecture_content_hash.get_hash", failing_get_hash)

    assert content_hash_service.has_content_changed(db_session, str(uuid.uuid4()), LECTURE_TEXT)

def test_lecture_deletion_cascades_to_cache(db_session: Session, store_entry):
    lecture, other = str(uuid.uuid4()), str(uuid.uuid4())
    store_entry([lecture])
    store_entry([lecture, other])
    survivor = store_entry([other])

    assert cache_invalidator.on_lecture_deleted(db_session, lecture) == 2
    assert crud_cache.count(db_session) == 1
    assert crud_cache.get_by_key(db_session, cache_key=survivor) is not None

def test_first_content_sync_only_records_hash(db_session: Session, store_entry):
    lecture = str(uuid.uuid4())
    store_entry([lecture], content_hash=content_hash_service.generate_hash("old text"))

    assert cache_invalidator.on_lecture_content_changed(db_session, lecture, LECTURE_TEXT) == 0
    assert content_hash_service.get_lecture_hash(db_session, lecture) == content_hash_service.generate_hash(LECTURE_TEXT)
    assert crud_cache.count(db_session) == 1

def test_content_change_drops_responses_built_from_old_content(db_session: Session, store_entry):
    lecture = str(uuid.uuid4())
    old_hash = content_hash_service.generate_hash(LECTURE_TEXT)
    cache_invalidator.on_lecture_content_changed(db_session, lecture, LECTURE_TEXT)
    stale = store_entry([lecture], content_hash=old_hash)

    new_text = LECTURE_TEXT + " It requires sorted input."
    deleted = cache_invalidator.on_lecture_content_changed(db_session, lecture, new_text)

    assert deleted == 1
    assert crud_cache.get_by_key(db_session, cache_key=stale) is None
    assert content_hash_service.get_lecture_hash(db_session, lecture) == content_hash_service.generate_hash(new_text)

def test_unchanged_content_keeps_cache(db_session: Session, store_entry):
    lecture = str(uuid.uuid4())
    cache_invalidator.on_lecture_content_changed(db_session, lecture, LECTURE_TEXT)
    store_entry([lecture], content_hash=content_hash_service.generate_hash(LECTURE_TEXT))

    assert cache_invalidator.on_lecture_content_changed(db_session, lecture, "  " + LECTURE_TEXT.lower()) == 0
    assert crud_cache.count(db_session) == 1

def test_content_change_rejects_malformed_lecture_id(db_session: Session):
    with pytest.raises(InvalidArgumentError):
        cache_invalidator.on_lecture_content_changed(db_session, "lecture-7", LECTURE_TEXT)
    assert crud_lecture_hash.count(db_session) == 0

def test_content_change_stores_hash_under_canonical_id(db_session: Session, store_entry):
    lecture = str(uuid.uuid4())
    cache_invalidator.on_lecture_content_changed(db_session, lecture.upper(), LECTURE_TEXT)
    store_entry([lecture], content_hash=content_hash_service.generate_hash(LECTURE_TEXT))

    assert content_hash_service.get_lecture_hash(db_session, lecture) == content_hash_service.generate_hash(LECTURE_TEXT)
    assert cache_invalidator.on_lecture_content_changed(db_session, "{" + lecture + "}", "new text") == 1
