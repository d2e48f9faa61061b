import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.constants import OperationTypeEnum, RoleEnum
from app.core.database import Base, get_db
from app.models import ai_response_cache, ai_cache_stats, lecture_content_hash  # noqa: F401
from app.services.ai_cache import ai_cache_service
from tests.helpers.stores import UnavailableStore
import main

test_db_url = settings.TEST_DATABASE_URL or "sqlite:///./test.db"

CONTENT_HASH = "a" * 64

@pytest.fixture(scope="session")
def database_engine():
    if test_db_url.startswith("sqlite"):
        engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(test_db_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if test_db_url.startswith("sqlite") and os.path.exists("./test.db"):
        os.remove("./test.db")

@pytest.fixture(scope="function")
def db_session(database_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        # the cache store commits on every call, so rows are removed explicitly
        db.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        db.close()

@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()

@pytest.fixture
def token_for_role():
    """Create signed bearer tokens for a role"""
    def _create_token_for_role(role_name: str, subject: str = None):
        payload = {
            "sub": subject or f"{role_name}-{uuid.uuid4()}@test.com",
            "role": RoleEnum(role_name).value,
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")

    return _create_token_for_role

@pytest.fixture
def auth_headers(token_for_role):
    def _auth_headers(role_name: str):
        return {"Authorization": f"Bearer {token_for_role(role_name)}"}
    return _auth_headers

@pytest.fixture
def store_entry(db_session):
    """Store a cache entry through the service and return its key"""
    def _store_entry(
        lecture_ids,
        operation_type=OperationTypeEnum.CHAT.value,
        params=None,
        content_hash=CONTENT_HASH,
        response_data=None,
        tokens_used=100,
        content_size=1000,
    ):
        params = params if params is not None else {"query": f"q-{uuid.uuid4().hex[:8]}"}
        cache_key = ai_cache_service.generate_cache_key({
            "operation_type": operation_type,
            "lecture_ids": lecture_ids,
            "params": params,
            "content_hash": content_hash,
        })
        ai_cache_service.cache_response(
            db_session,
            cache_key,
            operation_type,
            lecture_ids,
            params,
            content_hash,
            response_data if response_data is not None else {"answer": "cached"},
            tokens_used,
            content_size,
        )
        return cache_key
    return _store_entry

@pytest.fixture
def unavailable_store():
    return UnavailableStore()
