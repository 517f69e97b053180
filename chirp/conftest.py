# chirp/conftest.py
"""
공용 pytest fixture

Firestore는 mock-firestore의 MockFirestore, Storage 버킷은 MagicMock으로 대체합니다.
사용법: python -m pytest chirp -v
"""

from dataclasses import asdict
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from flask_jwt_extended import create_access_token
from mockfirestore import MockFirestore
from mockfirestore.collection import CollectionReference
from mockfirestore.query import Query

from chirp import create_app
from chirp.models.user import User
from chirp.utils.datetime_utils import DateTimeUtils

TEST_BUCKET_NAME = "chirp-testing.appspot.com"

class CountAggregation:
    """query.count().get() 결과 형태([[AggregationResult]])를 흉내 냅니다."""
    def __init__(self, query):
        self._query = query

    def get(self):
        total = sum(1 for _ in self._query.stream())
        return [[SimpleNamespace(alias="count", value=total)]]

@pytest.fixture
def db(monkeypatch):
    original_stream = CollectionReference.stream

    def stream_existing(self, *args, **kwargs):
        # document(id) 참조만 만든 빈 문서는 실제 Firestore처럼 조회 결과에서 제외합니다.
        return (snapshot for snapshot in original_stream(self, *args, **kwargs) if snapshot.exists)

    monkeypatch.setattr(CollectionReference, "stream", stream_existing)
    # mock-firestore에는 집계 쿼리가 없으므로 stream 결과 개수로 대신합니다.
    monkeypatch.setattr(Query, "count", lambda self, alias=None: CountAggregation(self), raising=False)
    monkeypatch.setattr(CollectionReference, "count", lambda self, alias=None: CountAggregation(self), raising=False)

    mock_db = MockFirestore()
    yield mock_db
    mock_db.reset()

@pytest.fixture
def bucket():
    mock_bucket = MagicMock()
    mock_bucket.name = TEST_BUCKET_NAME
    blob = mock_bucket.blob.return_value
    blob.generate_signed_url.return_value = f"https://storage.googleapis.com/{TEST_BUCKET_NAME}/signed-upload"
    blob.public_url = f"https://storage.googleapis.com/{TEST_BUCKET_NAME}/chirp_attachments/u1/file.png"
    blob.exists.return_value = True
    return mock_bucket

@pytest.fixture
def app(db, bucket):
    return create_app('testing', db=db, bucket=bucket)

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def make_user(db):
    """users 컬렉션에 사용자를 저장하고 User 객체를 반환합니다. (기본값: 온보딩 완료)"""
    def _make_user(user_id: str, username: str = None, onboarded: bool = True, **fields) -> User:
        user = User(
            user_id=user_id,
            external_id=f"google-{user_id}",
            username=username or (user_id.lower() if onboarded else None),
            name=fields.pop('name', user_id.capitalize()),
            onboarded=onboarded,
            **fields
        )
        db.collection('users').document(user_id).set(DateTimeUtils.for_firestore(asdict(user)))
        return user
    return _make_user

@pytest.fixture
def auth_headers(app):
    """user_id로 Access Token을 발급해 Authorization 헤더를 만듭니다."""
    def _auth_headers(user_id: str) -> dict:
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
