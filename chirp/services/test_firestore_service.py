# chirp/services/test_firestore_service.py
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import ServiceUnavailable

from chirp.services.firestore_service import IN_QUERY_LIMIT, count_documents, fetch_documents_by_ids, user_summary

def test_fetch_documents_by_ids_in_chunks(db, make_user):
    user_ids = [f"user{i:02d}" for i in range(35)]
    for user_id in user_ids:
        make_user(user_id)

    users_ref = db.collection('users')
    spy = MagicMock(wraps=users_ref)
    documents = fetch_documents_by_ids(spy, 'user_id', user_ids + ["user00", "missing", None])

    assert set(documents) == set(user_ids)
    chunk_sizes = [len(call.args[2]) for call in spy.where.call_args_list]
    assert chunk_sizes == [IN_QUERY_LIMIT, 6]

def test_fetch_documents_by_ids_with_no_ids(db):
    assert fetch_documents_by_ids(db.collection('users'), 'user_id', []) == {}

def test_count_documents_reads_aggregation_result():
    aggregation = MagicMock()
    aggregation.value = 7
    query = MagicMock()
    query.count.return_value.get.return_value = [[aggregation]]

    assert count_documents(query) == 7

def test_count_documents_propagates_storage_errors():
    query = MagicMock()
    query.count.return_value.get.side_effect = ServiceUnavailable("firestore down")
    with pytest.raises(ServiceUnavailable):
        count_documents(query)

def test_count_documents_counts_matching_documents(db, make_user):
    make_user("u1")
    make_user("u2")
    make_user("u3", onboarded=False)
    assert count_documents(db.collection("users").where("onboarded", "==", True)) == 2

def test_profile_returns_503_when_count_fails(client, make_user, monkeypatch):
    make_user("u1")

    def unavailable(query):
        raise ServiceUnavailable("firestore down")

    monkeypatch.setattr("chirp.api.users.services.count_documents", unavailable)
    response = client.get("/api/users/u1")
    assert response.status_code == 503
    assert response.get_json()["error_code"] == "SERVICE_UNAVAILABLE"

def test_unwritten_document_references_are_not_streamed(db, make_user):
    make_user("u1")
    users_ref = db.collection("users")
    assert not users_ref.document("ghost").get().exists

    assert [doc.id for doc in users_ref.stream()] == ["u1"]
    assert [doc.id for doc in users_ref.order_by("joined_date").stream()] == ["u1"]

def test_user_summary_keeps_public_fields_only():
    data = {"user_id": "u1", "username": "alice", "name": "Alice", "image": None, "email": "a@example.com"}
    assert user_summary(data) == {"user_id": "u1", "username": "alice", "name": "Alice", "image": None}
